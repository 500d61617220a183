"""PR processing methods for PullRequestAnalyzer."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List

from ..models import PartialDataWarning, PullRequestData, PullRequestRecord


def _process_prs_parallel(self, records: List[PullRequestRecord]) -> List[PullRequestData]:
    """Fetch and classify PRs in parallel.

    Every PR is complete (or has its missing parts marked) before it is
    returned. Any exception aborts the whole run: pending PRs are cancelled
    and the exception propagates.

    Args:
        records: PRs to process

    Returns:
        PullRequestData per PR, in completion order
    """
    if not records:
        return []

    if self.show_progress:
        print(f"Analyzing {len(records)} PRs...", flush=True)
    results: List[PullRequestData] = []
    max_workers = min(self.config.max_workers, len(records))

    executor = ThreadPoolExecutor(max_workers=max_workers)
    future_to_record = {
        executor.submit(self._analyze_pr, record): record
        for record in records
    }

    try:
        for future in as_completed(future_to_record):
            record = future_to_record[future]
            try:
                results.append(future.result())
            except Exception as e:
                logging.error(f"Error analyzing PR #{record.number}: {e}")
                raise

            completed = len(results)
            if self.show_progress and (completed % 10 == 0 or completed == len(records)):
                print(f"  Progress: {completed}/{len(records)} PRs analyzed", flush=True)
    except BaseException:
        # All-or-nothing: stop issuing requests and abandon every PR still in progress
        self.api_client.abort()
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown()

    partial = sum(1 for pr in results if pr.is_partial)
    if partial:
        logging.warning(f"{partial} of {len(results)} PRs were analyzed with partial data")

    return results


def _analyze_pr(self, record: PullRequestRecord) -> PullRequestData:
    """Fetch the sub-resources of one PR and classify its diff.

    Args:
        record: PR to analyze

    Returns:
        PullRequestData ready for the metrics engine
    """
    start = time.monotonic()
    logging.debug(f"Retrieving data for PR #{record.number}: {record.title} (by {record.author})")

    sub_resources = self.fetcher.fetch_sub_resources(record)
    diff = self.diff_classifier.classify(sub_resources.diff_text, record.number)

    warnings = list(sub_resources.warnings)
    if diff.malformed_fragments:
        warnings.append(PartialDataWarning(
            record.number, 'diff', f"{diff.malformed_fragments} malformed diff fragment(s) skipped"
        ))

    logging.debug(f"Analyzed PR #{record.number} in {time.monotonic() - start:.2f}s "
                  f"({len(sub_resources.comments)} comments, {len(sub_resources.reviews)} reviews, "
                  f"{len(sub_resources.commits)} commits, +{sum(h.added for h in diff.hunks)}"
                  f"/-{sum(h.removed for h in diff.hunks)} lines)")

    return PullRequestData(
        record=record,
        comments=sub_resources.comments,
        reviews=sub_resources.reviews,
        commits=sub_resources.commits,
        diff=diff,
        warnings=tuple(warnings),
    )
