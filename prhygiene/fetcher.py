"""Retrieval of pull requests and their sub-resources from GitHub."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Tuple

import requests

from .api_client import DIFF_MEDIA_TYPE, PER_PAGE, GitHubAPIClient
from .errors import FATAL_ERRORS, AnalysisError, InvalidRecord, NotFound
from .models import (
    CommentKind,
    CommentRecord,
    CommitRecord,
    PartialDataWarning,
    PullRequestRecord,
    ReviewDecision,
)
from .normalize import normalize_comment, normalize_commit, normalize_pull_request, normalize_review

SUB_RESOURCE_WORKERS = 5


@dataclass(frozen=True)
class SubResources:
    """Sub-resources of one PR; a resource that failed is empty and has a warning."""
    comments: Tuple[CommentRecord, ...] = ()
    reviews: Tuple[ReviewDecision, ...] = ()
    commits: Tuple[CommitRecord, ...] = ()
    diff_text: str = ''
    warnings: Tuple[PartialDataWarning, ...] = ()


class ResourceFetcher:
    """Fetches pull requests of one repository and normalizes them into records."""

    def __init__(self, api_client: GitHubAPIClient, owner: str, repo: str):
        """Initialize the fetcher.

        Args:
            api_client: Rate-aware GitHub client shared by all workers
            owner: Repository owner (user or organization)
            repo: Repository name
        """
        self.api_client = api_client
        self.owner = owner
        self.repo = repo

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _url(self, *parts) -> str:
        return self.api_client.repo_url(self.owner, self.repo, *parts)

    def list_pull_requests(self, include_merge_prs: bool = False, limit: int = 100,
                           state: str = 'closed') -> Iterator[PullRequestRecord]:
        """Lazily yield the newest pull requests of the repository.

        Args:
            include_merge_prs: Whether merge PRs count toward the sample
            limit: Number of (non-excluded) PRs to yield at most
            state: PR state filter passed to GitHub ('closed', 'open' or 'all')

        Yields:
            PullRequestRecord, newest first

        Raises:
            NotFound: If the repository does not exist (first page only)
        """
        params = {
            'state': state,
            'sort': 'created',
            'direction': 'desc',
            'per_page': min(PER_PAGE, max(limit, 1)),
        }
        pages = self.api_client.iter_pages(self._url('pulls'), params)
        yielded = 0
        page_number = 0

        while yielded < limit:
            try:
                page = next(pages)
            except StopIteration:
                break
            except NotFound:
                if page_number == 0:
                    raise
                logging.warning(f"Page {page_number + 1} of {self.repository} pull requests disappeared; "
                                f"stopping with {yielded} PRs")
                break
            page_number += 1

            for raw in page:
                try:
                    record = normalize_pull_request(raw)
                except InvalidRecord as e:
                    logging.warning(f"Skipping unusable pull request: {e}")
                    continue

                if record.is_merge_pr and not include_merge_prs:
                    logging.debug(f"[{self.repository}]/[{record.number}] filtered out for being a merge PR")
                    continue

                yield record
                yielded += 1
                if yielded >= limit:
                    break

        logging.info(f"Listed {yielded} pull requests from {self.repository} ({page_number} pages)")

    def fetch_pull_request(self, number: int) -> PullRequestRecord:
        """Fetch a single pull request.

        Raises:
            NotFound: If the PR (or repository) does not exist
        """
        raw = self.api_client.get(self._url('pulls', number))
        if not isinstance(raw, dict):
            raise NotFound(f"Pull request {self.repository}#{number} returned no data")
        return normalize_pull_request(raw)

    def fetch_sub_resources(self, record: PullRequestRecord) -> SubResources:
        """Fetch comments, reviews, commits and diff of a PR concurrently.

        A sub-resource that fails is treated as empty and reported as a
        PartialDataWarning. Authentication and quota failures propagate.

        Args:
            record: The PR whose sub-resources to fetch

        Returns:
            SubResources with everything that could be obtained
        """
        number = record.number
        start = time.monotonic()
        tasks: Dict[str, Callable] = {
            'comments': lambda: self._fetch_comments(number, CommentKind.ISSUE, 'issues'),
            'review_comments': lambda: self._fetch_comments(number, CommentKind.REVIEW, 'pulls'),
            'reviews': lambda: self._fetch_reviews(number),
            'commits': lambda: self._fetch_commits(number),
            'diff': lambda: self._fetch_diff(number),
        }
        empty = {'comments': (), 'review_comments': (), 'reviews': (), 'commits': (), 'diff': ''}
        results = {}
        warnings: List[PartialDataWarning] = []

        executor = ThreadPoolExecutor(max_workers=SUB_RESOURCE_WORKERS)
        future_to_name = {executor.submit(task): name for name, task in tasks.items()}

        for future in as_completed(future_to_name):
            name = future_to_name[future]
            try:
                results[name] = future.result()
            except FATAL_ERRORS:
                # Sibling requests are abandoned, not awaited
                executor.shutdown(wait=False, cancel_futures=True)
                raise
            except (AnalysisError, requests.exceptions.RequestException, ValueError) as e:
                logging.warning(f"Partial data for {self.repository}#{number}: "
                                f"could not fetch {name}: {e}")
                warnings.append(PartialDataWarning(number, name, str(e)))
                results[name] = empty[name]
            except BaseException:
                executor.shutdown(wait=False, cancel_futures=True)
                raise
        executor.shutdown()
        warnings.sort(key=lambda w: list(tasks).index(w.resource))

        logging.debug(f"Fetched sub-resources of {self.repository}#{number} "
                      f"in {time.monotonic() - start:.2f}s")

        return SubResources(
            comments=tuple(results['comments']) + tuple(results['review_comments']),
            reviews=tuple(results['reviews']),
            commits=tuple(results['commits']),
            diff_text=results['diff'],
            warnings=tuple(warnings),
        )

    def _fetch_comments(self, number: int, kind: CommentKind, collection: str) -> Tuple[CommentRecord, ...]:
        raw_comments = self.api_client.get_paginated(self._url(collection, number, 'comments'))
        return tuple(normalize_comment(raw, kind) for raw in raw_comments)

    def _fetch_reviews(self, number: int) -> Tuple[ReviewDecision, ...]:
        raw_reviews = self.api_client.get_paginated(self._url('pulls', number, 'reviews'))
        reviews = (normalize_review(raw) for raw in raw_reviews)
        return tuple(review for review in reviews if review is not None)

    def _fetch_commits(self, number: int) -> Tuple[CommitRecord, ...]:
        raw_commits = self.api_client.get_paginated(self._url('pulls', number, 'commits'))
        commits = (normalize_commit(raw) for raw in raw_commits)
        return tuple(commit for commit in commits if commit is not None)

    def _fetch_diff(self, number: int) -> str:
        diff = self.api_client.get(self._url('pulls', number), media_type=DIFF_MEDIA_TYPE)
        return diff or ''
