"""Reduction of fetched pull request data into the published hygiene metrics.

Everything in this module is a pure function of its inputs: no requests,
no clocks, no shared state.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .models import DataIntegrityWarning, PullRequestData
from .normalize import count_attachments

ONE_DAY = timedelta(days=1)


class MetricType(Enum):
    """The published metrics, in report order."""
    AMOUNT_OF_PARTICIPANTS = 'AmountOfParticipants'
    AMOUNT_OF_REVIEWERS = 'AmountOfReviewers'
    ATTACHMENTS = 'Attachments'
    AUTHOR_COMMENTARY_TO_CHANGES_RATIO = 'AuthorCommentaryToChangesRatio'
    PULL_REQUESTS_DISCUSSION_SIZE = 'PullRequestsDiscussionSize'
    PULL_REQUEST_FLOW_RATIO = 'PullRequestFlowRatio'
    PULL_REQUEST_LEAD_TIME = 'PullRequestLeadTime'
    PULL_REQUEST_SIZE = 'PullRequestSize'
    TEST_TO_CODE_RATIO = 'TestToCodeRatio'
    TIME_TO_MERGE = 'TimeToMerge'

    @property
    def legend(self) -> str:
        return METRIC_LEGENDS[self]


METRIC_LEGENDS = {
    MetricType.AMOUNT_OF_PARTICIPANTS:
        "People other than the author who took part in a PR's discussion, through comments "
        "or reviews. Wider participation tends to enrich the discussion and the resulting code.",
    MetricType.AMOUNT_OF_REVIEWERS:
        "People other than the author who approved a PR or requested changes on it, i.e. the "
        "participants that actually decide the PR's fate.",
    MetricType.ATTACHMENTS:
        "Screenshots, embedded images, uploaded files and binary files in the diff. Most useful "
        "for PRs with a visual component.",
    MetricType.AUTHOR_COMMENTARY_TO_CHANGES_RATIO:
        "Characters written by the author (PR description and own comments) per 100 changed "
        "lines. Too little commentary leaves reviewers guessing; too much adds noise.",
    MetricType.PULL_REQUESTS_DISCUSSION_SIZE:
        "Number of comments on a PR regardless of who wrote them. Near-zero engagement means "
        "review is not a team habit; very long threads often point at misalignment or vague "
        "requirements.",
    MetricType.PULL_REQUEST_FLOW_RATIO:
        "PRs opened divided by PRs closed over the sampled days. Values near 1 mean the team "
        "closes work at the pace it opens it; much lower values mean the queue is starving.",
    MetricType.PULL_REQUEST_LEAD_TIME:
        "Whole days between opening a PR and closing or merging it, averaged over the sample.",
    MetricType.PULL_REQUEST_SIZE:
        "Added plus removed lines. Large PRs dilute reviewer attention and tend to be merged "
        "with shallower reviews.",
    MetricType.TEST_TO_CODE_RATIO:
        "Changed test lines divided by changed production lines. As a rule of thumb about half "
        "of a PR should be tests.",
    MetricType.TIME_TO_MERGE:
        "Whole days from a branch's oldest commit to its merge. Compared with the lead time it "
        "shows how long work sits on a branch before a PR is opened.",
}


@dataclass(frozen=True)
class MetricValue:
    """One named metric of a report."""
    metric: MetricType
    value: float
    details: Dict[str, float] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.metric.value


@dataclass(frozen=True)
class PullRequestMetrics:
    """Literal metric values of a single PR."""
    number: int
    participants: int
    reviewers: int
    attachments: int
    author_commentary_ratio: float
    discussion_size: int
    lead_time: Optional[int]
    size: int
    test_lines: int
    production_lines: int
    test_to_code_ratio: float
    time_to_merge: Optional[int]


@dataclass(frozen=True)
class FlowBucket:
    """Opened and closed PR counts of one UTC calendar day."""
    day: date
    opened: int = 0
    closed: int = 0


def whole_days(delta: timedelta) -> int:
    """Truncate a delta to whole days by integer division."""
    return delta // ONE_DAY


def safe_ratio(numerator: float, denominator: float) -> float:
    """Divide, yielding 0 for a zero denominator."""
    if not denominator:
        return 0.0
    return numerator / denominator


def ceil_mean(values: Sequence[int]) -> int:
    if not values:
        return 0
    return math.ceil(sum(values) / len(values))


def floor_mean(values: Sequence[int]) -> int:
    if not values:
        return 0
    return sum(values) // len(values)


def participants_of(pr: PullRequestData) -> Set[str]:
    """Distinct non-author identities from comments and reviews."""
    author = pr.record.author
    people = {comment.author for comment in pr.comments}
    people.update(review.reviewer for review in pr.reviews)
    people.discard(author)
    return people


def reviewers_of(pr: PullRequestData) -> Set[str]:
    """Distinct non-author identities that approved or requested changes."""
    reviewers = {review.reviewer for review in pr.reviews if review.state.is_decision}
    reviewers.discard(pr.record.author)
    return reviewers


def author_commentary_length(pr: PullRequestData) -> int:
    """Characters in the PR description plus the author's own comments."""
    author = pr.record.author
    return len(pr.record.body) + sum(c.body_length for c in pr.comments if c.author == author)


def attachments_of(pr: PullRequestData) -> int:
    body_flag = 1 if count_attachments(pr.record.body) else 0
    comment_flags = sum(1 for comment in pr.comments if comment.has_attachment)
    return body_flag + comment_flags + pr.diff.attachment_files


def build_flow_buckets(prs: Sequence[PullRequestData]) -> List[FlowBucket]:
    """Bucket PR openings and closings by UTC calendar day, in day order."""
    opened = Counter(pr.record.created_at.astimezone(timezone.utc).date() for pr in prs)
    closed = Counter(
        pr.record.finished_at.astimezone(timezone.utc).date()
        for pr in prs if pr.record.finished_at is not None
    )
    days = sorted(set(opened) | set(closed))
    return [FlowBucket(day, opened.get(day, 0), closed.get(day, 0)) for day in days]


def flow_ratio(buckets: Sequence[FlowBucket], window: Tuple[date, date] = None,
               undefined_value: float = 0.0) -> float:
    """Sum of opened divided by sum of closed over the buckets inside window.

    Args:
        buckets: Day buckets
        window: Inclusive (first, last) day range; all buckets if None
        undefined_value: Result when nothing closed inside the window

    Returns:
        The flow ratio
    """
    if window is not None:
        first, last = window
        buckets = [b for b in buckets if first <= b.day <= last]

    opened = sum(b.opened for b in buckets)
    closed = sum(b.closed for b in buckets)
    if closed == 0:
        logging.debug(f"No PRs closed in the sampled window ({opened} opened); flow ratio undefined")
        return undefined_value
    return opened / closed


def integrity_warnings_of(m: PullRequestMetrics) -> List[DataIntegrityWarning]:
    """Negative day deltas of one PR; they are reported, never clamped."""
    warnings = []
    for metric, days in ((MetricType.PULL_REQUEST_LEAD_TIME, m.lead_time),
                         (MetricType.TIME_TO_MERGE, m.time_to_merge)):
        if days is not None and days < 0:
            logging.warning(f"PR #{m.number}: negative {metric.value} of {days} days; "
                            f"timestamps are inconsistent")
            warnings.append(DataIntegrityWarning(m.number, metric.value, days))
    return warnings


@dataclass(frozen=True)
class Scorecard:
    """Ordered metric values plus the integrity problems found computing them."""
    metrics: Tuple[MetricValue, ...]
    integrity_warnings: Tuple[DataIntegrityWarning, ...] = ()

    def __getitem__(self, metric: MetricType) -> MetricValue:
        for value in self.metrics:
            if value.metric is metric:
                return value
        raise KeyError(metric.value)

    def __contains__(self, metric: MetricType) -> bool:
        return any(value.metric is metric for value in self.metrics)


class MetricsEngine:
    """Computes hygiene metrics for a single PR or a sample of PRs."""

    def __init__(self, undefined_flow_ratio: float = 0.0):
        """Initialize the engine.

        Args:
            undefined_flow_ratio: Value reported as flow ratio when no PR closed in the window
        """
        self.undefined_flow_ratio = undefined_flow_ratio

    def measure(self, pr: PullRequestData) -> PullRequestMetrics:
        """Compute the literal metric values of one PR."""
        record = pr.record
        changes = pr.diff.total_changes
        test_lines = pr.diff.test_lines
        production_lines = pr.diff.production_lines

        lead_time = None
        if record.finished_at is not None:
            lead_time = whole_days(record.finished_at - record.created_at)

        time_to_merge = None
        if record.merged_at is not None and pr.commits:
            first_commit_at = min(commit.authored_at for commit in pr.commits)
            time_to_merge = whole_days(record.merged_at - first_commit_at)

        metrics = PullRequestMetrics(
            number=record.number,
            participants=len(participants_of(pr)),
            reviewers=len(reviewers_of(pr)),
            attachments=attachments_of(pr),
            author_commentary_ratio=safe_ratio(author_commentary_length(pr), changes) * 100,
            discussion_size=len(pr.comments),
            lead_time=lead_time,
            size=changes,
            test_lines=test_lines,
            production_lines=production_lines,
            test_to_code_ratio=safe_ratio(test_lines, production_lines),
            time_to_merge=time_to_merge,
        )
        logging.debug(f"PR #{record.number} metrics: {metrics}")
        return metrics

    def score_pull_request(self, pr: PullRequestData) -> Scorecard:
        """Literal metrics of a single PR; the flow ratio does not apply and is omitted."""
        m = self.measure(pr)

        metrics = (
            MetricValue(MetricType.AMOUNT_OF_PARTICIPANTS, m.participants),
            MetricValue(MetricType.AMOUNT_OF_REVIEWERS, m.reviewers),
            MetricValue(MetricType.ATTACHMENTS, m.attachments),
            MetricValue(MetricType.AUTHOR_COMMENTARY_TO_CHANGES_RATIO, m.author_commentary_ratio),
            MetricValue(MetricType.PULL_REQUESTS_DISCUSSION_SIZE, m.discussion_size),
            MetricValue(MetricType.PULL_REQUEST_LEAD_TIME, m.lead_time if m.lead_time is not None else 0),
            MetricValue(MetricType.PULL_REQUEST_SIZE, m.size),
            MetricValue(MetricType.TEST_TO_CODE_RATIO, m.test_to_code_ratio,
                        {'loc': m.production_lines, 'test_loc': m.test_lines}),
            MetricValue(MetricType.TIME_TO_MERGE, m.time_to_merge if m.time_to_merge is not None else 0),
        )
        return Scorecard(metrics, tuple(integrity_warnings_of(m)))

    def score_repository(self, prs: Sequence[PullRequestData]) -> Scorecard:
        """Aggregate metrics over a sample of PRs.

        Count metrics are ceiling means of the per-PR values, day metrics are
        floor means over the PRs where they are defined, and the test-to-code
        ratio comes from the sample's line totals.
        """
        measured = [self.measure(pr) for pr in prs]

        test_lines = sum(m.test_lines for m in measured)
        production_lines = sum(m.production_lines for m in measured)
        lead_times = [m.lead_time for m in measured if m.lead_time is not None]
        merge_times = [m.time_to_merge for m in measured if m.time_to_merge is not None]
        commentary = [m.author_commentary_ratio for m in measured]

        buckets = build_flow_buckets(prs)
        window = None
        if prs:
            created_days = [pr.record.created_at.astimezone(timezone.utc).date() for pr in prs]
            window = (min(created_days), max(created_days))

        logging.debug(f"Aggregating {len(measured)} PRs: {len(lead_times)} closed, {len(merge_times)} merged")

        metrics = (
            MetricValue(MetricType.AMOUNT_OF_PARTICIPANTS, ceil_mean([m.participants for m in measured])),
            MetricValue(MetricType.AMOUNT_OF_REVIEWERS, ceil_mean([m.reviewers for m in measured])),
            MetricValue(MetricType.ATTACHMENTS, ceil_mean([m.attachments for m in measured])),
            MetricValue(MetricType.AUTHOR_COMMENTARY_TO_CHANGES_RATIO,
                        sum(commentary) / len(commentary) if commentary else 0.0),
            MetricValue(MetricType.PULL_REQUESTS_DISCUSSION_SIZE,
                        ceil_mean([m.discussion_size for m in measured])),
            MetricValue(MetricType.PULL_REQUEST_FLOW_RATIO,
                        flow_ratio(buckets, window, self.undefined_flow_ratio)),
            MetricValue(MetricType.PULL_REQUEST_LEAD_TIME, floor_mean(lead_times)),
            MetricValue(MetricType.PULL_REQUEST_SIZE, ceil_mean([m.size for m in measured])),
            MetricValue(MetricType.TEST_TO_CODE_RATIO, safe_ratio(test_lines, production_lines),
                        {'loc': production_lines, 'test_loc': test_lines}),
            MetricValue(MetricType.TIME_TO_MERGE, floor_mean(merge_times)),
        )
        warnings = [w for m in measured for w in integrity_warnings_of(m)]
        return Scorecard(metrics, tuple(warnings))
