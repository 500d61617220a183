"""Data models for pull request hygiene analysis."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class ReviewState(Enum):
    """Outcome of a submitted review."""
    APPROVED = 'APPROVED'
    CHANGES_REQUESTED = 'CHANGES_REQUESTED'
    COMMENTED = 'COMMENTED'
    DISMISSED = 'DISMISSED'

    @property
    def is_decision(self) -> bool:
        """Whether the review takes a stand on the PR's outcome."""
        return self in (ReviewState.APPROVED, ReviewState.CHANGES_REQUESTED)


class CommentKind(Enum):
    """Where a comment is anchored."""
    ISSUE = 'issue'    # conversation tab
    REVIEW = 'review'  # inline, anchored to a file


@dataclass(frozen=True)
class PullRequestRecord:
    """A pull request as returned by the listing or detail endpoint."""
    number: int
    author: str
    title: str
    body: str
    created_at: datetime
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    base_ref: str = ''
    head_ref: str = ''
    is_merge_pr: bool = False
    state: str = 'closed'

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    @property
    def finished_at(self) -> Optional[datetime]:
        """Close-or-merge timestamp, whichever is available."""
        return self.closed_at or self.merged_at


@dataclass(frozen=True)
class CommentRecord:
    """A conversation comment or an inline review comment."""
    author: str
    created_at: Optional[datetime]
    body_length: int
    attachment_count: int = 0
    kind: CommentKind = CommentKind.ISSUE
    path: Optional[str] = None  # review comments only

    @property
    def has_attachment(self) -> bool:
        return self.attachment_count > 0


@dataclass(frozen=True)
class ReviewDecision:
    """A submitted review by one reviewer."""
    reviewer: str
    state: ReviewState
    submitted_at: Optional[datetime] = None
    body_length: int = 0


@dataclass(frozen=True)
class CommitRecord:
    sha: str
    authored_at: datetime


@dataclass(frozen=True)
class DiffHunk:
    """Line counts for one file of a diff."""
    path: str
    added: int = 0
    removed: int = 0
    is_test: bool = False
    is_binary: bool = False

    @property
    def changes(self) -> int:
        return self.added + self.removed


@dataclass(frozen=True)
class DiffSummary:
    """Classified view of a PR's diff."""
    hunks: Tuple[DiffHunk, ...] = ()
    malformed_fragments: int = 0

    @property
    def test_lines(self) -> int:
        """Added plus removed lines in test files."""
        return sum(h.changes for h in self.hunks if h.is_test)

    @property
    def production_lines(self) -> int:
        """Added plus removed lines in non-test files."""
        return sum(h.changes for h in self.hunks if not h.is_test)

    @property
    def total_changes(self) -> int:
        return sum(h.changes for h in self.hunks)

    @property
    def attachment_files(self) -> int:
        return sum(1 for h in self.hunks if h.is_binary)


@dataclass(frozen=True)
class PartialDataWarning:
    """A piece of PR data that could not be obtained and was treated as empty."""
    pr_number: int
    resource: str
    reason: str


@dataclass(frozen=True)
class DataIntegrityWarning:
    """A metric input that contradicts itself (e.g. merged before first commit)."""
    pr_number: int
    metric: str
    value: int


@dataclass(frozen=True)
class PullRequestData:
    """Everything fetched for one PR, ready for the metrics engine."""
    record: PullRequestRecord
    comments: Tuple[CommentRecord, ...] = ()
    reviews: Tuple[ReviewDecision, ...] = ()
    commits: Tuple[CommitRecord, ...] = ()
    diff: DiffSummary = field(default_factory=DiffSummary)
    warnings: Tuple[PartialDataWarning, ...] = ()

    @property
    def number(self) -> int:
        return self.record.number

    @property
    def is_partial(self) -> bool:
        return bool(self.warnings)
