"""Conversion of raw GitHub payloads into the analyzer's record types."""

import logging
import re
from datetime import datetime, timezone
from typing import Dict, Optional

from .errors import InvalidRecord
from .models import (
    CommentKind,
    CommentRecord,
    CommitRecord,
    PullRequestRecord,
    ReviewDecision,
    ReviewState,
)

GITHUB_TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

# Embedded images, HTML images and files uploaded through GitHub's attachment storage
ATTACHMENT_PATTERN = re.compile(
    r'!\[[^\]]*\]\([^)\s]+[^)]*\)'
    r'|<img\s[^>]*src='
    r'|\[[^\]]*\]\(https://(?:user-images\.githubusercontent\.com|github\.com/user-attachments'
    r'|github\.com/[^/\s)]+/[^/\s)]+/files)/[^)]*\)',
    re.IGNORECASE
)

MERGE_PR_TITLE_PREFIX = 'merge'


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp into an aware UTC datetime.

    Raises:
        InvalidRecord: If the value is not an ISO-8601 timestamp
    """
    if not value:
        return None
    try:
        return datetime.strptime(value, GITHUB_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    # Fractional seconds and offsets other than Z show up in commit dates
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise InvalidRecord(f"Unparsable timestamp '{value}'") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def count_attachments(text: Optional[str]) -> int:
    """Count embedded media or uploaded files in markdown text."""
    if not text:
        return 0
    return len(ATTACHMENT_PATTERN.findall(text))


def is_merge_pr(title: str) -> bool:
    """Whether a PR merges one long-lived branch into another ("Merge develop into main")."""
    return title.strip().lower().startswith(MERGE_PR_TITLE_PREFIX)


def _login(user: Optional[Dict]) -> str:
    # Deleted accounts come back as null users
    return (user or {}).get('login') or 'ghost'


def normalize_pull_request(raw: Dict) -> PullRequestRecord:
    """Build a PullRequestRecord from a /pulls item.

    Raises:
        InvalidRecord: If the payload lacks the PR number or creation timestamp
    """
    number = raw.get('number')
    created_at = parse_timestamp(raw.get('created_at'))
    if number is None or created_at is None:
        raise InvalidRecord(f"Pull request payload without number or creation date: {raw.get('url')}")

    title = raw.get('title') or ''
    merged_at = parse_timestamp(raw.get('merged_at'))
    # A merged PR is always closed, even if the payload lags behind
    closed_at = parse_timestamp(raw.get('closed_at')) or merged_at

    return PullRequestRecord(
        number=number,
        author=_login(raw.get('user')),
        title=title,
        body=raw.get('body') or '',
        created_at=created_at,
        closed_at=closed_at,
        merged_at=merged_at,
        base_ref=(raw.get('base') or {}).get('ref', ''),
        head_ref=(raw.get('head') or {}).get('ref', ''),
        is_merge_pr=is_merge_pr(title),
        state=raw.get('state', 'closed'),
    )


def normalize_comment(raw: Dict, kind: CommentKind = CommentKind.ISSUE) -> CommentRecord:
    """Build a CommentRecord from an issue comment or a review comment."""
    body = raw.get('body') or ''
    return CommentRecord(
        author=_login(raw.get('user')),
        created_at=parse_timestamp(raw.get('created_at')),
        body_length=len(body),
        attachment_count=count_attachments(body),
        kind=kind,
        path=raw.get('path') if kind is CommentKind.REVIEW else None,
    )


def normalize_review(raw: Dict) -> Optional[ReviewDecision]:
    """Build a ReviewDecision, or None for pending/unknown review states."""
    try:
        state = ReviewState(raw.get('state'))
    except ValueError:
        logging.debug(f"Ignoring review {raw.get('id')} in state {raw.get('state')}")
        return None

    return ReviewDecision(
        reviewer=_login(raw.get('user')),
        state=state,
        submitted_at=parse_timestamp(raw.get('submitted_at')),
        body_length=len(raw.get('body') or ''),
    )


def normalize_commit(raw: Dict) -> Optional[CommitRecord]:
    """Build a CommitRecord from its git author date (committer date as fallback)."""
    commit = raw.get('commit') or {}
    authored_at = (
        parse_timestamp((commit.get('author') or {}).get('date'))
        or parse_timestamp((commit.get('committer') or {}).get('date'))
    )
    if authored_at is None:
        logging.debug(f"Ignoring commit {raw.get('sha')} without a date")
        return None
    return CommitRecord(sha=raw.get('sha', ''), authored_at=authored_at)
