"""Unified diff parsing and test/production classification of changed files."""

import fnmatch
import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import MalformedDiff
from .models import DiffHunk, DiffSummary


# Default patterns for conventional test locations and file names
DEFAULT_TEST_FILE_PATTERNS = [
    'test/*',
    'tests/*',
    'testing/*',
    'spec/*',
    '__tests__/*',
    '*/test/*',
    '*/tests/*',
    '*/testing/*',
    '*/spec/*',
    '*/__tests__/*',
    'test_*',
    '*_test.*',
    '*_tests.*',
    '*_spec.*',
    '*Test.*',
    '*Tests.*',
    '*.test.*',
    '*.spec.*',
    'conftest.py',
]

HUNK_HEADER = re.compile(r'^@@ -\d+(?:,(\d+))? \+\d+(?:,(\d+))? @@')
DEV_NULL = '/dev/null'


class TestPathMatcher:
    """Decides whether a file path holds test code (supports * wildcards)."""

    __test__ = False  # not a pytest test class

    def __init__(self, test_file_patterns: List[str] = None):
        """Initialize the matcher.

        Args:
            test_file_patterns: Patterns matched against the full path and the file name
                                (uses default if None)
        """
        self.test_file_patterns = test_file_patterns or DEFAULT_TEST_FILE_PATTERNS

    def match_pattern(self, path: str, pattern: str) -> bool:
        """Check if a path or its file name matches a pattern."""
        return (fnmatch.fnmatchcase(path, pattern)
                or fnmatch.fnmatchcase(posixpath.basename(path), pattern))

    def __call__(self, path: str) -> bool:
        return any(self.match_pattern(path, pattern) for pattern in self.test_file_patterns)


@dataclass
class _FileState:
    """Mutable accumulator for the file currently being parsed."""
    path: str = ''
    source_path: str = ''
    added: int = 0
    removed: int = 0
    is_binary: bool = False


@dataclass
class _HunkState:
    old_remaining: int
    new_remaining: int
    added: int = 0
    removed: int = 0

    @property
    def complete(self) -> bool:
        return self.old_remaining <= 0 and self.new_remaining <= 0


class DiffClassifier:
    """Turns unified diff text into per-file DiffHunks."""

    def __init__(self, is_test_file: Callable[[str], bool] = None):
        """Initialize the classifier.

        Args:
            is_test_file: Predicate deciding whether a path is test code
                          (defaults to TestPathMatcher with the default patterns)
        """
        self.is_test_file = is_test_file or TestPathMatcher()

    def classify(self, diff_text: str, pr_number: int = None) -> DiffSummary:
        """Parse a unified diff and classify every file in it.

        Malformed fragments are skipped with a warning; everything else in the
        diff is still counted.

        Args:
            diff_text: Raw diff as returned by GitHub
            pr_number: PR the diff belongs to (for log messages)

        Returns:
            DiffSummary with one DiffHunk per file, in diff order
        """
        hunks: List[DiffHunk] = []
        malformed = 0
        current: Optional[_FileState] = None
        hunk: Optional[_HunkState] = None
        label = f"PR #{pr_number}" if pr_number is not None else "diff"

        def close_hunk():
            nonlocal hunk, malformed
            if hunk is None:
                return
            if hunk.complete:
                current.added += hunk.added
                current.removed += hunk.removed
            else:
                malformed += 1
                logging.warning(f"{label}: skipping truncated hunk in {current.path or '<unknown>'} "
                                f"({hunk.old_remaining} old/{hunk.new_remaining} new lines missing)")
            hunk = None

        def close_file():
            nonlocal current
            close_hunk()
            if current is not None and current.path:
                hunks.append(self._build_hunk(current))
            current = None

        for line in self._split_lines(diff_text):
            if hunk is not None and not hunk.complete:
                try:
                    if self._consume_hunk_line(hunk, line):
                        continue
                except MalformedDiff as e:
                    # Binary garbage inside a text hunk; the rest of the hunk is still consumed
                    if not current.is_binary:
                        logging.warning(f"{label}: {current.path}: {e}")
                    current.is_binary = True
                    continue
            # Either the hunk is complete or this line cut it short
            close_hunk()

            if line.startswith('diff --git '):
                close_file()
                current = _FileState(path=self._path_from_git_header(line))
            elif line.startswith('--- '):
                if current is None or current.source_path:
                    # Plain (non-git) diffs start a new file at every --- line
                    close_file()
                    current = _FileState()
                current.source_path = self._strip_prefix(line[4:])
                if not current.path and current.source_path != DEV_NULL:
                    current.path = current.source_path
            elif line.startswith('+++ ') and current is not None:
                target = self._strip_prefix(line[4:])
                current.path = target if target != DEV_NULL else current.source_path or current.path
            elif line.startswith('@@'):
                close_hunk()
                if current is None:
                    malformed += 1
                    logging.warning(f"{label}: skipping hunk without a file header")
                    continue
                try:
                    hunk = self._parse_hunk_header(line)
                except MalformedDiff as e:
                    malformed += 1
                    logging.warning(f"{label}: {current.path}: {e}")
            elif current is not None and (line.startswith('Binary files ') or line == 'GIT binary patch'):
                current.is_binary = True
            elif current is not None and line.startswith('rename to '):
                current.path = line[len('rename to '):]

        close_file()

        summary = DiffSummary(hunks=tuple(hunks), malformed_fragments=malformed)
        logging.debug(f"{label}: {len(hunks)} files, {summary.test_lines} test lines, "
                      f"{summary.production_lines} production lines, {summary.attachment_files} binary")
        return summary

    def _build_hunk(self, state: _FileState) -> DiffHunk:
        if state.is_binary:
            # Binary entries carry no line counts
            return DiffHunk(path=state.path, is_test=self.is_test_file(state.path), is_binary=True)
        return DiffHunk(
            path=state.path,
            added=state.added,
            removed=state.removed,
            is_test=self.is_test_file(state.path),
        )

    @staticmethod
    def _split_lines(diff_text: Optional[str]) -> List[str]:
        """Split on newlines only; form feeds and Unicode separators are line content."""
        if not diff_text:
            return []
        lines = [line[:-1] if line.endswith('\r') else line for line in diff_text.split('\n')]
        if lines[-1] == '':
            lines.pop()
        return lines

    @staticmethod
    def _consume_hunk_line(hunk: _HunkState, line: str) -> bool:
        """Account one body line of an open hunk; False if the line does not belong to it."""
        if line.startswith('+'):
            hunk.added += 1
            hunk.new_remaining -= 1
        elif line.startswith('-'):
            hunk.removed += 1
            hunk.old_remaining -= 1
        elif line.startswith(' ') or line == '':
            # Some tools strip the leading space of empty context lines
            hunk.old_remaining -= 1
            hunk.new_remaining -= 1
        elif line.startswith('\\'):
            pass  # "\ No newline at end of file"
        else:
            return False
        if '\x00' in line:
            raise MalformedDiff("non-textual hunk body")
        return True

    @staticmethod
    def _parse_hunk_header(line: str) -> _HunkState:
        match = HUNK_HEADER.match(line)
        if not match:
            raise MalformedDiff(f"unparsable hunk header {line!r}")
        old_length = int(match.group(1)) if match.group(1) is not None else 1
        new_length = int(match.group(2)) if match.group(2) is not None else 1
        return _HunkState(old_remaining=old_length, new_remaining=new_length)

    @staticmethod
    def _strip_prefix(path: str) -> str:
        path = path.split('\t')[0].strip()
        if path != DEV_NULL and path[:2] in ('a/', 'b/'):
            return path[2:]
        return path

    @staticmethod
    def _path_from_git_header(line: str) -> str:
        # diff --git a/<path> b/<path>
        header = line[len('diff --git '):]
        index = header.rfind(' b/')
        if index == -1:
            return ''
        return header[index + 3:]
