"""
Unit tests for diff parsing and test/production classification
"""

import pytest
from prhygiene.diff_classifier import DiffClassifier, TestPathMatcher


def file_diff(path, added=0, removed=0):
    """Build a well-formed git diff section for one file."""
    lines = [
        f"diff --git a/{path} b/{path}",
        "index 1111111..2222222 100644",
        f"--- a/{path}",
        f"+++ b/{path}",
        f"@@ -1,{removed + 1} +1,{added + 1} @@",
        " context",
    ]
    lines += [f"-old line {i}" for i in range(removed)]
    lines += [f"+new line {i}" for i in range(added)]
    return '\n'.join(lines) + '\n'


class TestTestPathMatcher:
    """Test cases for TestPathMatcher."""

    @pytest.mark.parametrize('path', [
        'tests/test_app.py',
        'src/module/tests/helpers.py',
        'test_models.py',
        'pkg/models_test.go',
        'web/src/App.test.tsx',
        'web/src/App.spec.js',
        'src/test/java/com/acme/ServiceTest.java',
        'conftest.py',
    ])
    def test_default_patterns_match_tests(self, path):
        """Test that conventional test paths are recognized."""
        assert TestPathMatcher()(path)

    @pytest.mark.parametrize('path', [
        'src/app.py',
        'README.md',
        'src/contest/results.py',
        'docs/testing-guide.md',
    ])
    def test_default_patterns_skip_production(self, path):
        """Test that production paths are not mistaken for tests."""
        assert not TestPathMatcher()(path)

    def test_custom_patterns(self):
        """Test matching with custom patterns."""
        matcher = TestPathMatcher(['qa/*'])
        assert matcher('qa/login_check.py')
        assert not matcher('tests/test_app.py')


class TestDiffClassifier:
    """Test cases for DiffClassifier."""

    def test_test_and_production_lines(self):
        """Test splitting changed lines into test and production."""
        diff = file_diff('src/app.py', added=15, removed=5) + file_diff('tests/test_app.py', added=10)

        summary = DiffClassifier().classify(diff)

        assert summary.production_lines == 20
        assert summary.test_lines == 10
        assert summary.test_lines / summary.production_lines == 0.5
        assert summary.malformed_fragments == 0

    def test_file_paths_in_diff_order(self):
        """Test that files are reported in diff order."""
        diff = file_diff('b.py', added=1) + file_diff('a.py', removed=1)

        summary = DiffClassifier().classify(diff)

        assert [h.path for h in summary.hunks] == ['b.py', 'a.py']
        assert [(h.added, h.removed) for h in summary.hunks] == [(1, 0), (0, 1)]

    def test_multiple_hunks_per_file(self):
        """Test summing several hunks of one file."""
        diff = (
            "diff --git a/app.py b/app.py\n"
            "--- a/app.py\n"
            "+++ b/app.py\n"
            "@@ -1,2 +1,3 @@\n"
            " a\n"
            "+b\n"
            " c\n"
            "@@ -10,2 +11,1 @@\n"
            "-x\n"
            " y\n"
        )
        hunk, = DiffClassifier().classify(diff).hunks
        assert (hunk.added, hunk.removed) == (1, 1)

    def test_new_and_deleted_files(self):
        """Test paths of added and deleted files."""
        diff = (
            "diff --git a/new.py b/new.py\n"
            "new file mode 100644\n"
            "--- /dev/null\n"
            "+++ b/new.py\n"
            "@@ -0,0 +1,2 @@\n"
            "+one\n"
            "+two\n"
            "diff --git a/old.py b/old.py\n"
            "deleted file mode 100644\n"
            "--- a/old.py\n"
            "+++ /dev/null\n"
            "@@ -1 +0,0 @@\n"
            "-gone\n"
        )
        summary = DiffClassifier().classify(diff)
        assert [(h.path, h.added, h.removed) for h in summary.hunks] == [('new.py', 2, 0), ('old.py', 0, 1)]

    def test_binary_file_has_no_line_counts(self):
        """Test that binary files count as attachments without lines."""
        diff = (
            "diff --git a/docs/screenshot.png b/docs/screenshot.png\n"
            "new file mode 100644\n"
            "index 0000000..3333333\n"
            "Binary files /dev/null and b/docs/screenshot.png differ\n"
        ) + file_diff('src/app.py', added=3)

        summary = DiffClassifier().classify(diff)

        binary = summary.hunks[0]
        assert binary.path == 'docs/screenshot.png'
        assert binary.is_binary
        assert binary.changes == 0
        assert summary.attachment_files == 1
        assert summary.total_changes == 3

    def test_nul_bytes_mark_file_binary(self):
        """Test that NUL bytes in a hunk mark the file binary."""
        diff = (
            "diff --git a/blob.dat b/blob.dat\n"
            "--- a/blob.dat\n"
            "+++ b/blob.dat\n"
            "@@ -1,1 +1,1 @@\n"
            "-\x00\x01\x02\n"
            "+\x00\x03\x04\n"
        )
        hunk, = DiffClassifier().classify(diff).hunks
        assert hunk.is_binary
        assert hunk.changes == 0

    def test_truncated_hunk_is_skipped(self):
        """Test that a truncated hunk is skipped and the rest still counted."""
        truncated = (
            "diff --git a/broken.py b/broken.py\n"
            "--- a/broken.py\n"
            "+++ b/broken.py\n"
            "@@ -1,5 +1,5 @@\n"
            "+only one line survived\n"
        )
        diff = file_diff('src/app.py', added=4) + truncated + file_diff('src/other.py', removed=2)

        summary = DiffClassifier().classify(diff)

        assert summary.malformed_fragments == 1
        assert summary.total_changes == 6
        broken = [h for h in summary.hunks if h.path == 'broken.py'][0]
        assert broken.changes == 0

    def test_garbage_hunk_header(self):
        """Test handling of an unparsable hunk header."""
        diff = (
            "diff --git a/app.py b/app.py\n"
            "--- a/app.py\n"
            "+++ b/app.py\n"
            "@@ nonsense @@\n"
        )
        summary = DiffClassifier().classify(diff)
        assert summary.malformed_fragments == 1

    def test_no_newline_marker(self):
        """Test that no-newline markers are not counted."""
        diff = (
            "diff --git a/app.py b/app.py\n"
            "--- a/app.py\n"
            "+++ b/app.py\n"
            "@@ -1 +1 @@\n"
            "-old\n"
            "\\ No newline at end of file\n"
            "+new\n"
            "\\ No newline at end of file\n"
        )
        hunk, = DiffClassifier().classify(diff).hunks
        assert (hunk.added, hunk.removed) == (1, 1)

    def test_rename_without_content(self):
        """Test a pure rename."""
        diff = (
            "diff --git a/old/name.py b/new/name.py\n"
            "similarity index 100%\n"
            "rename from old/name.py\n"
            "rename to new/name.py\n"
        )
        hunk, = DiffClassifier().classify(diff).hunks
        assert hunk.path == 'new/name.py'
        assert hunk.changes == 0

    def test_plain_unified_diff(self):
        """Test a diff without git headers."""
        diff = (
            "--- a/one.py\n"
            "+++ b/one.py\n"
            "@@ -1 +1,2 @@\n"
            " x\n"
            "+y\n"
            "--- a/tests/test_one.py\n"
            "+++ b/tests/test_one.py\n"
            "@@ -1 +1,2 @@\n"
            " x\n"
            "+y\n"
        )
        summary = DiffClassifier().classify(diff)
        assert summary.production_lines == 1
        assert summary.test_lines == 1

    def test_custom_predicate(self):
        """Test classification with an injected predicate."""
        diff = file_diff('checks/login.py', added=4) + file_diff('src/app.py', added=2)

        summary = DiffClassifier(lambda path: path.startswith('checks/')).classify(diff)

        assert summary.test_lines == 4
        assert summary.production_lines == 2

    @pytest.mark.parametrize('diff_text', ['', None])
    def test_empty_diff(self, diff_text):
        """Test empty and missing diff text."""
        summary = DiffClassifier().classify(diff_text)
        assert summary.hunks == ()
        assert summary.malformed_fragments == 0

    def test_form_feed_is_line_content(self):
        """Test that a form feed inside a line does not split it."""
        diff = (
            "diff --git a/src/module.py b/src/module.py\n"
            "--- a/src/module.py\n"
            "+++ b/src/module.py\n"
            "@@ -0,0 +1,3 @@\n"
            "+import os\n"
            "+\x0c\n"
            "+import sys\n"
        )
        summary = DiffClassifier().classify(diff)

        hunk, = summary.hunks
        assert hunk.added == 3
        assert summary.malformed_fragments == 0

    def test_unicode_line_separator_is_line_content(self):
        """Test that Unicode separators inside a line do not split it."""
        diff = (
            "diff --git a/web/x.js b/web/x.js\n"
            "--- a/web/x.js\n"
            "+++ b/web/x.js\n"
            "@@ -0,0 +1,2 @@\n"
            "+const s = 'a\u2028b\x85c';\n"
            "+export default s;\n"
        )
        summary = DiffClassifier().classify(diff)

        hunk, = summary.hunks
        assert hunk.added == 2
        assert summary.malformed_fragments == 0

    def test_crlf_line_endings(self):
        """Test diffs with CRLF line endings."""
        diff = file_diff('src/app.py', added=2, removed=1).replace('\n', '\r\n')

        hunk, = DiffClassifier().classify(diff).hunks
        assert hunk.path == 'src/app.py'
        assert (hunk.added, hunk.removed) == (2, 1)

    def test_binary_hunk_body_never_renames_file(self):
        """Test that header-like lines inside a binary hunk are treated as body."""
        diff = (
            "diff --git a/blob.dat b/blob.dat\n"
            "--- a/blob.dat\n"
            "+++ b/blob.dat\n"
            "@@ -1,1 +1,3 @@\n"
            "-\x00old\n"
            "+\x00new\n"
            "+++ other.dat\n"
            "+rename to elsewhere.dat\n"
        ) + file_diff('src/app.py', added=1)

        summary = DiffClassifier().classify(diff)

        assert [h.path for h in summary.hunks] == ['blob.dat', 'src/app.py']
        assert summary.hunks[0].is_binary
        assert summary.malformed_fragments == 0
        assert summary.total_changes == 1
