"""
Unit tests for pull request listing and sub-resource retrieval
"""

import threading
import time

import pytest
from unittest.mock import Mock
from conftest import FakeGitHub, raw_pr
from prhygiene.errors import AuthenticationFailed, FetchFailed, NotFound, QuotaExhausted
from prhygiene.fetcher import ResourceFetcher
from prhygiene.models import CommentKind, ReviewState

SIMPLE_DIFF = """diff --git a/src/app.py b/src/app.py
--- a/src/app.py
+++ b/src/app.py
@@ -1,1 +1,2 @@
 import os
+import sys
"""


class TestListPullRequests:
    """Test cases for listing the newest pull requests."""

    def test_merge_prs_are_excluded_before_counting(self):
        """Test that merge PRs do not count toward the limit."""
        github = FakeGitHub(pulls=[
            raw_pr(5, 'Merge develop into main'),
            raw_pr(4),
            raw_pr(3),
            raw_pr(2, 'merge release branch'),
            raw_pr(1),
        ])
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        records = list(fetcher.list_pull_requests(limit=3))
        assert [r.number for r in records] == [4, 3, 1]

    def test_merge_prs_can_be_included(self):
        """Test including merge PRs."""
        github = FakeGitHub(pulls=[raw_pr(5, 'Merge develop into main'), raw_pr(4), raw_pr(3)])
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        records = list(fetcher.list_pull_requests(include_merge_prs=True, limit=2))
        assert [r.number for r in records] == [5, 4]

    def test_fewer_prs_than_limit(self):
        """Test a repository with fewer PRs than requested."""
        github = FakeGitHub(pulls=[raw_pr(2), raw_pr(1)])
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        assert len(list(fetcher.list_pull_requests(limit=100))) == 2

    def test_unusable_payload_is_skipped(self):
        """Test that payloads without a creation date are skipped."""
        broken = raw_pr(3)
        del broken['created_at']
        github = FakeGitHub(pulls=[broken, raw_pr(2), raw_pr(1)])
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        assert [r.number for r in fetcher.list_pull_requests(limit=5)] == [2, 1]

    def test_garbled_creation_date_is_skipped(self):
        """Test that unparsable creation dates are skipped."""
        github = FakeGitHub(pulls=[raw_pr(3, created='last tuesday'), raw_pr(2, created='2024-01-01T09:00:00.250Z')])
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        assert [r.number for r in fetcher.list_pull_requests(limit=5)] == [2]

    def test_missing_repository_is_fatal(self):
        """Test that a missing repository aborts the listing."""
        github = FakeGitHub(pulls_error=NotFound("Resource not found: pulls"))
        fetcher = ResourceFetcher(github, 'octo', 'missing')

        with pytest.raises(NotFound):
            list(fetcher.list_pull_requests())

    def test_vanished_later_page_ends_listing(self):
        """Test that a 404 on a later page ends the listing."""
        def pages(url, params=None):
            yield [raw_pr(n) for n in range(10, 8, -1)]
            raise NotFound("Resource not found: pulls")

        github = Mock()
        github.iter_pages.side_effect = pages
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        records = list(fetcher.list_pull_requests(limit=5))
        assert [r.number for r in records] == [10, 9]

    def test_listing_parameters(self):
        """Test the query parameters of the listing."""
        github = Mock()
        github.iter_pages.return_value = iter([])
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        list(fetcher.list_pull_requests(limit=20, state='all'))
        _, params = github.iter_pages.call_args[0]
        assert params == {'state': 'all', 'sort': 'created', 'direction': 'desc', 'per_page': 20}


class TestFetchSubResources:
    """Test cases for concurrent sub-resource retrieval."""

    @pytest.fixture
    def github(self):
        return FakeGitHub(pulls=[raw_pr(7)], routes={
            'issues/7/comments': [
                {'user': {'login': 'bob'}, 'body': 'Looks good', 'created_at': '2024-01-01T10:00:00Z'},
            ],
            'pulls/7/comments': [
                {'user': {'login': 'carol'}, 'body': 'nit', 'path': 'src/app.py'},
            ],
            'pulls/7/reviews': [
                {'user': {'login': 'dave'}, 'state': 'APPROVED'},
                {'user': {'login': 'erin'}, 'state': 'PENDING'},
            ],
            'pulls/7/commits': [
                {'sha': 'abc', 'commit': {'author': {'date': '2023-12-30T08:00:00Z'}}},
            ],
            'pulls/7.diff': SIMPLE_DIFF,
        })

    def test_collects_every_resource(self, github):
        """Test fetching comments, reviews, commits and diff."""
        fetcher = ResourceFetcher(github, 'octo', 'hello')
        record = fetcher.fetch_pull_request(7)

        resources = fetcher.fetch_sub_resources(record)

        assert [c.kind for c in resources.comments] == [CommentKind.ISSUE, CommentKind.REVIEW]
        assert [r.state for r in resources.reviews] == [ReviewState.APPROVED]
        assert [c.sha for c in resources.commits] == ['abc']
        assert resources.diff_text == SIMPLE_DIFF
        assert resources.warnings == ()

    def test_failed_resource_becomes_partial_warning(self, github):
        """Test that a failed sub-resource becomes a partial-data warning."""
        github.routes['pulls/7.diff'] = FetchFailed("GitHub returned 502", status_code=502)
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        resources = fetcher.fetch_sub_resources(fetcher.fetch_pull_request(7))

        assert resources.diff_text == ''
        assert len(resources.comments) == 2
        assert [(w.pr_number, w.resource) for w in resources.warnings] == [(7, 'diff')]

    @pytest.mark.parametrize('error', [
        AuthenticationFailed("Bad credentials"),
        QuotaExhausted("Reset too far away"),
    ])
    def test_fatal_errors_propagate(self, github, error):
        """Test that authentication and quota errors propagate."""
        github.routes['pulls/7/reviews'] = error
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        with pytest.raises(type(error)):
            fetcher.fetch_sub_resources(fetcher.fetch_pull_request(7))

    def test_fatal_error_does_not_wait_for_siblings(self, github):
        """Test that a fatal sub-resource error surfaces before slow siblings finish."""
        release = threading.Event()

        def slow_comments():
            release.wait(timeout=10)
            return []

        github.routes['issues/7/comments'] = slow_comments
        github.routes['pulls/7/reviews'] = AuthenticationFailed("Bad credentials")
        fetcher = ResourceFetcher(github, 'octo', 'hello')
        record = fetcher.fetch_pull_request(7)

        start = time.monotonic()
        try:
            with pytest.raises(AuthenticationFailed):
                fetcher.fetch_sub_resources(record)
            assert time.monotonic() - start < 2
        finally:
            release.set()

    def test_missing_pull_request(self, github):
        """Test fetching a PR that does not exist."""
        fetcher = ResourceFetcher(github, 'octo', 'hello')

        with pytest.raises(NotFound):
            fetcher.fetch_pull_request(99)
