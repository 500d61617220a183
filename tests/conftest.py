"""
Shared fixtures: an in-memory stand-in for the GitHub API client
"""

import pytest
from prhygiene.api_client import DIFF_MEDIA_TYPE
from prhygiene.errors import NotFound


def raw_pr(number, title=None, user='alice', body='', created='2024-01-01T09:00:00Z',
           closed='2024-01-03T09:00:00Z', merged=None):
    """Build a /pulls payload item."""
    return {
        'number': number,
        'title': title or f'Change {number}',
        'body': body,
        'user': {'login': user},
        'state': 'closed' if closed else 'open',
        'created_at': created,
        'closed_at': closed,
        'merged_at': merged,
        'base': {'ref': 'main'},
        'head': {'ref': f'feature/{number}'},
    }


class FakeGitHub:
    """Serves canned payloads keyed by repository-relative path.

    Paths look like 'pulls/3/reviews'; the diff of a PR is keyed 'pulls/3.diff'.
    A value that is an exception instance is raised instead of returned; a
    callable is invoked and its result served.
    """

    def __init__(self, pulls=(), routes=None, pulls_error=None):
        self.pulls = list(pulls)
        self.routes = dict(routes or {})
        self.pulls_error = pulls_error
        self.calls = []
        self.aborted = False

    def abort(self):
        self.aborted = True

    def repo_url(self, owner, repo, *parts):
        return '/'.join(str(p) for p in parts)

    def _lookup(self, path, default):
        self.calls.append(path)
        value = self.routes.get(path, default)
        if callable(value):
            value = value()
        if isinstance(value, Exception):
            raise value
        return value

    def iter_pages(self, url, params=None):
        self.calls.append(url)
        if self.pulls_error is not None:
            raise self.pulls_error
        per_page = (params or {}).get('per_page', 100)
        for start in range(0, len(self.pulls), per_page):
            yield self.pulls[start:start + per_page]

    def get(self, url, params=None, media_type=None):
        if media_type == DIFF_MEDIA_TYPE:
            return self._lookup(url + '.diff', '')
        if url.startswith('pulls/') and url.count('/') == 1 and url not in self.routes:
            number = int(url.split('/')[1])
            for pr in self.pulls:
                if pr['number'] == number:
                    self.calls.append(url)
                    return pr
            raise NotFound(f"Resource not found: {url}")
        return self._lookup(url, None)

    def get_paginated(self, url, params=None, should_continue=None):
        return self._lookup(url, [])


@pytest.fixture
def fake_github():
    return FakeGitHub()
