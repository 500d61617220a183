"""GitHub API client for making rate-aware requests and handling pagination."""

import os
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import AuthenticationFailed, FetchFailed, NotFound, RateLimited
from .rate_budget import (
    ANONYMOUS_REQUESTS_PER_HOUR,
    AUTHENTICATED_REQUESTS_PER_HOUR,
    RateBudgetGuard,
    RateLimitInfo,
)

GITHUB_API_URL = 'https://api.github.com'
JSON_MEDIA_TYPE = 'application/vnd.github.v3+json'
DIFF_MEDIA_TYPE = 'application/vnd.github.v3.diff'
PER_PAGE = 100

# Fallback wait when a secondary rate limit carries no reset information
DEFAULT_RATE_LIMIT_BACKOFF = 60


class ApiResponse(NamedTuple):
    """Status, decoded body and quota headers of one GitHub response."""
    status_code: int
    body: Any
    rate_limit: Optional[RateLimitInfo]


class GitHubAPIClient:
    """Issues GET requests against the GitHub REST API through a RateBudgetGuard."""

    def __init__(self, token: str = None, rate_guard: RateBudgetGuard = None,
                 base_url: str = GITHUB_API_URL, pool_size: int = 50):
        """Initialize the GitHub API client.

        Args:
            token: GitHub personal access token for authentication
            rate_guard: Shared quota guard (one is created from the token if omitted)
            base_url: Root of the REST API
            pool_size: Maximum number of pooled HTTP connections
        """
        # Use provided token or fall back to environment variable
        self.token = token or os.environ.get('GITHUB_TOKEN')
        self.base_url = base_url.rstrip('/')
        self.rate_guard = rate_guard or RateBudgetGuard(
            AUTHENTICATED_REQUESTS_PER_HOUR if self.token else ANONYMOUS_REQUESTS_PER_HOUR
        )
        self.session = requests.Session()

        # Pool sized for outer PR workers times inner sub-resource workers.
        # Only rate limits re-issue a request, so the adapter never retries.
        adapter = HTTPAdapter(
            pool_connections=pool_size,
            pool_maxsize=pool_size,
            max_retries=Retry(total=0, raise_on_status=False)
        )
        self.session.mount('https://', adapter)
        self.session.mount('http://', adapter)
        self.session.headers.update({'Accept': JSON_MEDIA_TYPE})

        if self.token:
            self.session.headers.update({'Authorization': f'token {self.token}'})
            logging.info("Initialized GitHub API client with token")
        else:
            logging.warning("No GitHub token provided. Rate limits will be much lower.")
            logging.warning("Set GITHUB_TOKEN environment variable or pass token as argument.")

    def abort(self):
        """Stop issuing requests; callers waiting on the rate guard fail with AnalysisAborted."""
        self.rate_guard.cancel()

    def repo_url(self, owner: str, repo: str, *parts) -> str:
        """Build an API URL below /repos/{owner}/{repo}."""
        return '/'.join([self.base_url, 'repos', owner, repo] + [str(p) for p in parts])

    def get_json(self, url: str, params: Dict = None, media_type: str = None) -> ApiResponse:
        """Perform one authenticated GET, waiting out rate limits.

        A rate-limited response pauses the shared guard until the reported
        reset and the request is issued again; any other status is returned
        to the caller untouched.

        Args:
            url: The API endpoint URL
            params: Query parameters
            media_type: Accept header override (e.g. the diff media type)

        Returns:
            ApiResponse with the decoded JSON body (or raw text for non-JSON media types)

        Raises:
            FetchFailed: On network errors
            QuotaExhausted: If the rate limit reset is too far away
        """
        headers = {'Accept': media_type} if media_type else None

        while True:
            with self.rate_guard.slot():
                logging.debug(f"GET {url} {params or ''}")
                try:
                    response = self.session.get(url, params=params, headers=headers)
                except requests.exceptions.RequestException as e:
                    raise FetchFailed(f"Request to {url} failed: {e}", url=url) from e

            rate_limit = RateLimitInfo.from_headers(response.headers)
            self.rate_guard.update(rate_limit)

            try:
                self._check_rate_limited(response, rate_limit)
            except RateLimited as e:
                self.rate_guard.pause_until(e.reset_at)
                continue

            return ApiResponse(response.status_code, self._decode(response, media_type), rate_limit)

    def get(self, url: str, params: Dict = None, media_type: str = None) -> Any:
        """Fetch a resource and raise on any non-2xx status.

        Raises:
            AuthenticationFailed: On 401 or (non rate limit) 403
            NotFound: On 404
            FetchFailed: On any other non-2xx status
        """
        status_code, body, _ = self.get_json(url, params, media_type)
        raise_for_status(status_code, body, url)
        return body

    def iter_pages(self, url: str, params: Dict = None) -> Iterator[List[Dict]]:
        """Lazily yield pages of a paginated GitHub API endpoint.

        Args:
            url: The API endpoint URL
            params: Query parameters

        Yields:
            One list of items per page, until a short or empty page
        """
        page = 1
        params = dict(params or {})
        per_page = params.setdefault('per_page', PER_PAGE)

        while True:
            params['page'] = page
            logging.debug(f"Fetching page {page} from {url}")
            data = self.get(url, params)

            if not data:
                break
            if not isinstance(data, list):
                raise FetchFailed(f"Expected a list from {url}, got {type(data).__name__}", url=url)

            yield data

            # Check if there are more pages
            if len(data) < per_page:
                break

            page += 1

    def get_paginated(self, url: str, params: Dict = None,
                      should_continue: Optional[Callable[[List[Dict]], bool]] = None) -> List[Dict]:
        """Fetch all pages of a paginated GitHub API endpoint.

        Args:
            url: The API endpoint URL
            params: Query parameters
            should_continue: Optional callback function that takes a page of results and returns
                           False to stop pagination early, True to continue

        Returns:
            List of all items from all pages
        """
        results = []

        for page_number, data in enumerate(self.iter_pages(url, params), start=1):
            results.extend(data)

            # Check early termination callback
            if should_continue and not should_continue(data):
                logging.debug(f"Early termination triggered at page {page_number}")
                break

        logging.debug(f"Fetched {len(results)} total items from {url}")
        return results

    def _check_rate_limited(self, response: requests.Response, rate_limit: Optional[RateLimitInfo]):
        """Raise RateLimited if response is a primary or secondary rate limit rejection."""
        if response.status_code not in (403, 429):
            return

        retry_after = response.headers.get('Retry-After')
        exhausted = rate_limit is not None and rate_limit.is_exceeded
        mentions_limit = 'rate limit' in (response.text or '').lower()

        if response.status_code == 403 and not (exhausted or mentions_limit or retry_after):
            return

        now = time.time()
        if retry_after and retry_after.isdigit():
            reset_at = now + int(retry_after)
        elif rate_limit is not None and rate_limit.reset_timestamp > now:
            reset_at = rate_limit.reset_timestamp
        else:
            reset_at = now + DEFAULT_RATE_LIMIT_BACKOFF

        raise RateLimited(f"Rate limit exceeded for {response.url}", reset_at)

    @staticmethod
    def _decode(response: requests.Response, media_type: Optional[str]) -> Any:
        """Decode the body as JSON unless a raw media type was requested."""
        if media_type and not media_type.endswith('json'):
            return response.text
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text


def raise_for_status(status_code: int, body: Any, url: str):
    """Map a non-2xx status to the analyzer's error taxonomy."""
    if 200 <= status_code < 300:
        return

    message = body.get('message', '') if isinstance(body, dict) else ''
    if status_code in (401, 403):
        raise AuthenticationFailed(f"GitHub rejected the credential for {url} ({status_code}): {message}")
    if status_code == 404:
        raise NotFound(f"Resource not found: {url}")
    raise FetchFailed(f"GitHub returned {status_code} for {url}: {message}", status_code=status_code, url=url)
