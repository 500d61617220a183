"""Exception types raised while sampling and analyzing pull requests."""

from typing import Optional


class AnalysisError(Exception):
    """Base class for every error raised by the analyzer."""


class InvalidConfiguration(AnalysisError):
    """Raised before any request is issued when the configuration is unusable."""


class AuthenticationFailed(AnalysisError):
    """Raised when GitHub rejects the supplied credential (401/403)."""


class NotFound(AnalysisError):
    """Raised when the requested repository or pull request does not exist."""


class FetchFailed(AnalysisError):
    """A single request ended with a non-2xx status or a network error."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: str = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class InvalidRecord(AnalysisError):
    """A remote payload is missing fields every record must carry."""


class RateLimited(AnalysisError):
    """GitHub reported that the request quota is exhausted."""

    def __init__(self, message: str, reset_at: float):
        super().__init__(message)
        self.reset_at = reset_at


class QuotaExhausted(AnalysisError):
    """Raised when waiting for the quota to reset would take too long."""


class AnalysisAborted(AnalysisError):
    """Raised in worker threads once the run has been abandoned."""


class MalformedDiff(AnalysisError):
    """A diff fragment could not be parsed."""


FATAL_ERRORS = (InvalidConfiguration, AuthenticationFailed, QuotaExhausted, AnalysisAborted)
