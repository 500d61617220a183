"""
Analysis configuration.

Settings come from environment variables (optionally loaded from a .env
file by the entry point) and are validated before any request is made.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from .errors import InvalidConfiguration
from .rate_budget import DEFAULT_MAX_CONCURRENT_REQUESTS, DEFAULT_MAX_WAIT_SECONDS
from .sampler import validate_pr_number, validate_sample_size

DEFAULT_SAMPLE_SIZE = 100
DEFAULT_MAX_WORKERS = 10
VALID_PR_STATES = ('closed', 'open', 'all')

TRUE_VALUES = ('true', '1', 'yes')


@dataclass
class AnalysisConfig:
    """Validated settings of one analysis run."""
    owner: str
    repo: str
    token: Optional[str] = None
    sample_size: int = DEFAULT_SAMPLE_SIZE
    pr_number: Optional[int] = None
    include_merge_prs: bool = False
    pr_state: str = 'closed'
    max_workers: int = DEFAULT_MAX_WORKERS
    max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS
    max_rate_limit_wait: float = DEFAULT_MAX_WAIT_SECONDS
    test_file_patterns: Optional[List[str]] = None
    undefined_flow_ratio: float = 0.0
    print_legends: bool = False
    silent_mode: bool = False

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def is_individual(self) -> bool:
        """Whether a single PR is analyzed instead of a repository sample."""
        return self.pr_number is not None

    def validate(self) -> 'AnalysisConfig':
        """Check every setting.

        Returns:
            self, for chaining

        Raises:
            InvalidConfiguration: On the first invalid setting
        """
        if not self.owner or not self.owner.strip():
            raise InvalidConfiguration("Repository owner is required")
        if not self.repo or not self.repo.strip():
            raise InvalidConfiguration("Repository name is required")

        validate_sample_size(self.sample_size)
        validate_pr_number(self.pr_number)

        if self.pr_state not in VALID_PR_STATES:
            raise InvalidConfiguration(
                f"Invalid PR state '{self.pr_state}'; valid options: {', '.join(VALID_PR_STATES)}"
            )
        if self.max_workers <= 0:
            raise InvalidConfiguration(f"Worker count must be positive, got {self.max_workers}")
        if self.max_concurrent_requests <= 0:
            raise InvalidConfiguration(
                f"Concurrent request ceiling must be positive, got {self.max_concurrent_requests}"
            )
        if self.max_rate_limit_wait < 0:
            raise InvalidConfiguration(f"Rate limit wait must not be negative, got {self.max_rate_limit_wait}")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> 'AnalysisConfig':
        """Build a configuration from environment variables.

        Args:
            environ: Variables to read (defaults to os.environ)

        Returns:
            A validated AnalysisConfig

        Raises:
            InvalidConfiguration: If a required variable is missing or a value does not parse
        """
        env = os.environ if environ is None else environ

        owner = env.get('GITHUB_OWNER', '').strip()
        repo = env.get('GITHUB_REPO', '').strip()
        repository = env.get('GITHUB_REPOSITORY', '').strip()
        if repository and not (owner and repo):
            # GITHUB_REPOSITORY uses the owner/repo format
            if repository.count('/') != 1:
                raise InvalidConfiguration(f"GITHUB_REPOSITORY must look like owner/repo, got '{repository}'")
            owner, repo = (part.strip() for part in repository.split('/'))

        patterns_env = env.get('TEST_FILE_PATTERNS')
        test_file_patterns = None
        if patterns_env:
            # Parse comma-separated list from environment
            test_file_patterns = [p.strip() for p in patterns_env.split(',') if p.strip()]
            logging.info(f"Using custom test file patterns: {', '.join(test_file_patterns)}")

        config = cls(
            owner=owner,
            repo=repo,
            token=env.get('GITHUB_TOKEN') or None,
            sample_size=_parse_int(env, 'SAMPLE_SIZE', DEFAULT_SAMPLE_SIZE),
            pr_number=_parse_int(env, 'PR_NUMBER', None),
            include_merge_prs=_parse_flag(env, 'INCLUDE_MERGE_PRS'),
            pr_state=env.get('PR_STATE', 'closed').strip().lower(),
            max_workers=_parse_int(env, 'MAX_WORKERS', DEFAULT_MAX_WORKERS),
            max_concurrent_requests=_parse_int(env, 'MAX_CONCURRENT_REQUESTS', DEFAULT_MAX_CONCURRENT_REQUESTS),
            max_rate_limit_wait=_parse_float(env, 'MAX_RATE_LIMIT_WAIT', DEFAULT_MAX_WAIT_SECONDS),
            test_file_patterns=test_file_patterns,
            undefined_flow_ratio=_parse_float(env, 'UNDEFINED_FLOW_RATIO', 0.0),
            print_legends=_parse_flag(env, 'PRINT_LEGENDS'),
            silent_mode=_parse_flag(env, 'SILENT_MODE'),
        )
        return config.validate()


def _parse_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, 'false').strip().lower() in TRUE_VALUES


def _parse_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    value = env.get(name, '').strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidConfiguration(f"Invalid {name} value '{value}': expected an integer") from None


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name, '').strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise InvalidConfiguration(f"Invalid {name} value '{value}': expected a number") from None
