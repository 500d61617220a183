"""Selection of the pull requests that enter an analysis."""

import logging
from typing import List, Optional

from .errors import InvalidConfiguration
from .fetcher import ResourceFetcher
from .models import PullRequestRecord


def validate_sample_size(sample_size) -> int:
    """Ensure the sample size is a positive integer.

    Raises:
        InvalidConfiguration: For zero, negative or non-integer values
    """
    # bool is an int subclass but never a meaningful sample size
    if isinstance(sample_size, bool) or not isinstance(sample_size, int):
        raise InvalidConfiguration(f"Sample size must be a positive integer, got {sample_size!r}")
    if sample_size <= 0:
        raise InvalidConfiguration(f"Sample size must be a positive integer, got {sample_size}")
    return sample_size


def validate_pr_number(pr_number) -> Optional[int]:
    if pr_number is None:
        return None
    if isinstance(pr_number, bool) or not isinstance(pr_number, int) or pr_number <= 0:
        raise InvalidConfiguration(f"PR number must be a positive integer, got {pr_number!r}")
    return pr_number


class Sampler:
    """Decides which pull requests are fetched for analysis."""

    def __init__(self, fetcher: ResourceFetcher):
        self.fetcher = fetcher

    def sample(self, sample_size: int = 100, pr_number: int = None, include_merge_prs: bool = False,
               state: str = 'closed') -> List[PullRequestRecord]:
        """Resolve the target PR set.

        Individual mode (pr_number given) returns exactly that PR; repository
        mode returns the sample_size newest PRs, without merge PRs unless
        include_merge_prs is set. Arguments are validated before any request.

        Args:
            sample_size: Number of PRs in repository mode
            pr_number: A specific PR to analyze (individual mode)
            include_merge_prs: Whether merge PRs count toward the sample
            state: PR state filter for repository mode

        Returns:
            The PR records to analyze

        Raises:
            InvalidConfiguration: For an invalid sample size or PR number
            NotFound: If the PR or repository does not exist
        """
        pr_number = validate_pr_number(pr_number)
        if pr_number is not None:
            logging.info(f"Analyzing {self.fetcher.repository} PR #{pr_number}")
            return [self.fetcher.fetch_pull_request(pr_number)]

        sample_size = validate_sample_size(sample_size)
        logging.info(f"Sampling the {sample_size} newest {state} PRs of {self.fetcher.repository}"
                     f"{'' if include_merge_prs else ' (excluding merge PRs)'}")
        return list(self.fetcher.list_pull_requests(include_merge_prs, sample_size, state))
