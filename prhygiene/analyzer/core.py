"""Main pull request hygiene analyzer."""

import logging
import time

from ..api_client import GitHubAPIClient
from ..config import AnalysisConfig
from ..diff_classifier import DiffClassifier, TestPathMatcher
from ..errors import NotFound
from ..fetcher import ResourceFetcher
from ..metrics import MetricsEngine
from ..rate_budget import ANONYMOUS_REQUESTS_PER_HOUR, AUTHENTICATED_REQUESTS_PER_HOUR, RateBudgetGuard
from ..report import Report, ReportAssembler
from ..sampler import Sampler


class PullRequestAnalyzer:
    """Samples pull requests of one repository and computes their hygiene metrics."""

    def __init__(
        self,
        config: AnalysisConfig,
        api_client: GitHubAPIClient = None,
        diff_classifier: DiffClassifier = None,
        show_progress: bool = None
    ):
        """Initialize the analyzer.

        Args:
            config: Validated analysis settings
            api_client: GitHub client (built from the config if omitted)
            diff_classifier: Diff classifier (built from the config's test patterns if omitted)
            show_progress: Whether to print progress lines (defaults to not silent mode)
        """
        self.config = config
        if api_client is None:
            rate_guard = RateBudgetGuard(
                AUTHENTICATED_REQUESTS_PER_HOUR if config.token else ANONYMOUS_REQUESTS_PER_HOUR,
                max_concurrent_requests=config.max_concurrent_requests,
                max_wait_seconds=config.max_rate_limit_wait,
            )
            api_client = GitHubAPIClient(config.token, rate_guard)
        self.api_client = api_client
        self.fetcher = ResourceFetcher(api_client, config.owner, config.repo)
        self.sampler = Sampler(self.fetcher)
        self.diff_classifier = diff_classifier or DiffClassifier(TestPathMatcher(config.test_file_patterns))
        self.metrics_engine = MetricsEngine(config.undefined_flow_ratio)
        self.show_progress = not config.silent_mode if show_progress is None else show_progress

        logging.info(f"Initialized analyzer for repository '{config.repository}'")

    def run(self) -> Report:
        """Analyze the configured PR or repository sample.

        Returns:
            The finished report

        Raises:
            InvalidConfiguration: Before any request, for unusable settings
            AuthenticationFailed, NotFound, QuotaExhausted: Fatal errors; no report is produced
        """
        self.config.validate()
        if self.config.is_individual:
            return self.analyze_pull_request(self.config.pr_number)
        return self.analyze_repository()

    def analyze_repository(self) -> Report:
        """Analyze the newest sample_size PRs of the repository."""
        start = time.monotonic()
        config = self.config

        records = self.sampler.sample(
            sample_size=config.sample_size,
            include_merge_prs=config.include_merge_prs,
            state=config.pr_state,
        )
        if not records:
            logging.warning(f"No pull requests found for repository: {config.repository}")

        prs = self._process_prs_parallel(records)
        scorecard = self.metrics_engine.score_repository(prs)

        logging.info(f"Time elapsed analyzing {config.repository}: {time.monotonic() - start:.1f}s")
        return ReportAssembler.assemble(
            config.repository,
            scorecard,
            pull_requests_analyzed=len(prs),
            partial_data=[w for pr in prs for w in pr.warnings],
        )

    def analyze_pull_request(self, pr_number: int) -> Report:
        """Analyze a single PR; the report carries its literal metric values."""
        start = time.monotonic()
        config = self.config

        records = self.sampler.sample(pr_number=pr_number)
        prs = self._process_prs_parallel(records)
        if not prs:
            raise NotFound(f"Pull request {config.repository}#{pr_number} could not be analyzed")

        pr = prs[0]
        scorecard = self.metrics_engine.score_pull_request(pr)

        logging.info(f"Time elapsed analyzing {config.repository}#{pr_number}: {time.monotonic() - start:.1f}s")
        return ReportAssembler.assemble(
            config.repository,
            scorecard,
            pull_requests_analyzed=1,
            partial_data=pr.warnings,
            pr_number=pr_number,
        )


# Import and attach methods from submodules
from .pr_processing import _process_prs_parallel, _analyze_pr

# Attach methods to class
PullRequestAnalyzer._process_prs_parallel = _process_prs_parallel
PullRequestAnalyzer._analyze_pr = _analyze_pr
