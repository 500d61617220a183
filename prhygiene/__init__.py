"""PR Hygiene Analyzer - A tool for measuring pull request review hygiene."""

from .models import PullRequestData, PullRequestRecord, DiffSummary
from .api_client import GitHubAPIClient
from .rate_budget import RateBudgetGuard
from .fetcher import ResourceFetcher
from .sampler import Sampler
from .diff_classifier import DiffClassifier, TestPathMatcher, DEFAULT_TEST_FILE_PATTERNS
from .metrics import MetricType, MetricsEngine
from .config import AnalysisConfig
from .report import Report, ReportAssembler, OutputFormatter
from .analyzer.core import PullRequestAnalyzer

__all__ = [
    'PullRequestData',
    'PullRequestRecord',
    'DiffSummary',
    'GitHubAPIClient',
    'RateBudgetGuard',
    'ResourceFetcher',
    'Sampler',
    'DiffClassifier',
    'TestPathMatcher',
    'DEFAULT_TEST_FILE_PATTERNS',
    'MetricType',
    'MetricsEngine',
    'AnalysisConfig',
    'Report',
    'ReportAssembler',
    'OutputFormatter',
    'PullRequestAnalyzer',
]
