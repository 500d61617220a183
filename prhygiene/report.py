"""Report assembly and display for hygiene analysis results."""

import json
import sys
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, TextIO, Tuple

from .metrics import MetricType, MetricValue, Scorecard
from .models import DataIntegrityWarning, PartialDataWarning

# ANSI color codes
CYAN = '\033[96m'
BOLD = '\033[1m'
RESET = '\033[0m'


@dataclass(frozen=True)
class Report:
    """Result of one analysis run."""
    repository: str
    pr_number: Optional[int]
    pull_requests_analyzed: int
    metrics: Tuple[MetricValue, ...]
    partial_data: Tuple[PartialDataWarning, ...] = ()
    integrity_warnings: Tuple[DataIntegrityWarning, ...] = ()

    @property
    def mode(self) -> str:
        return 'pull_request' if self.pr_number is not None else 'repository'

    def value_of(self, metric: MetricType) -> float:
        for value in self.metrics:
            if value.metric is metric:
                return value.value
        raise KeyError(metric.value)

    def to_dict(self) -> Dict:
        """Render the report as plain data, floats rounded to two decimals."""
        metrics = []
        for metric in self.metrics:
            entry = {'name': metric.name, 'value': _round(metric.value)}
            entry.update({key: _round(value) for key, value in metric.details.items()})
            metrics.append(entry)

        partial_prs = sorted({w.pr_number for w in self.partial_data})
        return {
            'repository': self.repository,
            'mode': self.mode,
            'pr_number': self.pr_number,
            'pull_requests_analyzed': self.pull_requests_analyzed,
            'metrics': metrics,
            'partial_data': {
                'pull_requests': partial_prs,
                'warnings': [
                    {'pr_number': w.pr_number, 'resource': w.resource, 'reason': w.reason}
                    for w in self.partial_data
                ],
            },
            'integrity_warnings': [
                {'pr_number': w.pr_number, 'metric': w.metric, 'value': w.value}
                for w in self.integrity_warnings
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def _round(value):
    if isinstance(value, float):
        return round(value, 2)
    return value


class ReportAssembler:
    """Orders scored metrics into the published report schema."""

    @staticmethod
    def assemble(repository: str, scorecard: Scorecard, pull_requests_analyzed: int,
                 partial_data: Sequence[PartialDataWarning] = (), pr_number: int = None) -> Report:
        order = list(MetricType)
        metrics = tuple(sorted(scorecard.metrics, key=lambda value: order.index(value.metric)))
        return Report(
            repository=repository,
            pr_number=pr_number,
            pull_requests_analyzed=pull_requests_analyzed,
            metrics=metrics,
            partial_data=tuple(sorted(partial_data, key=lambda w: (w.pr_number, w.resource))),
            integrity_warnings=scorecard.integrity_warnings,
        )


def format_legends(use_color: bool = False) -> str:
    """One titled paragraph per metric, in report order."""
    sections = []
    for metric in MetricType:
        rule = '-' * len(metric.value)
        title = f"{BOLD}{CYAN}{metric.value}{RESET}" if use_color else metric.value
        sections.append(f"{rule}\n{title}\n{rule}\n\n{metric.legend}\n")
    return '\n'.join(sections)


class OutputFormatter:
    """Prints analysis reports."""

    def __init__(self, print_legends: bool = False, stream: TextIO = None):
        """Initialize the output formatter.

        Args:
            print_legends: Whether to print the metric legends before the report
            stream: Where to write (defaults to stdout)
        """
        self.print_legends = print_legends
        self.stream = stream or sys.stdout

    def print_report(self, report: Report):
        """Print legends (if enabled) followed by the JSON report."""
        if self.print_legends:
            use_color = hasattr(self.stream, 'isatty') and self.stream.isatty()
            print(format_legends(use_color), file=self.stream)
            print("=" * 80, file=self.stream)

        print(report.to_json(), file=self.stream, flush=True)
