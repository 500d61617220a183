#!/usr/bin/env python3
"""
PR Hygiene Analyzer
Samples pull requests of a GitHub repository and reports review hygiene metrics.
"""

import os
import sys
import logging
from dotenv import load_dotenv

from prhygiene.analyzer import PullRequestAnalyzer
from prhygiene.config import AnalysisConfig
from prhygiene.errors import AnalysisError
from prhygiene.report import OutputFormatter

# Configure logging (can be overridden by LOG_LEVEL environment variable)
log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s %(levelname)s: %(message)s',
    datefmt='%m/%d/%Y %I:%M:%S %p'
)


def main():
    """Main entry point for the script."""
    # Load environment variables from .env file if it exists
    load_dotenv()

    try:
        config = AnalysisConfig.from_env()
    except AnalysisError as e:
        logging.error(str(e))
        sys.exit(1)

    # Piped output carries only the JSON report
    if not sys.stdout.isatty():
        config.silent_mode = True
    if config.silent_mode:
        logging.disable(logging.WARNING)
    else:
        print("PR Hygiene Analyzer")
        print("=" * 80)

    if config.is_individual:
        logging.info(f"Starting analysis of {config.repository}#{config.pr_number}")
    else:
        logging.info(f"Starting analysis of the last {config.sample_size} PRs of {config.repository}")

    try:
        report = PullRequestAnalyzer(config).run()
    except AnalysisError as e:
        logging.error(f"Error analyzing {config.repository}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logging.warning("Analysis interrupted, no report produced")
        sys.exit(130)

    logging.info("Analysis complete, generating report...")
    OutputFormatter(config.print_legends).print_report(report)


if __name__ == "__main__":
    main()
