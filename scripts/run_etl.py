#!/usr/bin/env python
"""
Run ETL Script
Command-line script for a manual KPI snapshot run.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from kpi_engine.utils.logger import setup_logging, get_logger
from kpi_engine.utils.helpers import format_duration_ms
from kpi_engine.service import run_etl


def main():
    """Main entry point for ETL script."""
    parser = argparse.ArgumentParser(description='Run the KPI snapshot ETL once')
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging()
    logger = get_logger(__name__)
    if args.verbose:
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)

    try:
        logger.info("Starting manual ETL run")

        result = run_etl()

        print(f"\n{'='*50}")
        print("ETL Run Complete")
        print(f"{'='*50}")
        print(f"Run ID: {result.run_id}")
        print(f"Status: {result.status}")
        print(f"Projects Processed: {result.projects_processed} ({result.projects_failed} failed)")
        print(f"Sprints Processed: {result.sprints_processed} ({result.sprints_failed} failed)")
        print(f"Duration: {format_duration_ms(result.duration_ms)}")

    except Exception as e:
        logger.error(f"ETL failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
