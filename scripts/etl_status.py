#!/usr/bin/env python
"""
ETL Status Script
Shows recent ETL runs and the configured schedule.
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from apscheduler.triggers.cron import CronTrigger

from kpi_engine.config_manager import ConfigManager
from kpi_engine.database.connection import ANALYTICS_DATABASE, DatabaseConnection
from kpi_engine.database.run_log import RunLog
from kpi_engine.scheduler import DEFAULT_SCHEDULE
from kpi_engine.utils.helpers import format_duration_ms
from kpi_engine.utils.logger import setup_logging, get_logger


def main():
    parser = argparse.ArgumentParser(description='Show recent ETL runs')
    parser.add_argument('--limit', '-n', type=int, default=20, help='Number of runs to show')
    parser.add_argument(
        '--status',
        choices=['RUNNING', 'SUCCESS', 'FAILED'],
        help='Only show runs with this status'
    )

    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    config = ConfigManager()
    scheduler_config = config.get_scheduler_config()
    schedule = str(scheduler_config.get('etl_schedule') or DEFAULT_SCHEDULE)
    timezone = scheduler_config.get('timezone') or 'UTC'

    print(f"Schedule: '{schedule}' ({timezone}), "
          f"{'enabled' if scheduler_config.get('enabled', True) else 'disabled'}")
    try:
        trigger = CronTrigger.from_crontab(schedule, timezone=timezone)
        next_run = trigger.get_next_fire_time(None, datetime.now(trigger.timezone))
        print(f"Next execution: {next_run.isoformat() if next_run else '-'}")
    except ValueError as e:
        print(f"Invalid schedule: {e}")

    db = DatabaseConnection.from_config(ANALYTICS_DATABASE, config)
    try:
        runs = RunLog(db).list_recent(limit=args.limit, status=args.status)

        print(f"\n{'ID':>6}  {'Status':<8}  {'Started':<19}  {'Projects':>8}  {'Sprints':>7}  Duration")
        print('-' * 70)
        for run in runs:
            print(
                f"{run.id:>6}  {run.status:<8}  {run.started_at:%Y-%m-%d %H:%M:%S}  "
                f"{run.projects_processed:>8}  {run.sprints_processed:>7}  "
                f"{format_duration_ms(run.duration_ms)}"
            )
            if run.error_message:
                print(f"        Error: {run.error_message}")

        if not runs:
            print("No ETL runs recorded")

    except Exception as e:
        logger.error(f"Could not read ETL runs: {e}")
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == '__main__':
    main()
