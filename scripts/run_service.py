#!/usr/bin/env python
"""
Run Service Script
Starts the KPI engine with its cron schedule and blocks until interrupted.
"""

import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from kpi_engine.service import start_service, stop_service
from kpi_engine.utils.logger import get_logger


def main():
    service = start_service()
    logger = get_logger(__name__)

    health = service.health_check()
    logger.info(f"Engine status: {health['status']}, next run: {health['scheduler']['next_execution']}")

    try:
        while True:
            time.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutdown requested")
    finally:
        stop_service(service)


if __name__ == '__main__':
    main()
