#!/usr/bin/env python
"""
Initialize Database Script
Creates the analytics schema (and, for local development, the source schema).
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import inspect

from kpi_engine.utils.logger import setup_logging, get_logger
from kpi_engine.database.connection import ANALYTICS_DATABASE, SOURCE_DATABASE, DatabaseConnection
from kpi_engine.database.models import AnalyticsBase, SourceBase


def init_schema(section, base, drop, logger):
    """Create (optionally after dropping) one store's tables."""
    db = DatabaseConnection.from_config(section)
    engine = db.engine

    try:
        # Check connection
        if not db.check_connection():
            print(f"Error: Cannot connect to {section}")
            sys.exit(1)

        print(f"Connection to {section} successful")

        if drop:
            confirm = input(f"Are you sure you want to drop all {section} tables? (yes/no): ")
            if confirm.lower() == 'yes':
                logger.warning(f"Dropping all tables in {section}")
                base.metadata.drop_all(engine)
                print("All tables dropped")
            else:
                print("Cancelled")
                sys.exit(0)

        # Create tables
        logger.info(f"Creating tables in {section}")
        base.metadata.create_all(engine)

        tables = inspect(engine).get_table_names()
        print(f"\nTables in {section}: {len(tables)}")
        for table in sorted(tables):
            print(f"  - {table}")
    finally:
        db.dispose()


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description='Initialize database schema')
    parser.add_argument(
        '--drop',
        action='store_true',
        help='Drop existing tables before creating (DANGEROUS)'
    )
    parser.add_argument(
        '--source',
        action='store_true',
        help='Also create the source tables (local development only)'
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging()
    logger = get_logger(__name__)

    try:
        logger.info("Initializing database")

        init_schema(ANALYTICS_DATABASE, AnalyticsBase, args.drop, logger)
        if args.source:
            init_schema(SOURCE_DATABASE, SourceBase, args.drop, logger)

        print(f"\n{'='*50}")
        print("Database Initialized Successfully")
        print(f"{'='*50}")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
