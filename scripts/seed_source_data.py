#!/usr/bin/env python
"""
Seed Source Data Script
Inserts demo projects, columns, tasks, sprints and state history into the
source database so the ETL has something to measure in local development.
"""

import argparse
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from kpi_engine.utils.logger import setup_logging, get_logger
from kpi_engine.database.connection import SOURCE_DATABASE, DatabaseConnection
from kpi_engine.database.models import (
    KanbanColumn, Project, SourceBase, Sprint, Task, TaskStateHistory, User
)

COLUMN_NAMES = ['Por hacer', 'En progreso', 'Hecho']

USERS = ['Juan Pérez', 'María García', 'Pedro López', 'Ana Martínez', 'Carlos Ruiz']

PROJECTS = [
    # name, start offset (days before today), length (days), task count
    ('Proyecto Demo 1', 60, 90, 18),
    ('Proyecto Demo 2', 30, 120, 12),
    ('Proyecto Demo 3', 100, 80, 9),
]


def seed_project(session, name, started_days_ago, length_days, task_count, users):
    """Create one project with its board, two sprints and tasks."""
    today = date.today()
    start = today - timedelta(days=started_days_ago)

    project = Project(name=name, start_date=start, end_date=start + timedelta(days=length_days), status='ACTIVE')
    session.add(project)
    session.flush()

    columns = [KanbanColumn(project_id=project.id, name=n, position=i) for i, n in enumerate(COLUMN_NAMES)]
    session.add_all(columns)
    session.flush()
    todo, in_progress, done = columns

    sprints = [
        Sprint(project_id=project.id, name='Sprint 1', start_date=start,
               end_date=start + timedelta(days=14), status='COMPLETED'),
        Sprint(project_id=project.id, name='Sprint 2', start_date=start + timedelta(days=15),
               end_date=start + timedelta(days=29), status='ACTIVE'),
    ]
    session.add_all(sprints)
    session.flush()

    created_base = datetime.combine(start, datetime.min.time()) + timedelta(hours=9)

    for i in range(task_count):
        created_at = created_base + timedelta(days=i % 10)
        # Cycle through the three columns so every project has a mix
        column = columns[i % 3]
        task = Task(
            project_id=project.id,
            column_id=column.id,
            sprint_id=sprints[i % 2].id,
            assignee_id=users[i % len(users)].id if i % 5 else None,
            title=f"{name} task {i + 1}",
            story_points=(i % 5) + 1,
            priority='BLOCKER' if i % 7 == 0 else 'MEDIUM',
            created_at=created_at
        )
        session.add(task)
        session.flush()

        if column is todo:
            continue

        started_at = created_at + timedelta(days=1)
        session.add(TaskStateHistory(
            task_id=task.id,
            from_column_id=todo.id,
            to_column_id=in_progress.id,
            changed_at=started_at
        ))
        if column is done:
            session.add(TaskStateHistory(
                task_id=task.id,
                from_column_id=in_progress.id,
                to_column_id=done.id,
                changed_at=started_at + timedelta(days=(i % 4) + 1, hours=6)
            ))

    return project


def main():
    parser = argparse.ArgumentParser(description='Seed demo data into the source database')
    parser.add_argument(
        '--create-tables',
        action='store_true',
        help='Create the source tables first'
    )

    args = parser.parse_args()

    setup_logging()
    logger = get_logger(__name__)

    db = DatabaseConnection.from_config(SOURCE_DATABASE)
    try:
        if args.create_tables:
            SourceBase.metadata.create_all(db.engine)

        with db.session_scope() as session:
            users = [User(name=n) for n in USERS]
            session.add_all(users)
            session.flush()

            for name, started_days_ago, length_days, task_count in PROJECTS:
                project = seed_project(session, name, started_days_ago, length_days, task_count, users)
                logger.info(f"Seeded project {project.id}: {name}")

        print(f"\n{'='*50}")
        print("Source Data Seeded")
        print(f"{'='*50}")
        print(f"Users: {len(USERS)}")
        print(f"Projects: {len(PROJECTS)} (2 sprints each)")
        print(f"Tasks: {sum(p[3] for p in PROJECTS)}")
        print("\nRun scripts/run_etl.py to compute the KPI snapshots.")

    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == '__main__':
    main()
