"""
Snapshot Sink Module
Idempotent upserts of KPI snapshots into the analytics store.

Each write runs in its own transaction; there is no batch-wide atomicity.
"""

from dataclasses import fields, replace
from typing import Callable, Dict, List, Optional

from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from kpi_engine.database.connection import DatabaseConnection
from kpi_engine.database.models import ProjectKPI, SprintKPI
from kpi_engine.exceptions import UnsupportedDialectError
from kpi_engine.metrics.schemas import ProjectKPISnapshot, SprintKPISnapshot
from kpi_engine.utils.helpers import utcnow
from kpi_engine.utils.logger import get_logger

logger = get_logger(__name__)


class SnapshotSink:
    """Writes and reads the current project/sprint snapshot rows."""

    def __init__(self, db: DatabaseConnection, clock: Callable = utcnow):
        self.db = db
        self.clock = clock

    # ========================================
    # Writes
    # ========================================

    def upsert_project_snapshot(self, snapshot: ProjectKPISnapshot) -> ProjectKPISnapshot:
        """
        Insert or replace the snapshot row for a project.

        Returns:
            The snapshot as stored, with last_updated set
        """
        stored = replace(snapshot, last_updated=self.clock())
        self._upsert(ProjectKPI, 'project_id_source', stored.to_dict())
        logger.debug(f"Upserted KPI snapshot for project {snapshot.project_id_source}")
        return stored

    def upsert_sprint_snapshot(self, snapshot: SprintKPISnapshot) -> SprintKPISnapshot:
        """
        Insert or replace the snapshot row for a sprint.

        Returns:
            The snapshot as stored, with last_updated set
        """
        stored = replace(snapshot, last_updated=self.clock())
        self._upsert(SprintKPI, 'sprint_id_source', stored.to_dict())
        logger.debug(f"Upserted KPI snapshot for sprint {snapshot.sprint_id_source}")
        return stored

    def _upsert(self, model, key: str, values: Dict) -> None:
        """Run a dialect-native INSERT ... ON CONFLICT on the natural key."""
        dialect = self.db.engine.dialect.name
        update_columns = [name for name in values if name != key]

        if dialect in ('postgresql', 'sqlite'):
            insert = pg_insert if dialect == 'postgresql' else sqlite_insert
            stmt = insert(model).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[key],
                set_={name: stmt.excluded[name] for name in update_columns}
            )
        elif dialect in ('mysql', 'mariadb'):
            stmt = mysql_insert(model).values(**values)
            stmt = stmt.on_duplicate_key_update(
                {name: stmt.inserted[name] for name in update_columns}
            )
        else:
            raise UnsupportedDialectError(f"No upsert support for dialect '{dialect}'")

        with self.db.session_scope() as session:
            session.execute(stmt)

    # ========================================
    # Reads
    # ========================================

    def get_project_snapshot(self, project_id: int) -> Optional[ProjectKPISnapshot]:
        """Get the current snapshot of a project."""
        with self.db.session_scope() as session:
            row = session.query(ProjectKPI).filter(ProjectKPI.project_id_source == project_id).first()
            return _to_dataclass(ProjectKPISnapshot, row) if row else None

    def get_sprint_snapshot(self, sprint_id: int) -> Optional[SprintKPISnapshot]:
        """Get the current snapshot of a sprint."""
        with self.db.session_scope() as session:
            row = session.query(SprintKPI).filter(SprintKPI.sprint_id_source == sprint_id).first()
            return _to_dataclass(SprintKPISnapshot, row) if row else None

    def list_sprint_snapshots(self, project_id: int) -> List[SprintKPISnapshot]:
        """Get the current snapshots of a project's sprints."""
        with self.db.session_scope() as session:
            rows = (
                session.query(SprintKPI)
                .filter(SprintKPI.project_id_source == project_id)
                .order_by(SprintKPI.sprint_id_source)
                .all()
            )
            return [_to_dataclass(SprintKPISnapshot, row) for row in rows]


def _to_dataclass(cls, row):
    return cls(**{f.name: getattr(row, f.name) for f in fields(cls)})
