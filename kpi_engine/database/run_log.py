"""
Run Log Module
Append-only record of ETL runs in the analytics store.

An entry is created RUNNING at run start and finalized exactly once, as
SUCCESS or FAILED, by the same run.
"""

from typing import Callable, List, Optional

from sqlalchemy import desc

from kpi_engine.database.connection import DatabaseConnection
from kpi_engine.database.models import EtlLog
from kpi_engine.exceptions import RunLogError
from kpi_engine.metrics.schemas import RunLogEntry
from kpi_engine.utils.helpers import sanitize_string, utcnow
from kpi_engine.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_RUNNING = 'RUNNING'
STATUS_SUCCESS = 'SUCCESS'
STATUS_FAILED = 'FAILED'

ERROR_MESSAGE_MAX_LENGTH = 1000


class RunLog:
    """Creates, finalizes and lists ETL run-log entries."""

    def __init__(self, db: DatabaseConnection, clock: Callable = utcnow):
        self.db = db
        self.clock = clock

    def start(self) -> RunLogEntry:
        """Insert a RUNNING entry stamped with the current time."""
        with self.db.session_scope() as session:
            etl_log = EtlLog(status=STATUS_RUNNING, started_at=self.clock())
            session.add(etl_log)
            session.flush()
            entry = _to_entry(etl_log)

        logger.info(f"ETL run {entry.id} started")
        return entry

    def finish_success(
        self,
        log_id: int,
        projects_processed: int,
        sprints_processed: int
    ) -> RunLogEntry:
        """Finalize a run as SUCCESS with its counters."""
        return self._finish(
            log_id,
            status=STATUS_SUCCESS,
            projects_processed=projects_processed,
            sprints_processed=sprints_processed
        )

    def finish_failure(
        self,
        log_id: int,
        error_message: str,
        error_detail: Optional[str] = None,
        projects_processed: int = 0,
        sprints_processed: int = 0
    ) -> RunLogEntry:
        """Finalize a run as FAILED with the error and whatever was counted."""
        return self._finish(
            log_id,
            status=STATUS_FAILED,
            projects_processed=projects_processed,
            sprints_processed=sprints_processed,
            error_message=sanitize_string(error_message, ERROR_MESSAGE_MAX_LENGTH),
            error_detail=sanitize_string(error_detail)
        )

    def _finish(self, log_id: int, status: str, **values) -> RunLogEntry:
        with self.db.session_scope() as session:
            etl_log = session.get(EtlLog, log_id)
            if etl_log is None:
                raise RunLogError(f"ETL run {log_id} not found")
            if etl_log.status != STATUS_RUNNING:
                raise RunLogError(f"ETL run {log_id} already finalized as {etl_log.status}")

            finished_at = max(self.clock(), etl_log.started_at)
            etl_log.status = status
            etl_log.finished_at = finished_at
            etl_log.duration_ms = int((finished_at - etl_log.started_at).total_seconds() * 1000)
            for name, value in values.items():
                setattr(etl_log, name, value)

            session.flush()
            entry = _to_entry(etl_log)

        logger.info(f"ETL run {log_id} finished: {status} in {entry.duration_ms}ms")
        return entry

    # ========================================
    # Reads
    # ========================================

    def get(self, log_id: int) -> Optional[RunLogEntry]:
        """Get a run-log entry by id."""
        with self.db.session_scope() as session:
            etl_log = session.get(EtlLog, log_id)
            return _to_entry(etl_log) if etl_log else None

    def list_recent(self, limit: int = 20, status: Optional[str] = None) -> List[RunLogEntry]:
        """
        Get recent runs, newest first.

        Args:
            limit: Number of runs to return
            status: Optional status filter

        Returns:
            List of RunLogEntry
        """
        with self.db.session_scope() as session:
            query = session.query(EtlLog)
            if status:
                query = query.filter(EtlLog.status == status)
            rows = query.order_by(desc(EtlLog.started_at), desc(EtlLog.id)).limit(limit).all()
            return [_to_entry(row) for row in rows]

    def latest(self) -> Optional[RunLogEntry]:
        """Get the most recently started run."""
        runs = self.list_recent(limit=1)
        return runs[0] if runs else None


def _to_entry(etl_log: EtlLog) -> RunLogEntry:
    return RunLogEntry(
        id=etl_log.id,
        status=etl_log.status,
        started_at=etl_log.started_at,
        projects_processed=etl_log.projects_processed or 0,
        sprints_processed=etl_log.sprints_processed or 0,
        duration_ms=etl_log.duration_ms,
        error_message=etl_log.error_message,
        error_detail=etl_log.error_detail,
        finished_at=etl_log.finished_at
    )
