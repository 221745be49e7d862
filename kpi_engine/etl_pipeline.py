"""
ETL Pipeline Module
Orchestrates one KPI run: reads projects and sprints from the transactional
store, computes their snapshots and upserts them into the analytics store.

A failing project or sprint is logged and skipped; only failures outside
that per-item guard fail the run.
"""

import traceback
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from kpi_engine.config_manager import ConfigManager
from kpi_engine.database.connection import DatabaseConnection
from kpi_engine.database.queries import SourceQueries
from kpi_engine.database.run_log import STATUS_FAILED, STATUS_SUCCESS, RunLog
from kpi_engine.database.snapshot_sink import SnapshotSink
from kpi_engine.metrics.project_metrics import calculate_project_kpis
from kpi_engine.metrics.schemas import (
    ProjectRecord, RunLogEntry, SprintRecord, StateCategories
)
from kpi_engine.metrics.sprint_metrics import calculate_sprint_kpis
from kpi_engine.metrics.state_classifier import StateClassifier
from kpi_engine.notifier import (
    PROJECT_KPI_UPDATED, RUN_STATUS_CHANGED, SPRINT_KPI_UPDATED,
    ChangeNotifier, project_topic
)
from kpi_engine.utils.helpers import utcnow
from kpi_engine.utils.logger import get_logger

logger = get_logger(__name__)


# ========================================
# Isolated units of work
# ========================================

@dataclass
class ItemFailure:
    item: str
    error: str


@dataclass
class BatchOutcome:
    """Per-item results of an isolated batch."""
    succeeded: int = 0
    failures: List[ItemFailure] = field(default_factory=list)
    results: List[Any] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def merge(self, other: 'BatchOutcome') -> None:
        self.succeeded += other.succeeded
        self.failures.extend(other.failures)
        self.results.extend(other.results)


class IsolatedRunner:
    """
    Runs a unit function over a collection, one item at a time.

    An exception raised by one unit is logged and recorded; the remaining
    items still run. on_failure is called after each failed unit so the
    caller can reset shared state (e.g. roll back a session).
    """

    def __init__(self, on_failure: Optional[Callable[[Exception], None]] = None):
        self.on_failure = on_failure

    def run(
        self,
        items: Iterable[Any],
        unit: Callable[[Any], Any],
        describe: Callable[[Any], str] = str
    ) -> BatchOutcome:
        outcome = BatchOutcome()

        for item in items:
            label = describe(item)
            try:
                result = unit(item)
            except Exception as e:
                logger.exception(f"Error processing {label}: {e}")
                outcome.failures.append(ItemFailure(item=label, error=str(e)))
                if self.on_failure:
                    self.on_failure(e)
                continue

            outcome.succeeded += 1
            outcome.results.append(result)

        return outcome


# ========================================
# Orchestrator
# ========================================

@dataclass
class RunResult:
    """Summary returned to the scheduler or manual trigger."""
    run_id: int
    status: str
    projects_processed: int
    sprints_processed: int
    projects_failed: int
    sprints_failed: int
    duration_ms: int
    run_log: RunLogEntry


class ETLPipeline:
    """
    KPI snapshot pipeline.

    Collaborators are injected; build them once per process (see
    kpi_engine.service) and reuse the pipeline across runs.
    """

    def __init__(
        self,
        source_db: DatabaseConnection,
        sink: SnapshotSink,
        run_log: RunLog,
        notifier: Optional[ChangeNotifier] = None,
        classifier: Optional[StateClassifier] = None,
        config: Optional[ConfigManager] = None,
        clock: Callable = utcnow
    ):
        """Initialize ETL pipeline."""
        config = config or ConfigManager()

        self.source_db = source_db
        self.sink = sink
        self.run_log = run_log
        self.notifier = notifier
        self.classifier = classifier or StateClassifier.from_config(config)
        self.clock = clock

        self.completed_sprint_status = config.get_completed_sprint_status()
        self.blocker_priority = config.get_blocker_priority()
        self.default_sprint_status = config.get_default_sprint_status()

    def run(self) -> RunResult:
        """
        Execute one full run across all projects and their sprints.

        Returns:
            RunResult with the finalized run-log entry

        Raises:
            Exception: Any failure outside the per-item guard, after the run
                log was finalized as FAILED
        """
        entry = self.run_log.start()
        self._publish(RUN_STATUS_CHANGED, entry.to_dict())

        projects = BatchOutcome()
        sprints = BatchOutcome()

        try:
            with self.source_db.session_scope() as session:
                queries = SourceQueries(session)

                project_list = queries.list_projects()
                logger.info(f"Found {len(project_list)} projects to process")

                runner = IsolatedRunner(on_failure=lambda error: session.rollback())
                projects = runner.run(
                    project_list,
                    lambda project: self._process_project(queries, runner, project),
                    describe=lambda project: f"project {project.id} ({project.name})"
                )
                for sprint_outcome in projects.results:
                    sprints.merge(sprint_outcome)

            final = self.run_log.finish_success(
                entry.id,
                projects_processed=projects.succeeded,
                sprints_processed=sprints.succeeded
            )

        except Exception as e:
            logger.error(f"ETL run {entry.id} failed: {e}")
            self._finalize_failure(entry, e, projects, sprints)
            raise

        self._publish(RUN_STATUS_CHANGED, final.to_dict())
        logger.info(
            f"ETL run {entry.id} completed: {projects.succeeded} projects "
            f"({projects.failed} failed), {sprints.succeeded} sprints "
            f"({sprints.failed} failed) in {final.duration_ms}ms"
        )

        return RunResult(
            run_id=entry.id,
            status=STATUS_SUCCESS,
            projects_processed=projects.succeeded,
            sprints_processed=sprints.succeeded,
            projects_failed=projects.failed,
            sprints_failed=sprints.failed,
            duration_ms=final.duration_ms,
            run_log=final
        )

    def _finalize_failure(
        self,
        entry: RunLogEntry,
        error: Exception,
        projects: BatchOutcome,
        sprints: BatchOutcome
    ) -> None:
        """Mark the run FAILED and announce it; never masks the original error."""
        try:
            final = self.run_log.finish_failure(
                entry.id,
                error_message=str(error) or error.__class__.__name__,
                error_detail="".join(traceback.format_exception(type(error), error, error.__traceback__)),
                projects_processed=projects.succeeded,
                sprints_processed=sprints.succeeded
            )
        except Exception:
            logger.exception(f"Could not record failure of ETL run {entry.id}")
            final = RunLogEntry(
                id=entry.id,
                status=STATUS_FAILED,
                started_at=entry.started_at,
                error_message=str(error)
            )

        self._publish(RUN_STATUS_CHANGED, final.to_dict())

    # ========================================
    # Per-item units
    # ========================================

    def _process_project(
        self,
        queries: SourceQueries,
        runner: IsolatedRunner,
        project: ProjectRecord
    ) -> BatchOutcome:
        """Compute and store one project's snapshot, then its sprints'."""
        categories = self.classifier.classify(queries.list_columns(project.id))
        tasks = queries.list_tasks(project.id)
        transitions = queries.list_state_transitions(
            [t.id for t in tasks],
            categories.in_progress | categories.done
        )
        sprint_list = queries.list_sprints(project.id)

        snapshot = calculate_project_kpis(
            project,
            tasks,
            transitions,
            sprint_list,
            categories,
            now=self.clock(),
            completed_status=self.completed_sprint_status,
            blocker_priority=self.blocker_priority
        )
        stored = self.sink.upsert_project_snapshot(snapshot)

        payload = stored.to_dict()
        self._publish(project_topic(project.id), payload)
        self._publish(PROJECT_KPI_UPDATED, payload)
        logger.info(f"KPIs saved for project: {project.name} (health {stored.health_score})")

        return runner.run(
            sprint_list,
            lambda sprint: self._process_sprint(queries, sprint, categories),
            describe=lambda sprint: f"sprint {sprint.id} of project {project.id}"
        )

    def _process_sprint(
        self,
        queries: SourceQueries,
        sprint: SprintRecord,
        categories: StateCategories
    ) -> None:
        """Compute and store one sprint's snapshot."""
        snapshot = calculate_sprint_kpis(
            sprint,
            queries.list_sprint_tasks(sprint.id),
            categories.done,
            default_status=self.default_sprint_status
        )
        stored = self.sink.upsert_sprint_snapshot(snapshot)
        self._publish(SPRINT_KPI_UPDATED, stored.to_dict())

    def _publish(self, topic: str, payload: Any) -> None:
        if self.notifier is not None:
            self.notifier.publish(topic, payload)
