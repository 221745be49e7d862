"""
Source Query Module
Read-only queries against the transactional store. Rows are returned as
typed records so the calculators never see ORM objects.
"""

from typing import Iterable, List

from sqlalchemy.orm import Session

from kpi_engine.database.models import (
    KanbanColumn, Project, Sprint, Task, TaskStateHistory, User
)
from kpi_engine.metrics.schemas import (
    ColumnRecord, ProjectRecord, SprintRecord, StateTransition, TaskRecord
)
from kpi_engine.utils.helpers import chunk_list
from kpi_engine.utils.logger import get_logger

logger = get_logger(__name__)

# Keeps IN (...) lists well under driver parameter limits
IN_CLAUSE_CHUNK_SIZE = 500


class SourceQueries:
    """Query helpers for the transactional (source) database."""

    def __init__(self, session: Session):
        """Initialize with database session."""
        self.session = session

    # ========================================
    # Projects & Columns
    # ========================================

    def list_projects(self) -> List[ProjectRecord]:
        """Get all projects."""
        projects = self.session.query(Project).order_by(Project.id).all()
        return [
            ProjectRecord(
                id=p.id,
                name=p.name,
                start_date=p.start_date,
                end_date=p.end_date,
                status=p.status
            )
            for p in projects
        ]

    def list_columns(self, project_id: int) -> List[ColumnRecord]:
        """Get the Kanban columns of a project."""
        columns = (
            self.session.query(KanbanColumn)
            .filter(KanbanColumn.project_id == project_id)
            .order_by(KanbanColumn.id)
            .all()
        )
        return [ColumnRecord(id=c.id, project_id=c.project_id, name=c.name) for c in columns]

    # ========================================
    # Tasks
    # ========================================

    def list_tasks(self, project_id: int) -> List[TaskRecord]:
        """Get all tasks of a project joined with column and assignee names."""
        return self._query_tasks(Task.project_id == project_id)

    def list_sprint_tasks(self, sprint_id: int) -> List[TaskRecord]:
        """Get all tasks linked to a sprint."""
        return self._query_tasks(Task.sprint_id == sprint_id)

    def _query_tasks(self, criterion) -> List[TaskRecord]:
        rows = (
            self.session.query(
                Task,
                KanbanColumn.name.label('column_name'),
                User.name.label('assignee_name')
            )
            .outerjoin(KanbanColumn, Task.column_id == KanbanColumn.id)
            .outerjoin(User, Task.assignee_id == User.id)
            .filter(criterion)
            .order_by(Task.id)
            .all()
        )

        return [
            TaskRecord(
                id=task.id,
                project_id=task.project_id,
                created_at=task.created_at,
                column_id=task.column_id,
                sprint_id=task.sprint_id,
                story_points=task.story_points,
                priority=task.priority,
                assignee_id=task.assignee_id,
                column_name=column_name,
                assignee_name=assignee_name
            )
            for task, column_name, assignee_name in rows
        ]

    # ========================================
    # State History
    # ========================================

    def list_state_transitions(
        self,
        task_ids: Iterable[int],
        column_ids: Iterable[int]
    ) -> List[StateTransition]:
        """
        Get transitions of the given tasks into any of the given columns.

        Args:
            task_ids: Task ids to look up
            column_ids: Target column ids to keep

        Returns:
            Transitions ordered earliest first
        """
        task_ids = sorted(set(task_ids))
        column_ids = sorted(set(column_ids))
        if not task_ids or not column_ids:
            return []

        transitions = []
        for chunk in chunk_list(task_ids, IN_CLAUSE_CHUNK_SIZE):
            rows = (
                self.session.query(
                    TaskStateHistory.task_id,
                    TaskStateHistory.to_column_id,
                    TaskStateHistory.changed_at
                )
                .filter(TaskStateHistory.task_id.in_(chunk))
                .filter(TaskStateHistory.to_column_id.in_(column_ids))
                .all()
            )
            transitions.extend(
                StateTransition(task_id=r.task_id, to_column_id=r.to_column_id, changed_at=r.changed_at)
                for r in rows
            )

        transitions.sort(key=lambda t: (t.changed_at, t.task_id))
        logger.debug(f"Loaded {len(transitions)} state transitions for {len(task_ids)} tasks")
        return transitions

    # ========================================
    # Sprints
    # ========================================

    def list_sprints(self, project_id: int) -> List[SprintRecord]:
        """Get all sprints of a project."""
        sprints = (
            self.session.query(Sprint)
            .filter(Sprint.project_id == project_id)
            .order_by(Sprint.id)
            .all()
        )
        return [self._to_sprint_record(s) for s in sprints]

    @staticmethod
    def _to_sprint_record(sprint: Sprint) -> SprintRecord:
        return SprintRecord(
            id=sprint.id,
            project_id=sprint.project_id,
            name=sprint.name,
            start_date=sprint.start_date,
            end_date=sprint.end_date,
            status=sprint.status
        )
