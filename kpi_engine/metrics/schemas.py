"""
Typed records flowing between the source queries, the calculators and the sinks.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Optional


# ============================================
# SOURCE RECORDS (read-only)
# ============================================

@dataclass(frozen=True)
class ProjectRecord:
    id: int
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class ColumnRecord:
    id: int
    project_id: int
    name: str


@dataclass(frozen=True)
class TaskRecord:
    id: int
    project_id: int
    created_at: datetime
    column_id: Optional[int] = None
    sprint_id: Optional[int] = None
    story_points: Optional[int] = None
    priority: Optional[str] = None
    assignee_id: Optional[int] = None
    column_name: Optional[str] = None
    assignee_name: Optional[str] = None


@dataclass(frozen=True)
class StateTransition:
    task_id: int
    to_column_id: int
    changed_at: datetime


@dataclass(frozen=True)
class SprintRecord:
    id: int
    project_id: int
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class StateCategories:
    """Column ids of a project grouped by lifecycle category."""
    in_progress: FrozenSet[int] = frozenset()
    done: FrozenSet[int] = frozenset()


# ============================================
# DERIVED SNAPSHOTS
# ============================================

@dataclass
class ProjectKPISnapshot:
    project_id_source: int
    project_name: str
    health_score: int = 50
    progress_percentage: float = 0.0
    velocity: int = 0
    cycle_time_avg: float = 0.0
    lead_time_avg: float = 0.0
    blocker_count: int = 0
    workload_distribution: Dict[str, int] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SprintKPISnapshot:
    sprint_id_source: int
    project_id_source: int
    sprint_name: str
    velocity: int = 0
    tasks_completed: int = 0
    story_points_completed: int = 0
    tasks_total: int = 0
    completion_percentage: float = 0.0
    cycle_time_avg: float = 0.0
    lead_time_avg: float = 0.0
    sprint_status: str = 'PLANNED'
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RunLogEntry:
    id: int
    status: str
    started_at: datetime
    projects_processed: int = 0
    sprints_processed: int = 0
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    error_detail: Optional[str] = None
    finished_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
