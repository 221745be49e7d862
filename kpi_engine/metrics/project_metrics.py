"""
Project Metrics Module
Pure KPI calculations for one project: progress, velocity, cycle and lead
time, blockers, workload and the health score.

Nothing here touches a database; the pipeline loads the inputs and writes
the result.
"""

from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set

from kpi_engine.metrics.schemas import (
    ProjectKPISnapshot, ProjectRecord, SprintRecord, StateCategories,
    StateTransition, TaskRecord
)
from kpi_engine.utils.helpers import clamp, days_between, round_half_up, to_datetime

PROGRESS_WEIGHT = 0.6
ON_TIME_WEIGHT = 0.4
NEUTRAL_ON_TIME = 50
NEUTRAL_HEALTH = 50
DELAY_PENALTY = 2


def empty_project_snapshot(project: ProjectRecord) -> ProjectKPISnapshot:
    """Neutral snapshot for a project without tasks."""
    return ProjectKPISnapshot(
        project_id_source=project.id,
        project_name=project.name,
        health_score=NEUTRAL_HEALTH,
        progress_percentage=0,
        velocity=0,
        cycle_time_avg=0,
        lead_time_avg=0,
        blocker_count=0,
        workload_distribution={}
    )


# ========================================
# Individual KPIs
# ========================================

def calculate_progress(tasks: Sequence[TaskRecord], done_column_ids: Set[int]) -> float:
    """Percentage of tasks sitting in a done column (unrounded)."""
    if not tasks:
        return 0.0
    completed = sum(1 for t in tasks if t.column_id in done_column_ids)
    return 100 * completed / len(tasks)


def select_last_completed_sprint(
    sprints: Iterable[SprintRecord],
    completed_status: str
) -> Optional[SprintRecord]:
    """
    Get the most recently ended sprint with the completed status.

    Sprints without an end date cannot be ordered and are ignored. Equal end
    dates fall back to the higher sprint id.
    """
    candidates = [s for s in sprints if s.status == completed_status and s.end_date is not None]
    if not candidates:
        return None
    return max(candidates, key=lambda s: (to_datetime(s.end_date), s.id))


def calculate_velocity(
    tasks: Sequence[TaskRecord],
    sprints: Iterable[SprintRecord],
    done_column_ids: Set[int],
    completed_status: str
) -> int:
    """Story points finished in the last completed sprint."""
    sprint = select_last_completed_sprint(sprints, completed_status)
    if sprint is None:
        return 0

    return int(sum(
        t.story_points or 0
        for t in tasks
        if t.sprint_id == sprint.id and t.column_id in done_column_ids
    ))


def _transitions_by_task(transitions: Iterable[StateTransition]) -> Dict[int, List[StateTransition]]:
    """Group transitions per task, earliest first."""
    grouped: Dict[int, List[StateTransition]] = defaultdict(list)
    for transition in transitions:
        grouped[transition.task_id].append(transition)
    for entries in grouped.values():
        entries.sort(key=lambda t: to_datetime(t.changed_at))
    return grouped


def _first_entry(
    entries: Sequence[StateTransition],
    column_ids: Set[int],
    after: Optional[datetime] = None
) -> Optional[datetime]:
    """Earliest entry into one of the columns, strictly after `after` when given."""
    for entry in entries:
        changed_at = to_datetime(entry.changed_at)
        if entry.to_column_id not in column_ids:
            continue
        if after is not None and changed_at <= after:
            continue
        return changed_at
    return None


def calculate_cycle_times(
    done_tasks: Sequence[TaskRecord],
    transitions: Iterable[StateTransition],
    categories: StateCategories
) -> List[float]:
    """
    Cycle time in days for each completed task that has both endpoints.

    The done entry must come strictly after the located in-progress entry,
    so a reopened task is not measured against a stale completion.
    """
    if not categories.in_progress or not categories.done:
        return []

    by_task = _transitions_by_task(transitions)
    cycle_times = []

    for task in done_tasks:
        entries = by_task.get(task.id, [])
        started_at = _first_entry(entries, categories.in_progress)
        lower_bound = started_at or to_datetime(task.created_at)
        finished_at = _first_entry(entries, categories.done, after=lower_bound)

        if started_at is not None and finished_at is not None:
            cycle_times.append(days_between(started_at, finished_at))

    return cycle_times


def calculate_lead_times(
    done_tasks: Sequence[TaskRecord],
    transitions: Iterable[StateTransition],
    done_column_ids: Set[int]
) -> List[float]:
    """Lead time in days (creation to first done entry) for completed tasks."""
    if not done_column_ids:
        return []

    by_task = _transitions_by_task(transitions)
    lead_times = []

    for task in done_tasks:
        finished_at = _first_entry(by_task.get(task.id, []), done_column_ids)
        created_at = to_datetime(task.created_at)
        if finished_at is None or created_at is None:
            continue

        lead_time = days_between(created_at, finished_at)
        # A done entry stamped before the task existed is bad source data
        if lead_time >= 0:
            lead_times.append(lead_time)

    return lead_times


def average(values: Sequence[float]) -> float:
    """Mean rounded to 2 decimals, 0 for an empty sequence."""
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def calculate_blocker_count(
    tasks: Sequence[TaskRecord],
    done_column_ids: Set[int],
    blocker_priority: str
) -> int:
    """Open tasks carrying the blocking priority marker."""
    return sum(
        1 for t in tasks
        if t.priority == blocker_priority and t.column_id not in done_column_ids
    )


def calculate_workload_distribution(tasks: Sequence[TaskRecord]) -> Dict[str, int]:
    """
    Task count per assignee label.

    Unassigned tasks are left out; an assignee without a resolvable name is
    reported as "User <id>".
    """
    counts: Dict[int, int] = defaultdict(int)
    names: Dict[int, Optional[str]] = {}

    for task in tasks:
        if task.assignee_id is None:
            continue
        counts[task.assignee_id] += 1
        names[task.assignee_id] = names.get(task.assignee_id) or task.assignee_name

    distribution: Dict[str, int] = {}
    for assignee_id, count in counts.items():
        label = names.get(assignee_id) or f"User {assignee_id}"
        distribution[label] = distribution.get(label, 0) + count

    return distribution


def calculate_on_time_percentage(
    start_date: Optional[date],
    end_date: Optional[date],
    progress: float,
    now: datetime
) -> float:
    """
    Score schedule adherence in [0, 100].

    Args:
        start_date: Project start
        end_date: Project end
        progress: Actual progress percentage
        now: Evaluation time

    Returns:
        50 without dates; 100/0 once past the end date; otherwise 100 when
        progress keeps up with elapsed time, minus 2 points per point behind.
    """
    start = to_datetime(start_date)
    end = to_datetime(end_date)
    if start is None or end is None:
        return NEUTRAL_ON_TIME

    if now > end:
        return 100 if progress >= 100 else 0

    total = (end - start).total_seconds()
    if total <= 0:
        expected_progress = 100.0
    else:
        elapsed = (now - start).total_seconds()
        expected_progress = 100 * elapsed / total

    if progress >= expected_progress:
        return 100

    delay = expected_progress - progress
    return max(0, 100 - delay * DELAY_PENALTY)


def calculate_health_score(progress: float, on_time_percentage: float) -> int:
    """Weighted blend of progress and schedule adherence, clamped to [0, 100]."""
    score = round_half_up(progress * PROGRESS_WEIGHT + on_time_percentage * ON_TIME_WEIGHT)
    return int(clamp(score, 0, 100))


# ========================================
# Snapshot
# ========================================

def calculate_project_kpis(
    project: ProjectRecord,
    tasks: Sequence[TaskRecord],
    transitions: Iterable[StateTransition],
    sprints: Iterable[SprintRecord],
    categories: StateCategories,
    now: datetime,
    completed_status: str = 'COMPLETED',
    blocker_priority: str = 'BLOCKER'
) -> ProjectKPISnapshot:
    """
    Compute a project's KPI snapshot.

    Args:
        project: Project being measured
        tasks: All of the project's tasks
        transitions: State history of those tasks (any order)
        sprints: The project's sprints
        categories: Column ids per lifecycle category
        now: Evaluation time for the schedule score
        completed_status: Sprint status marking a closed sprint
        blocker_priority: Task priority marking a blocker

    Returns:
        ProjectKPISnapshot (last_updated is set by the sink)
    """
    if not tasks:
        return empty_project_snapshot(project)

    transitions = list(transitions)
    done_ids = set(categories.done)
    done_tasks = [t for t in tasks if t.column_id in done_ids]

    progress = calculate_progress(tasks, done_ids)
    on_time = calculate_on_time_percentage(project.start_date, project.end_date, progress, now)

    return ProjectKPISnapshot(
        project_id_source=project.id,
        project_name=project.name,
        health_score=calculate_health_score(progress, on_time),
        progress_percentage=round(progress, 2),
        velocity=calculate_velocity(tasks, sprints, done_ids, completed_status),
        cycle_time_avg=average(calculate_cycle_times(done_tasks, transitions, categories)),
        lead_time_avg=average(calculate_lead_times(done_tasks, transitions, done_ids)),
        blocker_count=calculate_blocker_count(tasks, done_ids, blocker_priority),
        workload_distribution=calculate_workload_distribution(tasks)
    )
