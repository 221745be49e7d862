"""
Sprint Metrics Module
Pure KPI calculations for one sprint.
"""

from typing import Iterable, Sequence

from kpi_engine.metrics.schemas import SprintKPISnapshot, SprintRecord, TaskRecord

DEFAULT_SPRINT_STATUS = 'PLANNED'


def calculate_sprint_kpis(
    sprint: SprintRecord,
    tasks: Sequence[TaskRecord],
    done_column_ids: Iterable[int],
    default_status: str = DEFAULT_SPRINT_STATUS
) -> SprintKPISnapshot:
    """
    Compute a sprint's KPI snapshot.

    Cycle and lead time are not measured per sprint and stay 0.

    Args:
        sprint: Sprint being measured
        tasks: Tasks linked to the sprint
        done_column_ids: Column ids of the project's done category
        default_status: Status reported when the sprint has none

    Returns:
        SprintKPISnapshot (last_updated is set by the sink)
    """
    snapshot = SprintKPISnapshot(
        sprint_id_source=sprint.id,
        project_id_source=sprint.project_id,
        sprint_name=sprint.name,
        sprint_status=sprint.status or default_status,
        start_date=sprint.start_date,
        end_date=sprint.end_date
    )

    if not tasks:
        return snapshot

    done_ids = set(done_column_ids)
    completed = [t for t in tasks if t.column_id in done_ids]
    points_completed = int(sum(t.story_points or 0 for t in completed))

    snapshot.tasks_total = len(tasks)
    snapshot.tasks_completed = len(completed)
    snapshot.story_points_completed = points_completed
    snapshot.velocity = points_completed
    snapshot.completion_percentage = round(100 * len(completed) / len(tasks), 2)

    return snapshot
