"""
Unit Tests for the Project Metric Calculator
Calculations are exercised as pure functions with a fixed evaluation time.
"""

import unittest
from datetime import date, datetime, timedelta

from kpi_engine.metrics.project_metrics import (
    average,
    calculate_blocker_count,
    calculate_cycle_times,
    calculate_health_score,
    calculate_lead_times,
    calculate_on_time_percentage,
    calculate_project_kpis,
    calculate_velocity,
    calculate_workload_distribution,
    select_last_completed_sprint,
)
from kpi_engine.metrics.schemas import StateCategories

from factories import (
    CATEGORIES, DONE_COLUMN, IN_PROGRESS_COLUMN, NOW, TODO_COLUMN,
    project, sprint, task, transition
)

DAY0 = datetime(2026, 3, 1, 9, 0, 0)


def day(n, hours=0):
    return DAY0 + timedelta(days=n, hours=hours)


class TestProjectSnapshot(unittest.TestCase):
    """Whole-snapshot scenarios."""

    def test_ahead_of_schedule_scores_76(self):
        """10 tasks, 6 done, halfway through the window."""
        apollo = project(start_date=date(2026, 3, 1), end_date=date(2026, 3, 21))
        tasks = [task(i, column_id=DONE_COLUMN if i <= 6 else TODO_COLUMN) for i in range(1, 11)]

        snapshot = calculate_project_kpis(apollo, tasks, [], [], CATEGORIES, now=NOW)

        self.assertEqual(snapshot.progress_percentage, 60)
        self.assertEqual(snapshot.health_score, 76)

    def test_project_without_tasks_is_neutral(self):
        snapshot = calculate_project_kpis(
            project(start_date=date(2026, 1, 1), end_date=date(2026, 2, 1)),
            [], [], [sprint(1)], CATEGORIES, now=NOW
        )

        values = snapshot.to_dict()
        values.pop('last_updated')
        self.assertEqual(values, {
            'project_id_source': 1,
            'project_name': 'Apollo',
            'health_score': 50,
            'progress_percentage': 0,
            'velocity': 0,
            'cycle_time_avg': 0,
            'lead_time_avg': 0,
            'blocker_count': 0,
            'workload_distribution': {},
        })

    def test_cycle_and_lead_time_from_history(self):
        tasks = [task(1, column_id=DONE_COLUMN, created_at=day(0))]
        transitions = [
            transition(1, DONE_COLUMN, day(4)),
            transition(1, IN_PROGRESS_COLUMN, day(1)),
        ]

        snapshot = calculate_project_kpis(project(), tasks, transitions, [], CATEGORIES, now=NOW)

        self.assertEqual(snapshot.cycle_time_avg, 3)
        self.assertEqual(snapshot.lead_time_avg, 4)

    def test_past_end_date_and_behind(self):
        late = project(start_date=date(2026, 1, 1), end_date=date(2026, 2, 1))
        tasks = [task(i, column_id=DONE_COLUMN if i <= 8 else TODO_COLUMN) for i in range(1, 11)]

        snapshot = calculate_project_kpis(late, tasks, [], [], CATEGORIES, now=NOW)

        # 0.6 * 80 + 0.4 * 0
        self.assertEqual(snapshot.health_score, 48)

    def test_values_stay_in_bounds(self):
        tasks = [
            task(1, column_id=DONE_COLUMN, assignee_id=1, assignee_name='Ana', priority='BLOCKER'),
            task(2, column_id=IN_PROGRESS_COLUMN, assignee_id=2, priority='BLOCKER'),
            task(3, column_id=None),
        ]

        snapshot = calculate_project_kpis(
            project(start_date=date(2026, 3, 10), end_date=date(2026, 3, 12)),
            tasks, [], [], CATEGORIES, now=NOW
        )

        self.assertGreaterEqual(snapshot.health_score, 0)
        self.assertLessEqual(snapshot.health_score, 100)
        self.assertEqual(snapshot.progress_percentage, 33.33)
        self.assertEqual(snapshot.blocker_count, 1)
        self.assertEqual(sum(snapshot.workload_distribution.values()), 2)


class TestOnTimePercentage(unittest.TestCase):

    def test_without_dates_is_neutral(self):
        self.assertEqual(calculate_on_time_percentage(None, date(2026, 4, 1), 10, NOW), 50)
        self.assertEqual(calculate_on_time_percentage(date(2026, 1, 1), None, 10, NOW), 50)

    def test_past_end_date_is_all_or_nothing(self):
        start, end = date(2026, 1, 1), date(2026, 2, 1)
        self.assertEqual(calculate_on_time_percentage(start, end, 100, NOW), 100)
        self.assertEqual(calculate_on_time_percentage(start, end, 80, NOW), 0)

    def test_behind_schedule_loses_two_points_per_point(self):
        # 10.5 of 20 days elapsed: expected 52.5, actual 40
        result = calculate_on_time_percentage(date(2026, 3, 1), date(2026, 3, 21), 40, NOW)
        self.assertAlmostEqual(result, 75)

    def test_far_behind_floors_at_zero(self):
        result = calculate_on_time_percentage(date(2026, 3, 1), date(2026, 3, 21), 0, NOW)
        self.assertEqual(result, 0)

    def test_zero_length_window_expects_full_progress(self):
        window = date(2026, 3, 20)
        self.assertEqual(calculate_on_time_percentage(window, window, 100, NOW), 100)
        self.assertEqual(calculate_on_time_percentage(window, window, 50, NOW), 0)


class TestHealthScore(unittest.TestCase):

    def test_weighted_blend(self):
        self.assertEqual(calculate_health_score(60, 100), 76)
        self.assertEqual(calculate_health_score(0, 50), 20)

    def test_clamped(self):
        self.assertEqual(calculate_health_score(100, 100), 100)
        self.assertEqual(calculate_health_score(0, 0), 0)
        self.assertEqual(calculate_health_score(150, 150), 100)

    def test_returns_int(self):
        self.assertIsInstance(calculate_health_score(33.33, 75), int)


class TestCycleAndLeadTimes(unittest.TestCase):

    def test_reopened_task_uses_done_entry_after_start(self):
        done_task = task(1, column_id=DONE_COLUMN, created_at=day(0))
        transitions = [
            transition(1, DONE_COLUMN, day(1)),
            transition(1, IN_PROGRESS_COLUMN, day(2)),
            transition(1, DONE_COLUMN, day(5)),
        ]

        self.assertEqual(calculate_cycle_times([done_task], transitions, CATEGORIES), [3.0])
        self.assertEqual(calculate_lead_times([done_task], transitions, CATEGORIES.done), [1.0])

    def test_task_without_in_progress_entry_has_no_cycle_time(self):
        done_task = task(1, column_id=DONE_COLUMN, created_at=day(0))
        transitions = [transition(1, DONE_COLUMN, day(2))]

        self.assertEqual(calculate_cycle_times([done_task], transitions, CATEGORIES), [])
        self.assertEqual(calculate_lead_times([done_task], transitions, CATEGORIES.done), [2.0])

    def test_fractional_days(self):
        done_task = task(1, column_id=DONE_COLUMN, created_at=day(0))
        transitions = [
            transition(1, IN_PROGRESS_COLUMN, day(0, hours=12)),
            transition(1, DONE_COLUMN, day(2)),
        ]

        self.assertEqual(calculate_cycle_times([done_task], transitions, CATEGORIES), [1.5])

    def test_missing_category_gives_no_cycle_times(self):
        done_task = task(1, column_id=DONE_COLUMN, created_at=day(0))
        transitions = [
            transition(1, IN_PROGRESS_COLUMN, day(1)),
            transition(1, DONE_COLUMN, day(2)),
        ]
        no_in_progress = StateCategories(in_progress=frozenset(), done=frozenset({DONE_COLUMN}))

        self.assertEqual(calculate_cycle_times([done_task], transitions, no_in_progress), [])

    def test_done_before_creation_is_ignored_for_lead_time(self):
        done_task = task(1, column_id=DONE_COLUMN, created_at=day(3))
        transitions = [transition(1, DONE_COLUMN, day(1))]

        self.assertEqual(calculate_lead_times([done_task], transitions, CATEGORIES.done), [])

    def test_average(self):
        self.assertEqual(average([]), 0)
        self.assertEqual(average([1, 2, 2]), 1.67)


class TestVelocity(unittest.TestCase):

    def setUp(self):
        self.sprints = [
            sprint(1, end_date=date(2026, 2, 1)),
            sprint(2, end_date=date(2026, 2, 15)),
            sprint(3, status='ACTIVE', end_date=date(2026, 3, 1)),
        ]

    def test_points_done_in_last_completed_sprint(self):
        tasks = [
            task(1, column_id=DONE_COLUMN, sprint_id=2, story_points=3),
            task(2, column_id=DONE_COLUMN, sprint_id=2, story_points=5),
            task(3, column_id=TODO_COLUMN, sprint_id=2, story_points=8),
            task(4, column_id=DONE_COLUMN, sprint_id=1, story_points=13),
            task(5, column_id=DONE_COLUMN, sprint_id=2, story_points=None),
        ]

        self.assertEqual(calculate_velocity(tasks, self.sprints, CATEGORIES.done, 'COMPLETED'), 8)

    def test_no_completed_sprint(self):
        tasks = [task(1, column_id=DONE_COLUMN, sprint_id=3, story_points=3)]
        sprints = [sprint(3, status='ACTIVE', end_date=date(2026, 3, 1))]

        self.assertEqual(calculate_velocity(tasks, sprints, CATEGORIES.done, 'COMPLETED'), 0)

    def test_selection_ignores_undated_and_breaks_ties_by_id(self):
        sprints = [
            sprint(4, end_date=date(2026, 2, 15)),
            sprint(7, end_date=date(2026, 2, 15)),
            sprint(9, end_date=None),
        ]

        self.assertEqual(select_last_completed_sprint(sprints, 'COMPLETED').id, 7)
        self.assertIsNone(select_last_completed_sprint([], 'COMPLETED'))


class TestBlockersAndWorkload(unittest.TestCase):

    def test_blockers_exclude_done_tasks(self):
        tasks = [
            task(1, column_id=TODO_COLUMN, priority='BLOCKER'),
            task(2, column_id=DONE_COLUMN, priority='BLOCKER'),
            task(3, column_id=None, priority='BLOCKER'),
            task(4, column_id=TODO_COLUMN, priority='HIGH'),
        ]

        self.assertEqual(calculate_blocker_count(tasks, CATEGORIES.done, 'BLOCKER'), 2)

    def test_workload_by_assignee(self):
        tasks = [
            task(1, assignee_id=1, assignee_name='Ana'),
            task(2, assignee_id=1, assignee_name='Ana'),
            task(3, assignee_id=2),
            task(4),
        ]

        distribution = calculate_workload_distribution(tasks)

        self.assertEqual(distribution, {'Ana': 2, 'User 2': 1})
        self.assertEqual(sum(distribution.values()), 3)


if __name__ == '__main__':
    unittest.main()
