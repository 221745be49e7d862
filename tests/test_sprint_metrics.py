"""
Unit Tests for the Sprint Metric Calculator
"""

import unittest
from datetime import date

from kpi_engine.metrics.sprint_metrics import calculate_sprint_kpis

from factories import CATEGORIES, DONE_COLUMN, IN_PROGRESS_COLUMN, TODO_COLUMN, sprint, task


class TestSprintMetrics(unittest.TestCase):

    def setUp(self):
        self.sprint = sprint(
            5, status='ACTIVE', project_id=1, name='Sprint 5',
            start_date=date(2026, 3, 2), end_date=date(2026, 3, 16)
        )

    def test_counts_and_points(self):
        tasks = [
            task(1, column_id=DONE_COLUMN, sprint_id=5, story_points=3),
            task(2, column_id=DONE_COLUMN, sprint_id=5, story_points=None),
            task(3, column_id=IN_PROGRESS_COLUMN, sprint_id=5, story_points=8),
        ]

        snapshot = calculate_sprint_kpis(self.sprint, tasks, CATEGORIES.done)

        self.assertEqual(snapshot.sprint_id_source, 5)
        self.assertEqual(snapshot.project_id_source, 1)
        self.assertEqual(snapshot.sprint_name, 'Sprint 5')
        self.assertEqual(snapshot.tasks_total, 3)
        self.assertEqual(snapshot.tasks_completed, 2)
        self.assertEqual(snapshot.story_points_completed, 3)
        self.assertEqual(snapshot.velocity, 3)
        self.assertEqual(snapshot.completion_percentage, 66.67)
        self.assertEqual(snapshot.sprint_status, 'ACTIVE')
        self.assertEqual(snapshot.start_date, date(2026, 3, 2))
        self.assertEqual(snapshot.end_date, date(2026, 3, 16))

    def test_cycle_and_lead_time_stay_zero(self):
        tasks = [task(1, column_id=DONE_COLUMN, sprint_id=5, story_points=2)]

        snapshot = calculate_sprint_kpis(self.sprint, tasks, CATEGORIES.done)

        self.assertEqual(snapshot.cycle_time_avg, 0)
        self.assertEqual(snapshot.lead_time_avg, 0)

    def test_empty_sprint(self):
        snapshot = calculate_sprint_kpis(self.sprint, [], CATEGORIES.done)

        self.assertEqual(snapshot.tasks_total, 0)
        self.assertEqual(snapshot.tasks_completed, 0)
        self.assertEqual(snapshot.completion_percentage, 0)
        self.assertEqual(snapshot.velocity, 0)

    def test_missing_status_uses_default(self):
        no_status = sprint(6, status=None)

        self.assertEqual(calculate_sprint_kpis(no_status, [], CATEGORIES.done).sprint_status, 'PLANNED')
        self.assertEqual(
            calculate_sprint_kpis(no_status, [], CATEGORIES.done, default_status='BACKLOG').sprint_status,
            'BACKLOG'
        )

    def test_no_done_columns(self):
        tasks = [task(1, column_id=TODO_COLUMN, sprint_id=5, story_points=5)]

        snapshot = calculate_sprint_kpis(self.sprint, tasks, frozenset())

        self.assertEqual(snapshot.tasks_completed, 0)
        self.assertEqual(snapshot.completion_percentage, 0)


if __name__ == '__main__':
    unittest.main()
