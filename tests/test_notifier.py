"""
Unit Tests for the Change Notifier
"""

import queue
import threading
import unittest

from kpi_engine.notifier import (
    PROJECT_KPI_UPDATED, RUN_STATUS_CHANGED, ChangeNotifier, SubscriptionClosed, project_topic
)


class TestChangeNotifier(unittest.TestCase):

    def setUp(self):
        self.notifier = ChangeNotifier(queue_size=5)

    def test_publish_reaches_every_subscriber_of_topic(self):
        first = self.notifier.subscribe(RUN_STATUS_CHANGED)
        second = self.notifier.subscribe(RUN_STATUS_CHANGED)
        other = self.notifier.subscribe(PROJECT_KPI_UPDATED)

        delivered = self.notifier.publish(RUN_STATUS_CHANGED, {'status': 'RUNNING'})

        self.assertEqual(delivered, 2)
        self.assertEqual(first.get(timeout=1), {'status': 'RUNNING'})
        self.assertEqual(second.get(timeout=1), {'status': 'RUNNING'})
        self.assertEqual(other.pending(), [])

    def test_publish_without_subscribers(self):
        self.assertEqual(self.notifier.publish(RUN_STATUS_CHANGED, {}), 0)

    def test_late_subscriber_misses_earlier_events(self):
        self.notifier.publish(RUN_STATUS_CHANGED, 'early')
        late = self.notifier.subscribe(RUN_STATUS_CHANGED)
        self.notifier.publish(RUN_STATUS_CHANGED, 'late')

        self.assertEqual(late.pending(), ['late'])

    def test_full_buffer_drops_new_events(self):
        subscription = self.notifier.subscribe(RUN_STATUS_CHANGED, maxsize=2)

        results = [self.notifier.publish(RUN_STATUS_CHANGED, i) for i in range(3)]

        self.assertEqual(results, [1, 1, 0])
        self.assertEqual(subscription.pending(), [0, 1])

    def test_project_topic(self):
        self.assertEqual(project_topic(42), 'project-kpi-updated:42')

        targeted = self.notifier.subscribe(project_topic(42))
        self.notifier.publish(project_topic(7), 'other project')
        self.notifier.publish(project_topic(42), 'this project')

        self.assertEqual(targeted.pending(), ['this project'])

    def test_close_detaches_and_ends_iteration(self):
        subscription = self.notifier.subscribe(RUN_STATUS_CHANGED)
        self.notifier.publish(RUN_STATUS_CHANGED, 'a')
        self.notifier.publish(RUN_STATUS_CHANGED, 'b')

        subscription.close()

        self.assertEqual(self.notifier.subscriber_count(RUN_STATUS_CHANGED), 0)
        self.assertEqual(list(subscription), ['a', 'b'])
        with self.assertRaises(SubscriptionClosed):
            subscription.get(timeout=1)

    def test_context_manager_closes(self):
        with self.notifier.subscribe(RUN_STATUS_CHANGED) as subscription:
            self.assertEqual(self.notifier.subscriber_count(RUN_STATUS_CHANGED), 1)

        self.assertTrue(subscription.closed)
        self.assertEqual(self.notifier.subscriber_count(RUN_STATUS_CHANGED), 0)

    def test_get_times_out(self):
        subscription = self.notifier.subscribe(RUN_STATUS_CHANGED)

        with self.assertRaises(queue.Empty):
            subscription.get(timeout=0.01)

    def test_stream_across_threads(self):
        subscription = self.notifier.subscribe(RUN_STATUS_CHANGED)
        received = []

        def consume():
            for payload in subscription:
                received.append(payload)

        consumer = threading.Thread(target=consume)
        consumer.start()
        for i in range(3):
            self.notifier.publish(RUN_STATUS_CHANGED, i)
        subscription.close()
        consumer.join(timeout=5)

        self.assertFalse(consumer.is_alive())
        self.assertEqual(received, [0, 1, 2])


if __name__ == '__main__':
    unittest.main()
