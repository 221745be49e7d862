"""
Unit Tests for the Configuration Manager
"""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from kpi_engine.config_manager import DEFAULT_DONE_STATES, ConfigManager

CONFIG_YAML = """
source_database:
  host: ${TEST_SOURCE_HOST:-localhost}
  name: ${TEST_SOURCE_NAME}
  pool_size: 10

etl:
  state_categories:
    in_progress: [Doing]
  blocker_priority: ${TEST_BLOCKER:-BLOCKER}

scheduler:
  etl_schedule: "${TEST_CRON:-0 * * * *}"

notifier:
  queue_size: 25
"""


class TestConfigManager(unittest.TestCase):

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        Path(self._tmpdir.name, 'config.yaml').write_text(CONFIG_YAML, encoding='utf-8')
        ConfigManager.reset()

    def tearDown(self):
        ConfigManager.reset()
        self._tmpdir.cleanup()

    def load(self, **env):
        with patch.dict(os.environ, {'CONFIG_DIR': self._tmpdir.name, **env}):
            return ConfigManager()

    def test_defaults_fill_unset_variables(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('TEST_SOURCE_HOST', None)
            os.environ.pop('TEST_CRON', None)
            config = self.load()

        self.assertEqual(config.get_database_config('source_database')['host'], 'localhost')
        self.assertEqual(config.get_scheduler_config()['etl_schedule'], '0 * * * *')
        self.assertEqual(config.get_notifier_config()['queue_size'], 25)

    def test_environment_overrides(self):
        config = self.load(TEST_SOURCE_HOST='db.internal', TEST_BLOCKER='CRITICAL', TEST_CRON='*/15 * * * *')

        self.assertEqual(config.get_database_config('source_database')['host'], 'db.internal')
        self.assertEqual(config.get_blocker_priority(), 'CRITICAL')
        self.assertEqual(config.get_scheduler_config()['etl_schedule'], '*/15 * * * *')

    def test_unresolved_placeholder_is_left_as_is(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('TEST_SOURCE_NAME', None)
            config = self.load()

        self.assertEqual(config.get_database_config('source_database')['name'], '${TEST_SOURCE_NAME}')

    def test_state_categories_fall_back_per_category(self):
        categories = self.load().get_state_categories()

        self.assertEqual(categories['in_progress'], ['Doing'])
        self.assertEqual(categories['done'], DEFAULT_DONE_STATES)

    def test_etl_defaults(self):
        config = self.load()

        self.assertEqual(config.get_completed_sprint_status(), 'COMPLETED')
        self.assertEqual(config.get_default_sprint_status(), 'PLANNED')
        self.assertEqual(config.get_database_config('analytics_database'), {})

    def test_singleton_and_reset(self):
        first = self.load()
        self.assertIs(first, ConfigManager())

        ConfigManager.reset()
        self.assertIsNot(first, self.load())


if __name__ == '__main__':
    unittest.main()
