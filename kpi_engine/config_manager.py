"""
Configuration Manager Module
Handles loading and accessing engine configuration from YAML files and environment variables.
"""

import os
import re
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv


DEFAULT_IN_PROGRESS_STATES = ['En progreso', 'In Progress', 'En Progreso', 'Desarrollo']
DEFAULT_DONE_STATES = ['Hecho', 'Done', 'Terminado', 'Completado']


class ConfigManager:
    """Manages engine configuration from YAML files and environment variables."""

    _instance = None
    _config: Dict = None

    def __new__(cls):
        """Singleton pattern for configuration."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize configuration if not already loaded."""
        if self._config is None:
            self._load_configuration()

    def _load_configuration(self) -> None:
        """Load the configuration file."""
        load_dotenv()

        self._config_dir = self._find_config_dir()

        config_path = self._config_dir / 'config.yaml' if self._config_dir else None
        self._config = self._load_yaml_with_env(config_path) if config_path else {}

    def _find_config_dir(self) -> Optional[Path]:
        """Find the configuration directory, or None to run on defaults."""
        env_config_dir = os.getenv('CONFIG_DIR')
        if env_config_dir:
            return Path(env_config_dir)

        possible_paths = [
            Path(__file__).parent.parent / 'config',  # Relative to kpi_engine/
            Path.cwd() / 'config',
            Path('/app/config'),  # Docker container
        ]

        for path in possible_paths:
            if path.exists():
                return path

        return None

    def _load_yaml_with_env(self, file_path: Path) -> Dict:
        """
        Load YAML file with environment variable substitution.

        Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.
        """
        if not file_path.exists():
            return {}

        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()

        content = self._substitute_env_vars(content)

        return yaml.safe_load(content) or {}

    def _substitute_env_vars(self, content: str) -> str:
        """
        Substitute environment variables in string.

        Supports:
        - ${VAR_NAME} - Required variable
        - ${VAR_NAME:-default} - Variable with default value
        """
        pattern = r'\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}'

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2)

            value = os.getenv(var_name)
            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                return match.group(0)  # Leave unresolved placeholders untouched

        return re.sub(pattern, replacer, content)

    # ========================================
    # Configuration Getters
    # ========================================

    def get_database_config(self, section: str) -> Dict:
        """Get a database section ('source_database' or 'analytics_database')."""
        return self._config.get(section) or {}

    def get_etl_config(self) -> Dict:
        """Get ETL configuration."""
        return self._config.get('etl', {})

    def get_logging_config(self) -> Dict:
        """Get logging configuration."""
        return self._config.get('logging', {})

    def get_scheduler_config(self) -> Dict:
        """Get scheduler configuration."""
        return self._config.get('scheduler', {})

    def get_notifier_config(self) -> Dict:
        """Get change notifier configuration."""
        return self._config.get('notifier', {})

    # ========================================
    # State Category Getters
    # ========================================

    def get_state_categories(self) -> Dict[str, List[str]]:
        """
        Get the column name lists for each lifecycle category.

        Returns:
            Mapping with 'in_progress' and 'done' keys
        """
        categories = self.get_etl_config().get('state_categories') or {}
        return {
            'in_progress': list(categories.get('in_progress', DEFAULT_IN_PROGRESS_STATES)),
            'done': list(categories.get('done', DEFAULT_DONE_STATES)),
        }

    def get_blocker_priority(self) -> str:
        """Get the priority marker that flags a blocking task."""
        return self.get_etl_config().get('blocker_priority', 'BLOCKER')

    def get_completed_sprint_status(self) -> str:
        """Get the sprint status that marks a closed sprint."""
        return self.get_etl_config().get('completed_sprint_status', 'COMPLETED')

    def get_default_sprint_status(self) -> str:
        """Get the status reported for sprints without one."""
        return self.get_etl_config().get('default_sprint_status', 'PLANNED')

    def reload(self) -> None:
        """Reload configuration from files."""
        self._config = None
        self._load_configuration()

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton so the next access reloads from scratch."""
        cls._instance = None
        cls._config = None
