"""
State Classifier Module
Maps Kanban column names to lifecycle categories.
"""

from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from kpi_engine.config_manager import ConfigManager
from kpi_engine.metrics.schemas import ColumnRecord, StateCategories

IN_PROGRESS = 'in_progress'
DONE = 'done'
CATEGORIES = (IN_PROGRESS, DONE)


class StateClassifier:
    """
    Classifies columns by exact, case-sensitive name lookup.

    The lookup table is plain data (column name -> categories) so installations
    can add their own labels in configuration without code changes. A name
    may belong to more than one category.
    """

    def __init__(self, state_names: Mapping[str, Iterable[str]]):
        """
        Args:
            state_names: Category -> list of column names,
                e.g. {'in_progress': ['In Progress'], 'done': ['Done']}
        """
        table: Dict[str, set] = {}
        for category in CATEGORIES:
            for name in state_names.get(category) or []:
                table.setdefault(name, set()).add(category)
        self._table: Dict[str, FrozenSet[str]] = {name: frozenset(cats) for name, cats in table.items()}

    @classmethod
    def from_config(cls, config: Optional[ConfigManager] = None) -> 'StateClassifier':
        """Build a classifier from the etl.state_categories config section."""
        config = config or ConfigManager()
        return cls(config.get_state_categories())

    def categories_for(self, column_name: Optional[str]) -> FrozenSet[str]:
        """Get the categories a column name belongs to (possibly empty)."""
        if column_name is None:
            return frozenset()
        return self._table.get(column_name, frozenset())

    def classify(self, columns: Iterable[ColumnRecord]) -> StateCategories:
        """
        Group a project's column ids by category.

        Args:
            columns: The project's columns

        Returns:
            StateCategories with empty sets for unmatched categories
        """
        in_progress = set()
        done = set()

        for column in columns:
            categories = self.categories_for(column.name)
            if IN_PROGRESS in categories:
                in_progress.add(column.id)
            if DONE in categories:
                done.add(column.id)

        return StateCategories(in_progress=frozenset(in_progress), done=frozenset(done))
