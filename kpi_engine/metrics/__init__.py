"""
Metrics Module
Pure KPI calculators and the records they consume and produce.
"""

from .project_metrics import calculate_project_kpis
from .sprint_metrics import calculate_sprint_kpis
from .state_classifier import StateClassifier

__all__ = [
    'calculate_project_kpis',
    'calculate_sprint_kpis',
    'StateClassifier'
]
