"""
KPI Snapshot Engine
Derives project and sprint KPI snapshots from a transactional
project-management store and keeps them in an analytics store.
"""

__version__ = '1.0.0'
