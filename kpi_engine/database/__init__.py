# Database Package
from .connection import ANALYTICS_DATABASE, SOURCE_DATABASE, DatabaseConnection
from .run_log import RunLog
from .snapshot_sink import SnapshotSink

__all__ = ['ANALYTICS_DATABASE', 'SOURCE_DATABASE', 'DatabaseConnection', 'RunLog', 'SnapshotSink']
