"""
Service Module
Builds the engine's process-scoped resources (connection pools, notifier,
pipeline, scheduler) and tears them down again.

Usage:
    service = start_service()
    ...
    stop_service(service)
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from kpi_engine.config_manager import ConfigManager
from kpi_engine.database.connection import (
    ANALYTICS_DATABASE, SOURCE_DATABASE, DatabaseConnection
)
from kpi_engine.database.run_log import RunLog
from kpi_engine.database.snapshot_sink import SnapshotSink
from kpi_engine.etl_pipeline import ETLPipeline, RunResult
from kpi_engine.notifier import DEFAULT_QUEUE_SIZE, ChangeNotifier
from kpi_engine.scheduler import DEFAULT_SCHEDULE, ETLScheduler
from kpi_engine.utils.helpers import utcnow
from kpi_engine.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class EngineService:
    """Everything one engine process holds on to."""
    source_db: DatabaseConnection
    analytics_db: DatabaseConnection
    notifier: ChangeNotifier
    sink: SnapshotSink
    run_log: RunLog
    pipeline: ETLPipeline
    scheduler: ETLScheduler

    @classmethod
    def from_config(
        cls,
        config: Optional[ConfigManager] = None,
        source_db: Optional[DatabaseConnection] = None,
        analytics_db: Optional[DatabaseConnection] = None
    ) -> 'EngineService':
        """Wire the engine from configuration (connections may be passed in)."""
        config = config or ConfigManager()

        source_db = source_db or DatabaseConnection.from_config(SOURCE_DATABASE, config)
        analytics_db = analytics_db or DatabaseConnection.from_config(ANALYTICS_DATABASE, config)

        notifier = ChangeNotifier(
            queue_size=int(config.get_notifier_config().get('queue_size', DEFAULT_QUEUE_SIZE))
        )
        sink = SnapshotSink(analytics_db)
        run_log = RunLog(analytics_db)
        pipeline = ETLPipeline(source_db, sink, run_log, notifier=notifier, config=config)

        scheduler_config = config.get_scheduler_config()
        scheduler = ETLScheduler(
            pipeline.run,
            schedule=str(scheduler_config.get('etl_schedule') or DEFAULT_SCHEDULE),
            timezone=scheduler_config.get('timezone') or 'UTC'
        )

        return cls(
            source_db=source_db,
            analytics_db=analytics_db,
            notifier=notifier,
            sink=sink,
            run_log=run_log,
            pipeline=pipeline,
            scheduler=scheduler
        )

    def trigger_etl(self) -> RunResult:
        """Manual, on-demand run (refused while another run is in flight)."""
        return self.scheduler.trigger()

    def health_check(self) -> Dict[str, Any]:
        """
        Report connectivity, schedule and the latest run.

        Returns:
            Dict with status 'healthy' or 'degraded'
        """
        source_ok = self.source_db.check_connection()
        analytics_ok = self.analytics_db.check_connection()

        latest = None
        if analytics_ok:
            entry = self.run_log.latest()
            latest = entry.to_dict() if entry else None

        return {
            'status': 'healthy' if source_ok and analytics_ok else 'degraded',
            'timestamp': utcnow().isoformat(),
            'services': {
                'source_database': 'connected' if source_ok else 'disconnected',
                'analytics_database': 'connected' if analytics_ok else 'disconnected',
                'etl': 'RUNNING' if self.scheduler.is_active else 'STOPPED',
            },
            'scheduler': self.scheduler.status(),
            'latest_run': latest,
        }

    def close(self) -> None:
        """Stop the scheduler and drain both connection pools."""
        self.scheduler.shutdown()
        self.source_db.dispose()
        self.analytics_db.dispose()


def start_service(config: Optional[ConfigManager] = None, start_scheduler: bool = True) -> EngineService:
    """
    Initialize the engine on service start.

    Args:
        config: Optional configuration manager
        start_scheduler: Start the cron trigger when enabled in config

    Returns:
        EngineService
    """
    setup_logging()
    config = config or ConfigManager()

    service = EngineService.from_config(config)

    if start_scheduler and config.get_scheduler_config().get('enabled', True):
        service.scheduler.start()
    else:
        logger.info("ETL scheduler is disabled")

    logger.info("KPI engine started")
    return service


def stop_service(service: EngineService) -> None:
    """Shut the engine down on service stop."""
    service.close()
    logger.info("KPI engine stopped")


def run_etl(config: Optional[ConfigManager] = None) -> RunResult:
    """
    Convenience function for a one-off run outside a long-lived service.

    Builds the connections, runs the pipeline once and disposes them.
    """
    service = EngineService.from_config(config)
    try:
        return service.pipeline.run()
    finally:
        service.close()
