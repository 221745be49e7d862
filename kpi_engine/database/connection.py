"""
Database Connection Module
Handles connection pooling and session management for the source and
analytics stores using SQLAlchemy.
"""

import os
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from kpi_engine.config_manager import ConfigManager
from kpi_engine.utils.logger import get_logger

logger = get_logger(__name__)

SOURCE_DATABASE = 'source_database'
ANALYTICS_DATABASE = 'analytics_database'

DEFAULT_DRIVERS = {
    SOURCE_DATABASE: 'mysql+pymysql',
    ANALYTICS_DATABASE: 'postgresql+psycopg2',
}
DEFAULT_PORTS = {
    'mysql': 3306,
    'postgresql': 5432,
}


class DatabaseConnection:
    """
    Manages one store's engine and connection pool.

    Instances are process-scoped: build one per store at service start and
    call dispose() on shutdown.
    """

    def __init__(self, url: str, name: str = 'database', **engine_options):
        self.name = name
        self.url = url

        if make_url(url).get_backend_name() != 'sqlite':
            engine_options.setdefault('poolclass', QueuePool)
            engine_options.setdefault('pool_pre_ping', True)  # Enable connection health checks

        self._engine: Engine = create_engine(
            url,
            echo=os.getenv('SQL_ECHO', 'false').lower() == 'true',
            **engine_options
        )
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        logger.info(f"Database engine '{name}' initialized ({self._engine.url.render_as_string(hide_password=True)})")

    @classmethod
    def from_config(cls, section: str, config: Optional[ConfigManager] = None) -> 'DatabaseConnection':
        """
        Build a connection from a config section.

        Args:
            section: 'source_database' or 'analytics_database'
            config: Optional configuration manager

        Returns:
            DatabaseConnection
        """
        config = config or ConfigManager()
        db_config = config.get_database_config(section)

        url = db_config.get('url') or cls._build_connection_url(section, db_config)

        engine_options = {}
        if make_url(url).get_backend_name() != 'sqlite':
            engine_options = {
                'pool_size': int(db_config.get('pool_size', 10)),
                'max_overflow': int(db_config.get('max_overflow', 0)),
                'pool_timeout': int(db_config.get('pool_timeout', 30)),
            }

        return cls(url, name=section, **engine_options)

    @staticmethod
    def _build_connection_url(section: str, db_config: Dict) -> str:
        """Build a connection URL from discrete config values."""
        driver = db_config.get('driver') or DEFAULT_DRIVERS.get(section, 'postgresql+psycopg2')
        backend = driver.split('+')[0]
        host = db_config.get('host', 'localhost')
        port = db_config.get('port') or DEFAULT_PORTS.get(backend, 5432)
        name = db_config.get('name') or ''
        user = db_config.get('user') or ''
        password = db_config.get('password') or ''

        return f"{driver}://{user}:{password}@{host}:{port}/{name}"

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        return self._engine

    def get_session(self) -> Session:
        """Create a new database session."""
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Usage:
            with db.session_scope() as session:
                session.query(...)
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error on '{self.name}': {e}")
            raise
        finally:
            session.close()

    def check_connection(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            bool: True if connection is healthy, False otherwise.
        """
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.debug(f"Database '{self.name}' health check passed")
            return True
        except Exception as e:
            logger.error(f"Database '{self.name}' health check failed: {e}")
            return False

    def dispose(self) -> None:
        """Dispose of the connection pool."""
        if self._engine:
            self._engine.dispose()
            logger.info(f"Database '{self.name}' connection pool disposed")
