"""
Logging Configuration Module
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from kpi_engine.config_manager import ConfigManager

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = './logs/kpi_engine.log'

# Per-statement SQL and per-tick scheduler chatter
QUIET_LOGGERS = ('sqlalchemy.engine', 'apscheduler')


def setup_logging() -> None:
    """Configure the root logger once per process (stdout plus a rotating file)."""
    log_config = ConfigManager().get_logging_config()

    level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    handlers = [logging.StreamHandler(sys.stdout)]

    log_file = log_config.get('file', DEFAULT_LOG_FILE)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=log_config.get('max_bytes', 10485760),
            backupCount=log_config.get('backup_count', 5)
        ))

    formatter = logging.Formatter(log_config.get('format', DEFAULT_FORMAT))
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerMixin:
    """Gives a class a logger named after its module and class."""

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")
