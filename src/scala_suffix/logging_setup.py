# src/scala_suffix/logging_setup.py
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from scala_suffix.config import AppSettings, LoggingConfig


def _handlers(log_settings: LoggingConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_settings.log_to_file:
        log_file_path = Path(log_settings.log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file_path,
                maxBytes=log_settings.rotation_size_mb * 1024 * 1024,
                backupCount=log_settings.rotation_backup_count,
            )
        )
    return handlers


def setup_logging(config: AppSettings, level: Optional[str] = None) -> None:
    """
    Route scala-suffix logging to the console and, if configured, a
    rotating log file. Replaces any handlers already on the root logger.

    Args:
        config: Loaded application settings
        level: Overrides config.logging.level (e.g. from --log-level)
    """
    log_settings = config.logging
    logging.basicConfig(
        level=(level or log_settings.level).upper(),
        format=log_settings.format,
        handlers=_handlers(log_settings),
        force=True,
    )
    logging.getLogger(__name__).debug(
        f"Logging at {logging.getLevelName(logging.getLogger().level)}"
    )
