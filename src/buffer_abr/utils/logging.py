"""
Logging Utilities

This module provides standardized logging configuration for the ABR engine.
"""

import os
import sys
import json
import logging
import logging.handlers
from typing import Dict, Any, Optional, Union
from datetime import datetime


# Default log format
DEFAULT_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Log levels dictionary for easier configuration
LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL
}


def _resolve_level(log_level: Union[str, int]) -> int:
    if isinstance(log_level, str):
        return LOG_LEVELS.get(log_level.lower(), logging.INFO)
    return log_level


def _configure_handlers(
    logger: logging.Logger,
    level: int,
    formatter: logging.Formatter,
    log_file: Optional[str],
    console: bool,
    file_size_limit: int,
    backup_count: int
) -> None:
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        # Rotate to keep long playback sessions bounded on disk
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=file_size_limit,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)


def setup_logger(
    name: str,
    log_level: Union[str, int] = 'info',
    log_file: Optional[str] = None,
    console: bool = True,
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    file_size_limit: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5
) -> logging.Logger:
    """Set up a logger with file and/or console handlers.

    Args:
        name: Logger name
        log_level: Logging level ('debug', 'info', 'warning', 'error', 'critical')
        log_file: Path to log file (if None, file logging is disabled)
        console: Whether to enable console logging
        log_format: Log format string
        date_format: Date format string
        file_size_limit: Maximum log file size in bytes before rotation
        backup_count: Number of backup log files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    _configure_handlers(
        logger,
        _resolve_level(log_level),
        logging.Formatter(log_format, date_format),
        log_file,
        console,
        file_size_limit,
        backup_count
    )
    return logger


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_logger_name: bool = True,
        include_level: bool = True,
        include_location: bool = False,
        additional_fields: Optional[Dict[str, Any]] = None
    ):
        """Initialize the JSON formatter.

        Args:
            include_timestamp: Whether to include timestamp in JSON log
            include_logger_name: Whether to include logger name in JSON log
            include_level: Whether to include log level in JSON log
            include_location: Whether to include path, function and line
            additional_fields: Additional fields to include in JSON log
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_logger_name = include_logger_name
        self.include_level = include_level
        self.include_location = include_location
        self.additional_fields = additional_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: Log record

        Returns:
            JSON formatted log entry
        """
        log_data: Dict[str, Any] = {'message': record.getMessage()}

        if self.include_timestamp:
            log_data['timestamp'] = int(record.created * 1000)  # milliseconds
            log_data['time'] = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]

        if self.include_level:
            log_data['level'] = record.levelname

        if self.include_logger_name:
            log_data['logger'] = record.name

        if self.include_location:
            log_data['path'] = record.pathname
            log_data['function'] = record.funcName
            log_data['line'] = record.lineno

        # Structured payload passed through `extra=`
        for key in ('event', 'data'):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        for key, value in self.additional_fields.items():
            log_data[key] = value

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)


def setup_json_logger(
    name: str,
    log_level: Union[str, int] = 'info',
    log_file: Optional[str] = None,
    console: bool = True,
    additional_fields: Optional[Dict[str, Any]] = None,
    include_location: bool = False,
    file_size_limit: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5
) -> logging.Logger:
    """Set up a logger with JSON formatting.

    Args:
        name: Logger name
        log_level: Logging level ('debug', 'info', 'warning', 'error', 'critical')
        log_file: Path to log file (if None, file logging is disabled)
        console: Whether to enable console logging
        additional_fields: Additional fields to include in JSON log
        include_location: Whether to include source location in JSON log
        file_size_limit: Maximum log file size in bytes before rotation
        backup_count: Number of backup log files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    _configure_handlers(
        logger,
        _resolve_level(log_level),
        JsonFormatter(include_location=include_location, additional_fields=additional_fields),
        log_file,
        console,
        file_size_limit,
        backup_count
    )
    return logger


def configure_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up the package logger from the 'general' configuration section.

    Args:
        config: Configuration dictionary

    Returns:
        Configured package logger
    """
    general = config.get('general', {})
    if general.get('json_logs'):
        return setup_json_logger(
            'buffer_abr',
            log_level=general.get('log_level', 'info'),
            log_file=general.get('log_file')
        )
    return setup_logger(
        'buffer_abr',
        log_level=general.get('log_level', 'info'),
        log_file=general.get('log_file')
    )
