"""
Unit tests for logging utilities
"""

import json
import logging

from buffer_abr.utils.logging import (
    setup_logger, setup_json_logger, JsonFormatter, configure_from_config
)


def test_setup_logger_levels(tmp_path):
    log_file = tmp_path / 'logs' / 'abr.log'
    logger = setup_logger('test_abr_logger', log_level='debug', log_file=str(log_file), console=False)

    logger.debug("quality changed")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert "quality changed" in log_file.read_text()


def test_setup_logger_replaces_handlers():
    setup_logger('test_abr_replace', console=True)
    logger = setup_logger('test_abr_replace', console=True)
    assert len(logger.handlers) == 1


def test_json_formatter():
    formatter = JsonFormatter(additional_fields={'session': 'abc'})
    record = logging.LogRecord('buffer_abr.engine', logging.INFO, __file__, 1,
                               "Increasing quality to: %d", (2,), None)
    record.event = 'switch'

    data = json.loads(formatter.format(record))

    assert data['message'] == "Increasing quality to: 2"
    assert data['level'] == 'INFO'
    assert data['logger'] == 'buffer_abr.engine'
    assert data['event'] == 'switch'
    assert data['session'] == 'abc'


def test_setup_json_logger():
    logger = setup_json_logger('test_abr_json', console=True)
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)


def test_configure_from_config():
    logger = configure_from_config({'general': {'log_level': 'warning', 'json_logs': True}})

    assert logger.name == 'buffer_abr'
    assert logger.level == logging.WARNING
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    # Leave the package logger as the other tests expect it
    logger.handlers = []
    logger.setLevel(logging.NOTSET)
