"""Tests for the application logger setup."""

import json
import logging

from logger_setup import LOGGER_NAME, setup_logging


def test_setup_logging_writes_run_log(tmp_path):
    """The logger writes to runs/<run_id>/simulation.log and does not propagate."""
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({
        "run_id": "unit",
        "logging": {"level": "DEBUG", "format": "%(levelname)s %(message)s", "directory": str(tmp_path / "runs")},
    }))

    logger = setup_logging(str(config_path))
    try:
        logger.debug("hello from the test")
        for handler in logger.handlers:
            handler.flush()

        assert logger is logging.getLogger(LOGGER_NAME)
        assert logger.propagate is False
        log_file = tmp_path / "runs" / "unit" / "simulation.log"
        assert "hello from the test" in log_file.read_text()
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()


def test_setup_logging_twice_replaces_handlers(tmp_path):
    """Calling setup again swaps in fresh handlers instead of stacking them."""
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({
        "run_id": "again",
        "logging": {"level": "INFO", "format": "%(message)s", "directory": str(tmp_path / "runs")},
    }))

    first = list(setup_logging(str(config_path)).handlers)
    logger = setup_logging(str(config_path))
    try:
        assert len(logger.handlers) == 2
        assert not any(handler in first for handler in logger.handlers)
        file_handler = next(h for h in first if isinstance(h, logging.FileHandler))
        assert file_handler.stream is None
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
