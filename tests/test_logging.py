"""Tests for logging configuration"""
import tempfile
import os
import logging
from pathlib import Path
from unittest.mock import patch

from config import Config
from logging_config import (
    setup_structured_logging,
    get_logger,
    log_report_cycle,
    log_reporter_startup,
    log_error
)


class TestLoggingConfig:
    """Test logging configuration and structured logging"""

    def test_setup_structured_logging(self):
        """Test structured logging setup"""
        with tempfile.TemporaryDirectory() as tmp_dir:
            log_file = Path(tmp_dir) / "logs" / "test.log"
            config = Config(index_prefix="m-", log_file=log_file, log_level="DEBUG")

            setup_structured_logging(config)

            assert log_file.parent.exists()
            logger = logging.getLogger("test")
            assert logger.isEnabledFor(logging.DEBUG)

            # Swap the file handler out before the directory goes away
            setup_structured_logging(Config(index_prefix="m-"))

    def test_setup_without_log_file(self):
        """Test console-only logging"""
        config = Config(index_prefix="m-", log_level="WARNING")

        setup_structured_logging(config)

        assert logging.getLogger().level == logging.WARNING
        assert all(not isinstance(h, logging.FileHandler) for h in logging.getLogger().handlers)

    def test_get_logger(self):
        """Test getting structured logger"""
        logger = get_logger("test_logger")

        assert logger is not None
        assert hasattr(logger, 'info')
        assert hasattr(logger, 'error')
        assert hasattr(logger, 'debug')
        assert hasattr(logger, 'warning')

    def test_log_report_cycle(self):
        """Test structured report cycle logging"""
        logger = get_logger("test")

        log_report_cycle(logger, metrics_count=15, submitted=15, failed=0, cycle_time=0.5)
        log_report_cycle(logger, metrics_count=5, submitted=5, failed=2, cycle_time=1.2, read_errors=1)

    def test_log_reporter_startup(self):
        """Test structured reporter startup logging"""
        logger = get_logger("test")
        config = Config(index_prefix="m-")

        log_reporter_startup(logger, config)

    def test_log_error(self):
        """Test structured error logging"""
        logger = get_logger("test")
        error = ValueError("Test error")
        context = {"component": "test", "request_id": "123"}

        log_error(logger, error, context)
        log_error(logger, error)

    def test_development_vs_production_logging(self):
        """Test different logging configurations for development vs production"""
        config = Config(index_prefix="m-")

        with patch.dict(os.environ, {"ENVIRONMENT": "development"}):
            setup_structured_logging(config)
            logger = get_logger("test")
            logger.info("Test development log")

        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            setup_structured_logging(config)
            logger = get_logger("test")
            logger.info("Test production log")

    def test_logger_context_binding(self):
        """Test logger context binding"""
        logger = get_logger("test")

        bound_logger = logger.bind(index="test-2014.05.13", chunk=1)
        bound_logger.info("Test message with context")
