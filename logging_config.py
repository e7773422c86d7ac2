"""Structured logging configuration for the Elasticsearch metrics reporter"""
import logging
import os
import sys
from typing import Any, Dict
import structlog
from structlog.stdlib import LoggerFactory
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, StackInfoRenderer
from config import Config


def setup_structured_logging(config: Config) -> None:
    """Setup structured logging with JSON format for production and console for development"""

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        TimeStamper(fmt="iso"),
        StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    is_development = os.getenv("ENVIRONMENT", "production").lower() == "development"
    if is_development:
        processors.append(ConsoleRenderer())
    else:
        processors.append(JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, config.log_level.upper())
    handlers = []

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(config.log_file))
        file_handler.setLevel(level)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True
    )

    # Set specific logger levels to reduce noise
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance"""
    return structlog.get_logger(name)


def log_report_cycle(logger: structlog.stdlib.BoundLogger, metrics_count: int, submitted: int,
                     failed: int, cycle_time: float, read_errors: int = 0) -> None:
    """Log a completed report cycle with structured data"""
    logger.info(
        "Report cycle completed",
        metrics_count=metrics_count,
        documents_submitted=submitted,
        documents_failed=failed,
        read_errors=read_errors,
        cycle_time_seconds=round(cycle_time, 3),
        event_type="report_cycle"
    )


def log_reporter_startup(logger: structlog.stdlib.BoundLogger, config: Config) -> None:
    """Log reporter startup with configuration details"""
    logger.info(
        "Reporter starting up",
        service_name=config.service_name,
        service_version=config.service_version,
        report_interval=config.report_interval,
        index_prefix=config.index_prefix,
        elasticsearch_hosts=config.elasticsearch_hosts,
        bulk_request_limit=config.bulk_request_limit,
        enabled_metric_kinds=[kind.value for kind in config.enabled_metric_kinds],
        event_type="reporter_startup"
    )


def log_error(logger: structlog.stdlib.BoundLogger, error: Exception, context: Dict[str, Any] = None) -> None:
    """Log error with structured context"""
    logger.error(
        "Error occurred",
        error=str(error),
        error_type=type(error).__name__,
        context=context or {},
        event_type="error",
        exc_info=True
    )
