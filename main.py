#!/usr/bin/env python3
"""Main entry point for the Elasticsearch metrics reporter"""
import sys
import uvicorn
from config import Config
from app.reporter import ElasticsearchReporter
from app.server import ReporterServer
from metrics.process_gauges import register_process_metrics
from metrics.registry import MetricRegistry
from logging_config import setup_structured_logging, get_logger, log_reporter_startup, log_error


def main():
    """Main application entry point"""
    try:
        config = Config()

        setup_structured_logging(config)
        logger = get_logger(__name__)

        log_reporter_startup(logger, config)

        registry = MetricRegistry()
        if config.enable_process_metrics:
            register_process_metrics(registry)

        reporter = ElasticsearchReporter(registry, config)
        server = ReporterServer(config, reporter)

        uvicorn.run(
            server.get_app(),
            host=config.status_host,
            port=config.status_port,
            log_config=None  # We handle logging ourselves
        )

    except Exception as e:
        logger = get_logger(__name__)
        log_error(logger, e, {"component": "main", "phase": "startup"})
        sys.exit(1)


if __name__ == '__main__':
    main()
