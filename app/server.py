"""FastAPI status server wrapping the reporter"""
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from config import Config
from metrics.exceptions import ReporterStateError
from .reporter import ElasticsearchReporter
from logging_config import get_logger, log_error


logger = get_logger(__name__)


class ReporterServer:
    """Health, status and manual trigger endpoints for a reporter"""

    def __init__(self, config: Config, reporter: ElasticsearchReporter):
        self.config = config
        self.reporter = reporter
        self.start_time = time.time()
        self.app = FastAPI(
            title="Elasticsearch Metrics Reporter",
            version=config.service_version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=self._lifespan
        )
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        self.start_time = time.time()
        await self.reporter.start()
        try:
            yield
        finally:
            logger.info("Shutting down reporter", event_type="server_shutdown")
            await self.reporter.stop()

    def _report_age(self) -> float:
        if self.reporter.last_report_time > 0:
            return time.time() - self.reporter.last_report_time
        return float('inf')

    def _setup_routes(self):

        @self.app.get('/health')
        def health_check():
            """Healthy while cycles keep completing on schedule"""
            age = self._report_age()
            period = self.reporter.period or self.config.report_interval
            uptime = time.time() - self.start_time
            # The first cycle only runs after the initial delay
            is_healthy = self.reporter.is_running() and (age < period * 2 or uptime < period * 2)

            health_data = {
                "status": "healthy" if is_healthy else "unhealthy",
                "state": self.reporter.state.value,
                "last_report_seconds_ago": round(age, 1) if age != float('inf') else None,
                "report_interval": period,
                "total_reports": self.reporter.report_count,
            }

            if not is_healthy:
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

        @self.app.get('/status')
        def get_status():
            """Detailed status information"""
            age = self._report_age()
            last = self.reporter.last_flush_result

            return {
                "service": {
                    "name": self.config.service_name,
                    "version": self.config.service_version,
                    "uptime_seconds": round(time.time() - self.start_time, 1),
                },
                "reporter": {
                    "state": self.reporter.state.value,
                    "report_interval": self.reporter.period or self.config.report_interval,
                    "last_report_seconds_ago": round(age, 1) if age != float('inf') else None,
                    "total_reports": self.reporter.report_count,
                    "skipped_cycles": self.reporter.skipped_cycles,
                    "read_errors": self.reporter.read_errors,
                    "documents_submitted": self.reporter.documents_submitted,
                    "documents_failed": self.reporter.documents_failed,
                    "last_flush": {
                        "submitted": last.submitted,
                        "failed": last.failed,
                        "chunks": last.chunks,
                    } if last else None,
                },
                "sink": {
                    "hosts": self.config.elasticsearch_hosts,
                    "index_prefix": self.config.index_prefix,
                    "bulk_request_limit": self.config.bulk_request_limit,
                },
                "metrics": self.reporter.registry.names(),
            }

        @self.app.post('/report')
        async def manual_report():
            """Manually trigger a report cycle"""
            try:
                result = await self.reporter.report()
            except ReporterStateError as e:
                raise HTTPException(status_code=409, detail={"error": str(e)})
            except Exception as e:
                log_error(logger, e, {"component": "manual_report", "endpoint": "/report"})
                raise HTTPException(status_code=500, detail={"error": str(e)})

            if result is None:
                return {"success": False, "skipped": True, "message": "Report cycle already running"}
            return {
                "success": True,
                "skipped": False,
                "submitted": result.submitted,
                "failed": result.failed,
                "chunks": result.chunks,
            }

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
