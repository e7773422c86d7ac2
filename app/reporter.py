"""Scheduled reporter pushing registry snapshots to Elasticsearch"""
import asyncio
import time
from enum import Enum
from typing import List, Optional, Tuple
from config import Config
from metrics.clock import Clock, default_clock
from metrics.exceptions import ReporterStateError
from metrics.exporters.base import BaseSink
from metrics.exporters.batch_exporter import BulkFlushExecutor, DocumentBatchBuffer
from metrics.exporters.elasticsearch import ElasticsearchSink
from metrics.models import FlushResult, MetricDocument, MetricKind
from metrics.registry import MetricFilter, MetricRegistry, match_all
from metrics.transformer import MetricDocumentConverter
from logging_config import get_logger, log_error, log_report_cycle


logger = get_logger(__name__)


class ReporterState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class ElasticsearchReporter:
    """Runs report cycles on a fixed delay: snapshot, convert, buffer, flush

    Cycles never overlap. A cycle requested while another one is running is
    skipped. ``stop`` halts scheduling at once and gives an in-flight cycle
    ``shutdown_grace_period`` seconds before cancelling it. Stopped is final.

    ``start`` and ``stop`` must be called from the event loop running the
    reporter and are not safe to call concurrently.
    """

    def __init__(self,
                 registry: MetricRegistry,
                 config: Config,
                 sink: Optional[BaseSink] = None,
                 clock: Optional[Clock] = None,
                 metric_filter: Optional[MetricFilter] = None):
        self.registry = registry
        self.config = config
        self.clock = clock or default_clock
        self.metric_filter = metric_filter or match_all

        self._owns_sink = sink is None
        self.sink = sink or ElasticsearchSink.from_config(config)
        self.converter = MetricDocumentConverter.from_config(config)
        self.buffer = DocumentBatchBuffer(config.bulk_request_limit)
        self.flush_executor = BulkFlushExecutor(self.sink, config.bulk_request_limit)

        self._state = ReporterState.IDLE
        self._cycle_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._report_task: Optional[asyncio.Task] = None
        self.period: Optional[float] = None

        # Observability counters
        self.report_count = 0
        self.skipped_cycles = 0
        self.read_errors = 0
        self.documents_submitted = 0
        self.documents_failed = 0
        self.last_report_time = 0.0
        self.last_flush_result: Optional[FlushResult] = None

    @property
    def state(self) -> ReporterState:
        return self._state

    def is_running(self) -> bool:
        return self._state is ReporterState.RUNNING

    def _matches(self, name: str, kind: MetricKind) -> bool:
        return self.config.is_kind_enabled(kind) and self.metric_filter(name, kind)

    async def start(self, initial_delay: Optional[float] = None, period: Optional[float] = None) -> None:
        """Schedule report cycles every ``period`` seconds after ``initial_delay``"""
        if self._state is ReporterState.RUNNING:
            raise ReporterStateError("Reporter is already started")
        if self._state is ReporterState.STOPPED:
            raise ReporterStateError("Reporter cannot be restarted after stop")

        period = self.config.report_interval if period is None else period
        initial_delay = period if initial_delay is None else initial_delay
        if period <= 0:
            raise ValueError("Report period must be positive")
        if initial_delay < 0:
            raise ValueError("Initial delay must not be negative")

        self.period = period
        self._stop_event = asyncio.Event()
        self._report_task = asyncio.create_task(self._report_loop(initial_delay, period))
        self._state = ReporterState.RUNNING

        logger.info("Reporter started",
                    initial_delay=initial_delay,
                    period=period,
                    index_prefix=self.config.index_prefix,
                    event_type="reporter_start")

    async def stop(self) -> None:
        """Stop scheduling; wait up to the grace period for an in-flight cycle"""
        if self._state is ReporterState.STOPPED:
            return

        self._state = ReporterState.STOPPED
        if self._stop_event is not None:
            self._stop_event.set()

        # The in-flight cycle may come from the schedule or from a manual report()
        in_flight = {task for task in (self._report_task, self._cycle_task)
                     if task is not None and not task.done()}
        if in_flight:
            _, pending = await asyncio.wait(in_flight, timeout=self.config.shutdown_grace_period)
            if pending:
                logger.warning("Report cycle did not finish within grace period, cancelling",
                               grace_period=self.config.shutdown_grace_period)
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        if len(self.buffer):
            discarded = self.buffer.drain()
            logger.warning("Discarding unflushed documents", discarded_count=len(discarded))

        if self._owns_sink:
            await self.sink.close()

        logger.info("Reporter stopped",
                    total_reports=self.report_count,
                    event_type="reporter_stop")

    async def _report_loop(self, initial_delay: float, period: float) -> None:
        """Fixed-delay loop; each delay starts when the previous cycle ends"""
        if await self._wait_for_stop(initial_delay):
            return
        while True:
            try:
                await self.report()
            except asyncio.CancelledError:
                raise
            except ReporterStateError:
                return
            except Exception as e:
                log_error(logger, e, {"component": "report_loop", "report_count": self.report_count})
            if await self._wait_for_stop(period):
                return

    async def _wait_for_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def report(self) -> Optional[FlushResult]:
        """Run one report cycle; returns None when skipped because one is running

        Raises ReporterStateError when stopped, including when ``stop`` abandons
        this cycle after the grace period.
        """
        if self._state is ReporterState.STOPPED:
            raise ReporterStateError("Reporter is stopped")
        if self._cycle_task is not None and not self._cycle_task.done():
            self.skipped_cycles += 1
            logger.warning("Report cycle still running, skipping", skipped_cycles=self.skipped_cycles)
            return None

        cycle = asyncio.create_task(self._run_cycle())
        self._cycle_task = cycle
        try:
            await asyncio.wait({cycle})
        except asyncio.CancelledError:
            cycle.cancel()
            raise

        if cycle.cancelled():
            raise ReporterStateError("Report cycle abandoned on stop")
        return cycle.result()

    async def _run_cycle(self) -> FlushResult:
        start_time = time.time()
        timestamp = self.clock.get_time()
        documents, read_errors = self.collect_documents(timestamp)

        result = FlushResult()
        for document in documents:
            self.buffer.add(document)
            if self.buffer.is_full():
                result = result + await self.flush_executor.flush(self.buffer.drain())
        if len(self.buffer):
            result = result + await self.flush_executor.flush(self.buffer.drain())

        self.report_count += 1
        self.read_errors += read_errors
        self.documents_submitted += result.submitted
        self.documents_failed += result.failed
        self.last_flush_result = result
        self.last_report_time = time.time()

        log_report_cycle(logger, len(documents), result.submitted, result.failed,
                         self.last_report_time - start_time, read_errors)
        return result

    def collect_documents(self, timestamp: int) -> Tuple[List[MetricDocument], int]:
        """Convert every matching metric; a metric that fails to read is skipped"""
        index = self.converter.index_for(timestamp)
        documents: List[MetricDocument] = []
        read_errors = 0

        for name, kind, metric in self.registry.list_metrics(self._matches):
            try:
                documents.append(self.converter.convert(name, kind, metric, timestamp, index))
            except Exception as e:
                read_errors += 1
                logger.error("Failed to read metric",
                             metric=name,
                             kind=kind.value,
                             error=str(e),
                             error_type=type(e).__name__,
                             event_type="metric_read_error")

        return documents, read_errors
