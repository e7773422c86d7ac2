"""Batch buffering and chunked bulk flushing of metric documents"""
import time
from typing import Iterator, List, Sequence
from .base import BaseSink
from metrics.exceptions import SinkError
from metrics.models import FlushResult, MetricDocument
from logging_config import get_logger


logger = get_logger(__name__)


class DocumentBatchBuffer:
    """Insertion-ordered document buffer with a fill threshold

    The buffer never drops documents; callers drain it once it reports full.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Buffer capacity must be at least 1")
        self.capacity = capacity
        self._documents: List[MetricDocument] = []

    def add(self, document: MetricDocument) -> None:
        self._documents.append(document)

    def is_full(self) -> bool:
        return len(self._documents) >= self.capacity

    def drain(self) -> List[MetricDocument]:
        """Return the buffered documents and empty the buffer"""
        documents, self._documents = self._documents, []
        return documents

    def __len__(self) -> int:
        return len(self._documents)


def chunked(documents: Sequence[MetricDocument], size: int) -> Iterator[List[MetricDocument]]:
    """Split documents into ordered chunks of at most ``size``"""
    for start in range(0, len(documents), size):
        yield list(documents[start:start + size])


class BulkFlushExecutor:
    """Flushes batches to a sink in bulk requests of bounded size"""

    def __init__(self, sink: BaseSink, bulk_request_limit: int = 100):
        if bulk_request_limit < 1:
            raise ValueError("Bulk request limit must be at least 1")
        self.sink = sink
        self.bulk_request_limit = bulk_request_limit

    async def flush(self, batch: Sequence[MetricDocument]) -> FlushResult:
        """Write the batch chunk by chunk; a failed chunk never stops the next one"""
        result = FlushResult()
        for chunk in chunked(batch, self.bulk_request_limit):
            result = result + await self._flush_chunk(chunk)
        return result

    async def _flush_chunk(self, chunk: List[MetricDocument]) -> FlushResult:
        start_time = time.time()
        try:
            items = await self.sink.bulk_write(chunk)
        except SinkError as e:
            logger.error("Bulk request failed, chunk dropped",
                         chunk_size=len(chunk),
                         error=str(e),
                         error_type=type(e).__name__)
            return FlushResult(submitted=len(chunk), failed=len(chunk), chunks=1)

        failed = 0
        for document, item in zip(chunk, items):
            if not item.ok:
                failed += 1
                logger.warning("Document rejected",
                               metric=document.name,
                               kind=document.doc_type,
                               index=document.index,
                               status=item.status,
                               error=item.error)

        if len(items) < len(chunk):
            missing = len(chunk) - len(items)
            failed += missing
            logger.warning("Bulk response is missing items",
                           chunk_size=len(chunk),
                           items_returned=len(items))

        logger.debug("Chunk flushed",
                     chunk_size=len(chunk),
                     failed=failed,
                     flush_time_seconds=round(time.time() - start_time, 3))
        return FlushResult(submitted=len(chunk), failed=failed, chunks=1)
