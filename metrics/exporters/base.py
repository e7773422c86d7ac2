"""Base sink interface"""
import abc
from typing import List, Sequence
from metrics.models import BulkItemResult, MetricDocument


class BaseSink(abc.ABC):
    """Abstract destination for batches of metric documents"""

    @abc.abstractmethod
    async def bulk_write(self, documents: Sequence[MetricDocument]) -> List[BulkItemResult]:
        """Write documents in one request, returning one result per document in order

        Raises SinkError when the request as a whole fails.
        """
        pass

    @abc.abstractmethod
    async def delete_index(self, pattern: str) -> bool:
        """Delete indices matching a pattern"""
        pass

    @abc.abstractmethod
    async def ping(self) -> bool:
        """Check if the sink is reachable"""
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """Release connections"""
        pass
