"""Shared fixtures for reporter tests"""
import asyncio
import json
from typing import Callable, List, Sequence, Set
import httpx
import pytest

from config import Config
from metrics.clock import FixedClock
from metrics.exceptions import SinkTransportError
from metrics.exporters.base import BaseSink
from metrics.models import BulkItemResult, MetricDocument
from metrics.registry import MetricRegistry


TEST_TIMESTAMP = 1_400_000_000_000


class RecordingSink(BaseSink):
    """In-memory sink recording every bulk call"""

    def __init__(self,
                 fail_calls: Set[int] = None,
                 reject: Callable[[MetricDocument], bool] = None,
                 delay: float = 0.0):
        self.calls: List[List[MetricDocument]] = []
        self.fail_calls = fail_calls or set()
        self.reject = reject
        self.delay = delay
        self.entered = asyncio.Event()
        self.closed = False

    @property
    def documents(self) -> List[MetricDocument]:
        return [document for call in self.calls for document in call]

    async def bulk_write(self, documents: Sequence[MetricDocument]) -> List[BulkItemResult]:
        call_index = len(self.calls)
        self.calls.append(list(documents))
        self.entered.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if call_index in self.fail_calls:
            raise SinkTransportError("connection refused")
        results = []
        for document in documents:
            if self.reject and self.reject(document):
                results.append(BulkItemResult(ok=False, status=400, error="mapper_parsing_exception: bad value"))
            else:
                results.append(BulkItemResult(ok=True, status=201))
        return results

    async def delete_index(self, pattern: str) -> bool:
        return True

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


class FakeElasticsearch:
    """httpx transport handler emulating the _bulk endpoint in memory"""

    def __init__(self):
        self.bulk_requests: List[List[dict]] = []
        self.indexed: List[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/_bulk":
            lines = [json.loads(line) for line in request.content.decode().splitlines() if line]
            pairs = list(zip(lines[::2], lines[1::2]))
            self.bulk_requests.append([source for _, source in pairs])
            items = []
            for action, source in pairs:
                meta = action["index"]
                self.indexed.append({"_index": meta["_index"], "_type": meta.get("_type"), "_source": source})
                items.append({"index": {"_index": meta["_index"], "status": 201}})
            return httpx.Response(200, json={"took": 1, "errors": False, "items": items})
        if request.method == "DELETE":
            return httpx.Response(200, json={"acknowledged": True})
        return httpx.Response(200, json={"tagline": "You Know, for Search"})

    def sources(self, doc_type: str = None) -> List[dict]:
        return [hit["_source"] for hit in self.indexed if doc_type is None or hit["_type"] == doc_type]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def make_config(**overrides) -> Config:
    settings = {
        "index_prefix": "test-",
        "metric_name_prefix": "prefix",
        "rate_unit": "seconds",
        "duration_unit": "milliseconds",
        "bulk_request_limit": 10,
        "report_interval": 1.0,
        "shutdown_grace_period": 1.0,
    }
    settings.update(overrides)
    return Config(**settings)


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(time_ms=TEST_TIMESTAMP)


@pytest.fixture
def registry(clock) -> MetricRegistry:
    return MetricRegistry(clock=clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
