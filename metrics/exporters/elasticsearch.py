"""Elasticsearch bulk sink over HTTP"""
import json
from typing import Any, Dict, List, Optional, Sequence
import httpx
from .base import BaseSink
from metrics.exceptions import SinkRequestError, SinkTransportError
from metrics.models import BulkItemResult, MetricDocument
from config import Config
from logging_config import get_logger


logger = get_logger(__name__)

NDJSON_HEADERS = {"Content-Type": "application/x-ndjson"}


def normalize_host(host: str) -> str:
    """Turn ``host:port`` into a base URL"""
    host = host.strip().rstrip('/')
    if "://" not in host:
        host = f"http://{host}"
    return host


class ElasticsearchSink(BaseSink):
    """Writes documents with the _bulk API, failing over between hosts"""

    def __init__(self,
                 hosts: Sequence[str],
                 timeout: float = 10.0,
                 use_mapping_types: bool = True,
                 client: Optional[httpx.AsyncClient] = None):
        if not hosts:
            raise ValueError("At least one Elasticsearch host is required")
        self.hosts = [normalize_host(host) for host in hosts]
        self.use_mapping_types = use_mapping_types
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._active_host = 0

    @classmethod
    def from_config(cls, config: Config) -> "ElasticsearchSink":
        return cls(
            hosts=config.elasticsearch_hosts,
            timeout=config.request_timeout,
            use_mapping_types=config.use_mapping_types
        )

    def build_bulk_body(self, documents: Sequence[MetricDocument]) -> str:
        """Build the NDJSON body of a bulk request"""
        lines = []
        for document in documents:
            action: Dict[str, Any] = {"_index": document.index}
            if self.use_mapping_types:
                action["_type"] = document.doc_type
            lines.append(json.dumps({"index": action}))
            lines.append(json.dumps(document.to_source()))
        return "\n".join(lines) + "\n"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request to the first host that answers without a server error"""
        errors = []
        for attempt in range(len(self.hosts)):
            index = (self._active_host + attempt) % len(self.hosts)
            url = f"{self.hosts[index]}{path}"
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                logger.warning("Elasticsearch host unavailable", host=self.hosts[index], error=str(e))
                errors.append(f"{self.hosts[index]}: {e}")
                continue

            if response.status_code >= 500:
                logger.warning("Elasticsearch host returned server error",
                               host=self.hosts[index], status_code=response.status_code)
                errors.append(f"{self.hosts[index]}: HTTP {response.status_code}")
                continue

            self._active_host = index
            return response

        raise SinkTransportError(f"All Elasticsearch hosts failed: {'; '.join(errors)}")

    async def bulk_write(self, documents: Sequence[MetricDocument]) -> List[BulkItemResult]:
        if not documents:
            return []

        response = await self._request(
            "POST", "/_bulk",
            content=self.build_bulk_body(documents),
            headers=NDJSON_HEADERS
        )
        if response.status_code >= 400:
            raise SinkRequestError(
                f"Bulk request rejected with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SinkRequestError(f"Unreadable bulk response: {e}", status_code=response.status_code) from e

        return [self._item_result(item) for item in payload.get("items", [])]

    def _item_result(self, item: Dict[str, Any]) -> BulkItemResult:
        # Each item is keyed by its action name
        outcome = next(iter(item.values()), {}) if item else {}
        status = int(outcome.get("status", 0))
        error = outcome.get("error")
        if error is not None or not 200 <= status < 300:
            if isinstance(error, dict):
                error = f"{error.get('type', 'error')}: {error.get('reason', '')}"
            return BulkItemResult(ok=False, status=status, error=str(error) if error else None)
        return BulkItemResult(ok=True, status=status)

    async def delete_index(self, pattern: str) -> bool:
        response = await self._request("DELETE", f"/{pattern}")
        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            raise SinkRequestError(f"Deleting {pattern} failed with HTTP {response.status_code}",
                                   status_code=response.status_code)
        return True

    async def ping(self) -> bool:
        try:
            response = await self._request("GET", "/")
        except SinkTransportError:
            return False
        return response.status_code == 200

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
        logger.debug("Elasticsearch sink closed")
