"""Metric document models"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class MetricKind(Enum):
    """Metric kinds, also used as the Elasticsearch document type"""
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"


class GaugeValueType(Enum):
    """Typed value slots of a gauge document"""
    INTEGER = "integerValue"
    LONG = "longValue"
    DOUBLE = "doubleValue"
    FLOAT = "floatValue"
    BYTE = "byteValue"
    SHORT = "shortValue"
    STRING = "stringValue"

    @property
    def field_name(self) -> str:
        return self.value


class TimeUnit(Enum):
    """Time units with their length in nanoseconds"""
    NANOSECONDS = "nanoseconds"
    MICROSECONDS = "microseconds"
    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

    @property
    def nanos(self) -> int:
        return _UNIT_NANOS[self]

    @property
    def seconds(self) -> float:
        return self.nanos / 1_000_000_000

    def to_nanos(self, duration: float) -> float:
        return duration * self.nanos

    def from_nanos(self, nanos: float) -> float:
        return nanos / self.nanos

    @classmethod
    def from_name(cls, name: str) -> "TimeUnit":
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown time unit: {name}") from None


_UNIT_NANOS = {
    TimeUnit.NANOSECONDS: 1,
    TimeUnit.MICROSECONDS: 1_000,
    TimeUnit.MILLISECONDS: 1_000_000,
    TimeUnit.SECONDS: 1_000_000_000,
    TimeUnit.MINUTES: 60 * 1_000_000_000,
    TimeUnit.HOURS: 3600 * 1_000_000_000,
    TimeUnit.DAYS: 86400 * 1_000_000_000,
}


NAME_FIELD = "@name"


def format_timestamp(timestamp_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string"""
    moment = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class MetricDocument:
    """One metric snapshot ready to be indexed"""
    name: str
    kind: MetricKind
    timestamp: int
    index: str
    fields: Dict[str, Any] = field(default_factory=dict)
    timestamp_field_name: str = "@timestamp"

    @property
    def doc_type(self) -> str:
        return self.kind.value

    def to_source(self) -> Dict[str, Any]:
        """Build the JSON source of the document"""
        source = {
            self.timestamp_field_name: format_timestamp(self.timestamp),
            NAME_FIELD: self.name,
        }
        for key, value in self.fields.items():
            if key not in source:
                source[key] = value
        return source


@dataclass
class BulkItemResult:
    """Outcome of one document in a bulk request"""
    ok: bool
    status: int = 200
    error: Optional[str] = None


@dataclass
class FlushResult:
    """Counts of a flush, summed over its chunks"""
    submitted: int = 0
    failed: int = 0
    chunks: int = 0

    @property
    def succeeded(self) -> int:
        return self.submitted - self.failed

    def __add__(self, other: "FlushResult") -> "FlushResult":
        return FlushResult(
            submitted=self.submitted + other.submitted,
            failed=self.failed + other.failed,
            chunks=self.chunks + other.chunks
        )
