"""Converts registry metrics into Elasticsearch metric documents"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from .models import GaugeValueType, MetricDocument, MetricKind, TimeUnit, NAME_FIELD
from .registry import Counter, Gauge, Histogram, Meter, Metric, Snapshot, Timer
from config import Config


INT32_RANGE = (-2 ** 31, 2 ** 31 - 1)
INT64_RANGE = (-2 ** 63, 2 ** 63 - 1)
INTEGER_SLOT_RANGES = {
    GaugeValueType.BYTE: (-2 ** 7, 2 ** 7 - 1),
    GaugeValueType.SHORT: (-2 ** 15, 2 ** 15 - 1),
    GaugeValueType.INTEGER: INT32_RANGE,
    GaugeValueType.LONG: INT64_RANGE,
}
FLOAT_SLOTS = (GaugeValueType.FLOAT, GaugeValueType.DOUBLE)
GAUGE_SLOT_FIELDS = frozenset(slot.field_name for slot in GaugeValueType)


def gauge_field(value: Any, value_type: Optional[GaugeValueType] = None) -> Tuple[str, Any]:
    """Pick the single typed slot a gauge value is stored under

    Values that cannot be represented in their slot fall back to ``stringValue``.
    """
    if isinstance(value, bool) or value is None:
        return GaugeValueType.STRING.field_name, str(value)

    if value_type is None:
        if isinstance(value, int):
            value_type = GaugeValueType.INTEGER if _in_range(value, INT32_RANGE) else GaugeValueType.LONG
        elif isinstance(value, float):
            value_type = GaugeValueType.DOUBLE
        else:
            value_type = GaugeValueType.STRING

    if value_type in INTEGER_SLOT_RANGES:
        if isinstance(value, int) and _in_range(value, INTEGER_SLOT_RANGES[value_type]):
            return value_type.field_name, value
    elif value_type in FLOAT_SLOTS:
        if isinstance(value, (int, float)) and math.isfinite(value):
            return value_type.field_name, float(value)

    return GaugeValueType.STRING.field_name, str(value)


def _in_range(value: int, bounds: Tuple[int, int]) -> bool:
    return bounds[0] <= value <= bounds[1]


class MetricDocumentConverter:
    """Builds one MetricDocument per metric, dispatching on the metric kind"""

    def __init__(self,
                 name_prefix: str = "",
                 rate_unit: TimeUnit = TimeUnit.SECONDS,
                 duration_unit: TimeUnit = TimeUnit.MILLISECONDS,
                 timestamp_field_name: str = "@timestamp",
                 index_prefix: str = "metrics",
                 index_date_format: str = "%Y.%m.%d",
                 additional_fields: Dict[str, Any] = None):
        self.name_prefix = name_prefix
        self.rate_unit = rate_unit
        self.duration_unit = duration_unit
        self.timestamp_field_name = timestamp_field_name
        self.index_prefix = index_prefix
        self.index_date_format = index_date_format
        self.additional_fields = dict(additional_fields or {})
        self._converters = {
            MetricKind.COUNTER: self._counter_fields,
            MetricKind.GAUGE: self._gauge_fields,
            MetricKind.HISTOGRAM: self._histogram_fields,
            MetricKind.METER: self._meter_fields,
            MetricKind.TIMER: self._timer_fields,
        }

    @classmethod
    def from_config(cls, config: Config) -> "MetricDocumentConverter":
        return cls(
            name_prefix=config.metric_name_prefix,
            rate_unit=config.rate_unit,
            duration_unit=config.duration_unit,
            timestamp_field_name=config.timestamp_field_name,
            index_prefix=config.index_prefix,
            index_date_format=config.index_date_format,
            additional_fields=config.additional_fields
        )

    def prefixed_name(self, name: str) -> str:
        if not self.name_prefix:
            return name
        return f"{self.name_prefix}.{name}"

    def index_for(self, timestamp: int) -> str:
        """Index name for documents stamped with ``timestamp`` (epoch millis)"""
        if not self.index_date_format:
            return self.index_prefix
        moment = datetime.fromtimestamp(timestamp / 1000.0, tz=timezone.utc)
        return self.index_prefix + moment.strftime(self.index_date_format)

    def convert(self, name: str, kind: MetricKind, metric: Metric, timestamp: int,
                index: Optional[str] = None) -> MetricDocument:
        """Read the metric's current value(s) into a document"""
        # Static fields never shadow the reserved fields or a gauge value slot
        reserved = GAUGE_SLOT_FIELDS | {NAME_FIELD, self.timestamp_field_name}
        fields = {
            key: value for key, value in self.additional_fields.items()
            if key not in reserved
        }
        fields.update(self._converters[kind](metric))

        return MetricDocument(
            name=self.prefixed_name(name),
            kind=kind,
            timestamp=timestamp,
            index=index if index is not None else self.index_for(timestamp),
            fields=fields,
            timestamp_field_name=self.timestamp_field_name
        )

    def _counter_fields(self, counter: Counter) -> Dict[str, Any]:
        return {"count": counter.count}

    def _gauge_fields(self, gauge: Gauge) -> Dict[str, Any]:
        field_name, value = gauge_field(gauge.value, gauge.value_type)
        return {field_name: value}

    def _histogram_fields(self, histogram: Histogram) -> Dict[str, Any]:
        fields = {"count": histogram.count}
        fields.update(self._snapshot_fields(histogram.snapshot(), lambda value: value))
        return fields

    def _meter_fields(self, meter: Meter) -> Dict[str, Any]:
        fields = {"count": meter.count}
        fields.update(self._rate_fields(meter))
        return fields

    def _timer_fields(self, timer: Timer) -> Dict[str, Any]:
        fields = {"count": timer.count}
        fields.update(self._snapshot_fields(timer.snapshot(), self.convert_duration))
        fields.update(self._rate_fields(timer))
        return fields

    def _snapshot_fields(self, snapshot: Snapshot, convert) -> Dict[str, Any]:
        return {
            "max": convert(snapshot.max),
            "mean": convert(snapshot.mean),
            "min": convert(snapshot.min),
            "stddev": convert(snapshot.stddev),
            "p50": convert(snapshot.median),
            "p75": convert(snapshot.p75),
            "p95": convert(snapshot.p95),
            "p98": convert(snapshot.p98),
            "p99": convert(snapshot.p99),
            "p999": convert(snapshot.p999),
        }

    def _rate_fields(self, metered) -> Dict[str, float]:
        return {
            "rate1m": self.convert_rate(metered.m1_rate),
            "rate5m": self.convert_rate(metered.m5_rate),
            "rate15m": self.convert_rate(metered.m15_rate),
            "meanRate": self.convert_rate(metered.mean_rate),
        }

    def convert_rate(self, rate_per_second: float) -> float:
        return rate_per_second * self.rate_unit.seconds

    def convert_duration(self, nanos: float) -> float:
        return self.duration_unit.from_nanos(nanos)
