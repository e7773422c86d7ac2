"""In-process metrics registry: counters, gauges, histograms, meters and timers"""
import math
import random
import threading
from abc import ABC
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from .clock import Clock, default_clock
from .models import GaugeValueType, MetricKind, TimeUnit
from logging_config import get_logger


logger = get_logger(__name__)

MetricFilter = Callable[[str, MetricKind], bool]

DEFAULT_RESERVOIR_SIZE = 1028
TICK_INTERVAL_NANOS = 5 * 1_000_000_000


def match_all(name: str, kind: MetricKind) -> bool:
    """Metric filter accepting every metric"""
    return True


class Metric(ABC):
    """Base class for all registry metrics"""
    kind: MetricKind


class Counter(Metric):
    """Incrementing and decrementing count"""
    kind = MetricKind.COUNTER

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    @property
    def count(self) -> int:
        return self._count


class Gauge(Metric):
    """Instantaneous value read from a callable on each access

    ``value_type`` pins the document slot the value is written to. When it is
    left unset the slot is chosen from the runtime type of each value.
    """
    kind = MetricKind.GAUGE

    def __init__(self, value_fn: Callable[[], Any], value_type: Optional[GaugeValueType] = None):
        self._value_fn = value_fn
        self.value_type = value_type

    @property
    def value(self) -> Any:
        return self._value_fn()


class Snapshot:
    """Statistical view over a sorted sample of values"""

    def __init__(self, values: Sequence[float]):
        self._values = sorted(values)

    def get_value(self, quantile: float) -> float:
        if math.isnan(quantile) or quantile < 0.0 or quantile > 1.0:
            raise ValueError(f"{quantile} is not in [0..1]")
        if not self._values:
            return 0.0

        pos = quantile * (len(self._values) + 1)
        index = int(pos)
        if index < 1:
            return self._values[0]
        if index >= len(self._values):
            return self._values[-1]

        lower = self._values[index - 1]
        upper = self._values[index]
        return lower + (pos - math.floor(pos)) * (upper - lower)

    @property
    def values(self) -> List[float]:
        return list(self._values)

    @property
    def size(self) -> int:
        return len(self._values)

    @property
    def median(self) -> float:
        return self.get_value(0.5)

    @property
    def p75(self) -> float:
        return self.get_value(0.75)

    @property
    def p95(self) -> float:
        return self.get_value(0.95)

    @property
    def p98(self) -> float:
        return self.get_value(0.98)

    @property
    def p99(self) -> float:
        return self.get_value(0.99)

    @property
    def p999(self) -> float:
        return self.get_value(0.999)

    @property
    def min(self) -> float:
        return self._values[0] if self._values else 0

    @property
    def max(self) -> float:
        return self._values[-1] if self._values else 0

    @property
    def mean(self) -> float:
        if not self._values:
            return 0.0
        return sum(self._values) / len(self._values)

    @property
    def stddev(self) -> float:
        if len(self._values) <= 1:
            return 0.0
        mean = self.mean
        variance = sum((value - mean) ** 2 for value in self._values) / (len(self._values) - 1)
        return math.sqrt(variance)


class UniformReservoir:
    """Random sample of a stream using Vitter's algorithm R"""

    def __init__(self, size: int = DEFAULT_RESERVOIR_SIZE):
        self._size = size
        self._count = 0
        self._values: List[float] = []
        self._lock = threading.Lock()

    def update(self, value: float) -> None:
        with self._lock:
            self._count += 1
            if self._count <= self._size:
                self._values.append(value)
            else:
                slot = random.randrange(self._count)
                if slot < self._size:
                    self._values[slot] = value

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(list(self._values))


class Histogram(Metric):
    """Distribution of values over a reservoir sample"""
    kind = MetricKind.HISTOGRAM

    def __init__(self, reservoir: Optional[UniformReservoir] = None):
        self._reservoir = reservoir or UniformReservoir()
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: float) -> None:
        with self._lock:
            self._count += 1
        self._reservoir.update(value)

    @property
    def count(self) -> int:
        return self._count

    def snapshot(self) -> Snapshot:
        return self._reservoir.snapshot()


class EWMA:
    """Exponentially weighted moving average of a per-second rate"""

    def __init__(self, minutes: int, interval_seconds: float = TICK_INTERVAL_NANOS / 1_000_000_000):
        self._alpha = 1 - math.exp(-interval_seconds / 60.0 / minutes)
        self._interval = interval_seconds
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant_rate = self._uncounted / self._interval
        self._uncounted = 0
        if self._initialized:
            self._rate += self._alpha * (instant_rate - self._rate)
        else:
            self._rate = instant_rate
            self._initialized = True

    @property
    def rate(self) -> float:
        return self._rate


class Meter(Metric):
    """Rate of events with 1, 5 and 15 minute moving averages, per second"""
    kind = MetricKind.METER

    def __init__(self, clock: Clock = default_clock):
        self._clock = clock
        self._m1 = EWMA(1)
        self._m5 = EWMA(5)
        self._m15 = EWMA(15)
        self._count = 0
        self._start_time = clock.get_tick()
        self._last_tick = self._start_time
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def _tick_if_necessary(self) -> None:
        new_tick = self._clock.get_tick()
        age = new_tick - self._last_tick
        if age > TICK_INTERVAL_NANOS:
            self._last_tick = new_tick - age % TICK_INTERVAL_NANOS
            for _ in range(age // TICK_INTERVAL_NANOS):
                self._m1.tick()
                self._m5.tick()
                self._m15.tick()

    @property
    def count(self) -> int:
        return self._count

    @property
    def m1_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
            return self._m1.rate

    @property
    def m5_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
            return self._m5.rate

    @property
    def m15_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
            return self._m15.rate

    @property
    def mean_rate(self) -> float:
        if self._count == 0:
            return 0.0
        elapsed = self._clock.get_tick() - self._start_time
        if elapsed <= 0:
            return 0.0
        return self._count / (elapsed / 1_000_000_000)


class Timer(Metric):
    """Histogram of durations in nanoseconds combined with a meter of calls"""
    kind = MetricKind.TIMER

    def __init__(self, clock: Clock = default_clock):
        self._clock = clock
        self._meter = Meter(clock)
        self._histogram = Histogram()

    def update(self, duration: float, unit: TimeUnit = TimeUnit.NANOSECONDS) -> None:
        if duration < 0:
            logger.debug("Ignoring negative timer duration", duration=duration, unit=unit.value)
            return
        self._histogram.update(unit.to_nanos(duration))
        self._meter.mark()

    @contextmanager
    def time(self) -> Iterator[None]:
        """Time the body of a with-block"""
        start = self._clock.get_tick()
        try:
            yield
        finally:
            self.update(self._clock.get_tick() - start)

    @property
    def count(self) -> int:
        return self._histogram.count

    def snapshot(self) -> Snapshot:
        return self._histogram.snapshot()

    @property
    def m1_rate(self) -> float:
        return self._meter.m1_rate

    @property
    def m5_rate(self) -> float:
        return self._meter.m5_rate

    @property
    def m15_rate(self) -> float:
        return self._meter.m15_rate

    @property
    def mean_rate(self) -> float:
        return self._meter.mean_rate


class MetricRegistry:
    """Thread-safe registry of named metrics"""

    def __init__(self, clock: Clock = None):
        self.clock = clock or default_clock
        self._metrics: Dict[str, Metric] = {}
        self._lock = threading.RLock()

    def register(self, name: str, metric: Metric) -> Metric:
        """Register a new metric under a unique name"""
        if not isinstance(metric, Metric):
            raise ValueError("Metric must inherit from Metric")

        with self._lock:
            if name in self._metrics:
                raise ValueError(f"A metric named {name} already exists")
            self._metrics[name] = metric

        logger.debug("Registered metric", metric=name, kind=metric.kind.value)
        return metric

    def _get_or_add(self, name: str, metric_class: type, factory: Callable[[], Metric]) -> Metric:
        with self._lock:
            existing = self._metrics.get(name)
            if existing is not None:
                if not isinstance(existing, metric_class):
                    raise ValueError(f"{name} is already used for a different type of metric")
                return existing
            return self.register(name, factory())

    def counter(self, name: str) -> Counter:
        return self._get_or_add(name, Counter, Counter)

    def histogram(self, name: str) -> Histogram:
        return self._get_or_add(name, Histogram, Histogram)

    def meter(self, name: str) -> Meter:
        return self._get_or_add(name, Meter, lambda: Meter(self.clock))

    def timer(self, name: str) -> Timer:
        return self._get_or_add(name, Timer, lambda: Timer(self.clock))

    def gauge(self, name: str, value_fn: Callable[[], Any] = None,
              value_type: Optional[GaugeValueType] = None) -> Gauge:
        """Get an existing gauge or register one reading ``value_fn``"""
        with self._lock:
            existing = self._metrics.get(name)
            if existing is None and value_fn is None:
                raise ValueError(f"Gauge {name} is not registered and no value function was given")
            return self._get_or_add(name, Gauge, lambda: Gauge(value_fn, value_type))

    def get(self, name: str) -> Optional[Metric]:
        return self._metrics.get(name)

    def remove(self, name: str) -> bool:
        with self._lock:
            removed = self._metrics.pop(name, None)
        return removed is not None

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._metrics)

    def list_metrics(self, metric_filter: MetricFilter = None) -> List[Tuple[str, MetricKind, Metric]]:
        """Snapshot the registered metrics passing the filter, sorted by name"""
        metric_filter = metric_filter or match_all
        with self._lock:
            items = list(self._metrics.items())

        return [
            (name, metric.kind, metric)
            for name, metric in sorted(items, key=lambda item: item[0])
            if metric_filter(name, metric.kind)
        ]
