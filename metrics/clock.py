"""Clock abstraction shared by the registry and the reporter"""
import time


class Clock:
    """Wall-clock time in milliseconds and a monotonic tick in nanoseconds"""

    def get_time(self) -> int:
        return int(time.time() * 1000)

    def get_tick(self) -> int:
        return time.monotonic_ns()


class FixedClock(Clock):
    """Clock frozen at a given time, advanced explicitly"""

    def __init__(self, time_ms: int = 0, tick_ns: int = 0):
        self.time_ms = time_ms
        self.tick_ns = tick_ns

    def get_time(self) -> int:
        return self.time_ms

    def get_tick(self) -> int:
        return self.tick_ns

    def advance(self, seconds: float) -> None:
        self.time_ms += int(seconds * 1000)
        self.tick_ns += int(seconds * 1_000_000_000)


default_clock = Clock()
