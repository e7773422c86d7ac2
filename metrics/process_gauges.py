"""Gauges describing the current process"""
import os
import resource
import threading
import time
from pathlib import Path
from typing import List
from .models import GaugeValueType
from .registry import Gauge, MetricRegistry
from logging_config import get_logger


logger = get_logger(__name__)

PROC_SELF = Path("/proc/self")


def read_rss_bytes() -> int:
    """Resident set size from /proc/self/status, falling back to the peak RSS"""
    status_file = PROC_SELF / "status"
    if status_file.exists():
        for line in status_file.read_text().splitlines():
            if line.startswith("VmRSS:"):
                # Value is reported in kB
                return int(line.split()[1]) * 1024
    # ru_maxrss is in kB on Linux
    return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss * 1024


def count_open_fds() -> int:
    return len(os.listdir(PROC_SELF / "fd"))


def register_process_metrics(registry: MetricRegistry, prefix: str = "process") -> List[str]:
    """Register process gauges and return their names"""
    start_time = time.time()
    gauges = {
        "memory.rss_bytes": (read_rss_bytes, GaugeValueType.LONG),
        "threads": (threading.active_count, GaugeValueType.INTEGER),
        "cpu.user_seconds": (lambda: resource.getrusage(resource.RUSAGE_SELF).ru_utime, GaugeValueType.DOUBLE),
        "cpu.system_seconds": (lambda: resource.getrusage(resource.RUSAGE_SELF).ru_stime, GaugeValueType.DOUBLE),
        "uptime_seconds": (lambda: time.time() - start_time, GaugeValueType.DOUBLE),
    }
    if (PROC_SELF / "fd").is_dir():
        gauges["open_fds"] = (count_open_fds, GaugeValueType.INTEGER)

    names = []
    for suffix, (value_fn, value_type) in gauges.items():
        name = f"{prefix}.{suffix}" if prefix else suffix
        registry.register(name, Gauge(value_fn, value_type))
        names.append(name)

    logger.info("Registered process metrics", metrics_count=len(names))
    return names
