"""Tests for process gauges"""
from pathlib import Path
import pytest

from conftest import TEST_TIMESTAMP, make_config
from metrics.models import GaugeValueType, MetricKind
from metrics.process_gauges import count_open_fds, read_rss_bytes, register_process_metrics
from metrics.registry import MetricRegistry
from metrics.transformer import MetricDocumentConverter


class TestProcessGauges:
    """Test process gauge registration and values"""

    def setup_method(self):
        """Setup test fixtures"""
        self.registry = MetricRegistry()

    def test_registers_gauges(self):
        names = register_process_metrics(self.registry)

        assert "process.memory.rss_bytes" in names
        assert "process.threads" in names
        assert "process.uptime_seconds" in names
        assert sorted(names) == [name for name in self.registry.names() if name.startswith("process.")]

    def test_custom_prefix(self):
        names = register_process_metrics(self.registry, prefix="worker")

        assert all(name.startswith("worker.") for name in names)

    def test_gauge_types(self):
        register_process_metrics(self.registry)

        assert self.registry.get("process.memory.rss_bytes").value_type is GaugeValueType.LONG
        assert self.registry.get("process.threads").value >= 1
        assert self.registry.get("process.uptime_seconds").value >= 0.0

    def test_rss_positive(self):
        assert read_rss_bytes() > 0

    @pytest.mark.skipif(not Path("/proc/self/fd").is_dir(), reason="requires /proc")
    def test_open_fds(self):
        assert count_open_fds() > 0

    def test_documents_use_declared_slots(self):
        """Test process gauges convert into their typed slots"""
        register_process_metrics(self.registry)
        converter = MetricDocumentConverter.from_config(make_config())

        documents = {
            name: converter.convert(name, kind, metric, TEST_TIMESTAMP)
            for name, kind, metric in self.registry.list_metrics()
        }

        assert all(document.kind is MetricKind.GAUGE for document in documents.values())
        assert "longValue" in documents["process.memory.rss_bytes"].fields
        assert "integerValue" in documents["process.threads"].fields
        assert "doubleValue" in documents["process.cpu.user_seconds"].fields

    def test_duplicate_registration_rejected(self):
        register_process_metrics(self.registry)

        with pytest.raises(ValueError):
            register_process_metrics(self.registry)
