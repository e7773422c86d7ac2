"""Tests for configuration module"""
import os
from unittest.mock import patch
import pytest
from pydantic import ValidationError

from config import Config
from metrics.models import MetricKind, TimeUnit


class TestConfig:
    """Test configuration validation and parsing"""

    def test_default_config(self):
        """Test default configuration values"""
        config = Config(index_prefix="metrics-")

        assert config.index_prefix == "metrics-"
        assert config.index_date_format == "%Y.%m.%d"
        assert config.metric_name_prefix == ""
        assert config.rate_unit is TimeUnit.SECONDS
        assert config.duration_unit is TimeUnit.MILLISECONDS
        assert config.timestamp_field_name == "@timestamp"
        assert config.bulk_request_limit == 100
        assert config.elasticsearch_hosts == ["localhost:9200"]
        assert config.report_interval == 60.0
        assert config.additional_fields == {}
        assert config.enabled_metric_kinds == list(MetricKind)

    def test_index_prefix_required(self, monkeypatch):
        """Test that a missing index prefix fails at construction"""
        monkeypatch.delenv("INDEX_PREFIX", raising=False)
        with pytest.raises(ValidationError):
            Config()

    def test_index_prefix_not_blank(self):
        """Test that a blank index prefix is rejected"""
        with pytest.raises(ValidationError):
            Config(index_prefix="  ")

    def test_environment_override(self):
        """Test configuration override from environment variables"""
        env_vars = {
            "INDEX_PREFIX": "app-metrics-",
            "METRIC_NAME_PREFIX": "web01",
            "RATE_UNIT": "MINUTES",
            "DURATION_UNIT": "microseconds",
            "TIMESTAMP_FIELD_NAME": "@timeywimey",
            "BULK_REQUEST_LIMIT": "10",
            "ELASTICSEARCH_HOSTS": "es1:9200, es2:9200",
            "REPORT_INTERVAL": "15",
            "ENABLED_METRIC_KINDS": "counter,timer",
            "LOG_LEVEL": "debug",
        }

        with patch.dict(os.environ, env_vars):
            config = Config()

            assert config.index_prefix == "app-metrics-"
            assert config.metric_name_prefix == "web01"
            assert config.rate_unit is TimeUnit.MINUTES
            assert config.duration_unit is TimeUnit.MICROSECONDS
            assert config.timestamp_field_name == "@timeywimey"
            assert config.bulk_request_limit == 10
            assert config.elasticsearch_hosts == ["es1:9200", "es2:9200"]
            assert config.report_interval == 15.0
            assert config.enabled_metric_kinds == [MetricKind.COUNTER, MetricKind.TIMER]
            assert config.log_level == "DEBUG"

    def test_additional_fields_parsing(self):
        """Test static document fields parsing"""
        with patch.dict(os.environ, {"INDEX_PREFIX": "m-", "ADDITIONAL_FIELDS": "env=prod, region = eu-west"}):
            config = Config()

            assert config.additional_fields == {"env": "prod", "region": "eu-west"}

    def test_keyword_lists(self):
        """Test list and dict values passed as keyword arguments"""
        config = Config(
            index_prefix="m-",
            elasticsearch_hosts=["es1:9200", "es2:9200"],
            enabled_metric_kinds=["gauge"],
            additional_fields={"env": "test"}
        )

        assert config.elasticsearch_hosts == ["es1:9200", "es2:9200"]
        assert config.enabled_metric_kinds == [MetricKind.GAUGE]
        assert config.additional_fields == {"env": "test"}

    def test_validation_bulk_request_limit(self):
        """Test validation of bulk request limit"""
        with pytest.raises(ValidationError):
            Config(index_prefix="m-", bulk_request_limit=0)

    def test_validation_report_interval(self):
        """Test validation of report interval"""
        with pytest.raises(ValidationError):
            Config(index_prefix="m-", report_interval=0)

    def test_validation_time_unit(self):
        """Test validation of time unit names"""
        with pytest.raises(ValidationError):
            Config(index_prefix="m-", rate_unit="fortnights")

    def test_validation_timestamp_field_name(self):
        """Test validation of the timestamp field name"""
        with pytest.raises(ValidationError):
            Config(index_prefix="m-", timestamp_field_name="")

    def test_validation_metric_kinds(self):
        """Test validation of enabled metric kinds"""
        with pytest.raises(ValidationError):
            Config(index_prefix="m-", enabled_metric_kinds="counter,summary")

    def test_validation_hosts(self):
        """Test that at least one host is required"""
        with pytest.raises(ValidationError):
            Config(index_prefix="m-", elasticsearch_hosts=" , ")

    def test_is_kind_enabled(self):
        """Test metric kind enabled check"""
        config = Config(index_prefix="m-", enabled_metric_kinds="counter,meter")

        assert config.is_kind_enabled(MetricKind.COUNTER) is True
        assert config.is_kind_enabled(MetricKind.METER) is True
        assert config.is_kind_enabled(MetricKind.GAUGE) is False

    def test_config_is_immutable(self):
        """Test that configuration cannot change once built"""
        config = Config(index_prefix="m-")

        with pytest.raises(ValidationError):
            config.bulk_request_limit = 5
