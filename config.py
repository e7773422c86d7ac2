"""Configuration management for the Elasticsearch metrics reporter"""
from pathlib import Path
from typing import Dict, List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from metrics.models import MetricKind, TimeUnit


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


class Config(BaseSettings):
    """Reporter configuration with Pydantic validation and environment-based settings"""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # Index settings
    index_prefix: str = Field(..., description="Prefix of every index written to (required)")
    index_date_format: str = Field(default="%Y.%m.%d", description="strftime suffix appended to the index prefix, empty for a static index")

    # Document settings
    metric_name_prefix: str = Field(default="", description="Prefix joined to every metric name with a dot")
    rate_unit: TimeUnit = Field(default=TimeUnit.SECONDS, description="Unit meter rates are reported per")
    duration_unit: TimeUnit = Field(default=TimeUnit.MILLISECONDS, description="Unit timer durations are reported in")
    timestamp_field_name: str = Field(default="@timestamp", description="Name of the timestamp field")
    additional_fields_str: str = Field(default="", validation_alias="additional_fields", description="Static fields added to every document (k=v,k2=v2)")
    enabled_metric_kinds_str: str = Field(
        default="counter,gauge,histogram,meter,timer",
        validation_alias="enabled_metric_kinds",
        description="Metric kinds to report (comma-separated)"
    )

    # Sink settings
    elasticsearch_hosts_str: str = Field(default="localhost:9200", validation_alias="elasticsearch_hosts", description="Elasticsearch hosts (comma-separated)")
    bulk_request_limit: int = Field(default=100, ge=1, description="Maximum documents per bulk request")
    use_mapping_types: bool = Field(default=True, description="Write the metric kind as the document _type")
    request_timeout: float = Field(default=10.0, gt=0, description="HTTP request timeout in seconds")

    # Schedule settings
    report_interval: float = Field(default=60.0, gt=0, description="Delay between report cycles in seconds")
    shutdown_grace_period: float = Field(default=5.0, ge=0, description="Seconds an in-flight cycle may run after stop")

    # Process metrics
    enable_process_metrics: bool = Field(default=True, description="Register gauges for the current process")

    # Status server settings
    status_port: int = Field(default=9100, ge=1, le=65535, description="Status server port")
    status_host: str = Field(default="0.0.0.0", description="Status server host")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Log file path")

    # Service settings
    service_name: str = Field(default="elasticsearch-metrics-reporter", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")

    @field_validator('index_prefix')
    @classmethod
    def validate_index_prefix(cls, v):
        if not v or not v.strip():
            raise ValueError("INDEX_PREFIX is required")
        return v

    @field_validator('timestamp_field_name')
    @classmethod
    def validate_timestamp_field_name(cls, v):
        if not v:
            raise ValueError("TIMESTAMP_FIELD_NAME must not be empty")
        return v

    @field_validator('rate_unit', 'duration_unit', mode='before')
    @classmethod
    def parse_time_unit(cls, v):
        """Accept time unit names in any case"""
        if isinstance(v, str):
            return TimeUnit.from_name(v)
        return v

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator('elasticsearch_hosts_str', 'enabled_metric_kinds_str', mode='before')
    @classmethod
    def join_list_values(cls, v):
        """Allow lists to be passed for comma-separated settings"""
        if isinstance(v, (list, tuple)):
            return ','.join(str(item) for item in v)
        return v

    @field_validator('elasticsearch_hosts_str')
    @classmethod
    def validate_hosts(cls, v):
        if not _split_csv(v):
            raise ValueError("ELASTICSEARCH_HOSTS must name at least one host")
        return v

    @field_validator('enabled_metric_kinds_str')
    @classmethod
    def validate_metric_kinds(cls, v):
        for item in _split_csv(v):
            MetricKind(item.lower())
        return v

    @field_validator('additional_fields_str', mode='before')
    @classmethod
    def join_additional_fields(cls, v):
        if isinstance(v, dict):
            return ','.join(f"{key}={value}" for key, value in v.items())
        return v

    @property
    def elasticsearch_hosts(self) -> List[str]:
        """Get Elasticsearch hosts as a list"""
        return _split_csv(self.elasticsearch_hosts_str)

    @property
    def enabled_metric_kinds(self) -> List[MetricKind]:
        """Get enabled metric kinds as a list"""
        return [MetricKind(item.lower()) for item in _split_csv(self.enabled_metric_kinds_str)]

    @property
    def additional_fields(self) -> Dict[str, str]:
        """Parse static document fields"""
        fields = {}
        for pair in self.additional_fields_str.split(','):
            if '=' in pair:
                key, value = pair.split('=', 1)
                fields[key.strip()] = value.strip()
        return fields

    def is_kind_enabled(self, kind: MetricKind) -> bool:
        """Check if a metric kind is reported"""
        return kind in self.enabled_metric_kinds
