"""
Operator configuration using Pydantic Settings.

Values are read from environment variables prefixed with ``PGO_``.
"""

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from postgres_operator.utils.validators import validate_hostname


class OperatorSettings(BaseSettings):
    """Runtime settings of the PostgresCluster operator."""

    model_config = SettingsConfigDict(
        env_prefix="PGO_",
        case_sensitive=False,
        extra="ignore",
    )

    namespace: str = Field(
        default="", description="Namespace the operator is deployed in"
    )
    clusterwide: bool = Field(
        default=True, description="Watch PostgresClusters in all namespaces"
    )
    cluster_domain: str = Field(
        default="cluster.local", description="DNS domain of the Kubernetes cluster"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    field_manager: str = Field(
        default="postgres-operator", description="Field manager of applied objects"
    )
    request_timeout: Optional[float] = Field(
        default=30.0, gt=0, description="Deadline of each Kubernetes API call in seconds"
    )
    requeue_delay: float = Field(
        default=5.0, gt=0, description="Delay before checking on a teardown in progress"
    )
    conflict_retry_delay: float = Field(
        default=1.0, gt=0, description="Delay before retrying after a write conflict"
    )
    retry_delay: float = Field(
        default=15.0, gt=0, description="Delay before retrying after an API failure"
    )
    liveness_endpoint: str = Field(
        default="http://0.0.0.0:8080/healthz", description="Liveness probe endpoint"
    )
    metrics_port: int = Field(
        default=8081, ge=0, le=65535, description="Port of the Prometheus endpoint, 0 disables it"
    )

    @field_validator("cluster_domain")
    @classmethod
    def validate_cluster_domain(cls, v: str) -> str:
        """Validate the cluster domain is a DNS name."""
        v = v.strip(".")
        if not validate_hostname(v):
            raise ValueError(f"cluster_domain {v!r} is not a valid DNS name")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one the logging module knows."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @model_validator(mode="after")
    def validate_watch_scope(self) -> "OperatorSettings":
        """A namespaced operator needs a namespace to watch."""
        if not self.clusterwide and not self.namespace:
            raise ValueError("namespace is required when clusterwide is false")
        return self


_settings: Optional[OperatorSettings] = None


def get_settings() -> OperatorSettings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = OperatorSettings()
    return _settings
