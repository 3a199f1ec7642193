"""Utility functions and helpers for the PostgresCluster operator."""

from postgres_operator.utils.metrics import OperatorMetrics, get_metrics
from postgres_operator.utils.validators import (
    repo_ordinal,
    validate_hostname,
    validate_resource_name,
)

__all__ = [
    "OperatorMetrics",
    "get_metrics",
    "repo_ordinal",
    "validate_hostname",
    "validate_resource_name",
]
