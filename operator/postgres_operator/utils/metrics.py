"""Prometheus metrics for the PostgresCluster operator."""

import logging
from typing import Optional
from prometheus_client import Counter, Histogram, Info, generate_latest, start_http_server
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)


class OperatorMetrics:
    """
    Prometheus metrics collector for the operator.

    Tracks reconciliation outcomes, finalizer writes and config applies.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with optional custom registry."""
        self.registry = registry or CollectorRegistry()

        self.operator_info = Info(
            'pgo_operator',
            'PostgresCluster operator information',
            registry=self.registry
        )

        self.reconciliation_total = Counter(
            'pgo_reconciliation_total',
            'Total number of reconciliation passes',
            ['name', 'namespace', 'event_type'],
            registry=self.registry
        )

        self.reconciliation_errors = Counter(
            'pgo_reconciliation_errors_total',
            'Total reconciliation errors',
            ['name', 'namespace', 'error_type'],
            registry=self.registry
        )

        self.reconciliation_duration = Histogram(
            'pgo_reconciliation_duration_seconds',
            'Reconciliation duration in seconds',
            ['name', 'namespace', 'event_type'],
            registry=self.registry
        )

        self.finalizer_patches = Counter(
            'pgo_finalizer_patches_total',
            'Finalizer patches by outcome (added, removed, conflict)',
            ['namespace', 'result'],
            registry=self.registry
        )

        self.config_applies = Counter(
            'pgo_pgbackrest_config_total',
            'pgBackRest ConfigMap reconciles by outcome (applied, unchanged)',
            ['namespace', 'result'],
            registry=self.registry
        )

    def set_info(self, version: str, deployment_id: str) -> None:
        """Publish the operator version and deployment id."""
        self.operator_info.info({'version': version, 'deployment_id': deployment_id})

    def record_reconciliation(
        self,
        name: str,
        namespace: str,
        event_type: str,
        duration: float
    ) -> None:
        """Record a reconciliation pass."""
        self.reconciliation_total.labels(
            name=name,
            namespace=namespace,
            event_type=event_type
        ).inc()

        self.reconciliation_duration.labels(
            name=name,
            namespace=namespace,
            event_type=event_type
        ).observe(duration)

    def record_error(
        self,
        name: str,
        namespace: str,
        error_type: str
    ) -> None:
        """Record a reconciliation error."""
        self.reconciliation_errors.labels(
            name=name,
            namespace=namespace,
            error_type=error_type
        ).inc()

    def record_finalizer_patch(self, namespace: str, result: str) -> None:
        self.finalizer_patches.labels(namespace=namespace, result=result).inc()

    def record_config_apply(self, namespace: str, result: str) -> None:
        self.config_applies.labels(namespace=namespace, result=result).inc()

    def export_metrics(self) -> bytes:
        """Export metrics in Prometheus format."""
        return generate_latest(self.registry)

    def serve(self, port: int) -> None:
        """Serve the registry over HTTP on port."""
        start_http_server(port, registry=self.registry)
        logger.info(f"Serving metrics on port {port}")


# Global metrics instance
_metrics: Optional[OperatorMetrics] = None


def get_metrics() -> OperatorMetrics:
    """Get or create global metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = OperatorMetrics()
    return _metrics
