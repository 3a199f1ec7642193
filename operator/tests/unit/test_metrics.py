"""Tests for operator metrics."""

from unittest.mock import patch

from postgres_operator.utils.metrics import OperatorMetrics


class TestOperatorMetrics:
    """Tests for OperatorMetrics."""

    def test_export(self) -> None:
        """Test recorded values appear in the exposition format."""
        metrics = OperatorMetrics()
        metrics.set_info("5.0.0", "an-id")
        metrics.record_reconciliation("hippo", "test-ns", "create", 0.25)
        metrics.record_finalizer_patch("test-ns", "added")
        metrics.record_config_apply("test-ns", "unchanged")

        text = metrics.export_metrics().decode()

        assert 'pgo_operator_info{deployment_id="an-id",version="5.0.0"} 1.0' in text
        assert (
            'pgo_reconciliation_total{event_type="create",name="hippo",namespace="test-ns"} 1.0'
            in text
        )
        assert 'pgo_finalizer_patches_total{namespace="test-ns",result="added"} 1.0' in text
        assert 'pgo_pgbackrest_config_total{namespace="test-ns",result="unchanged"} 1.0' in text

    def test_separate_registries(self) -> None:
        one, two = OperatorMetrics(), OperatorMetrics()
        one.record_error("hippo", "test-ns", "conflict")
        assert b'error_type="conflict"' not in two.export_metrics()
        assert b'error_type="conflict"' in one.export_metrics()

    def test_serve(self) -> None:
        metrics = OperatorMetrics()
        with patch("postgres_operator.utils.metrics.start_http_server") as start:
            metrics.serve(9999)
        start.assert_called_once_with(9999, registry=metrics.registry)
