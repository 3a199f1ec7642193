"""Reconcile steps for PostgresCluster resources."""

from postgres_operator.controller.delete import handle_delete
from postgres_operator.controller.pgbackrest import reconcile_pgbackrest_config
from postgres_operator.controller.rbac import reconcile_instance_rbac
from postgres_operator.controller.result import ReconcileResult

__all__ = [
    "ReconcileResult",
    "handle_delete",
    "reconcile_instance_rbac",
    "reconcile_pgbackrest_config",
]
