"""Kopf event handlers for PostgresCluster custom resources."""

from postgres_operator.handlers.cluster_handler import (
    configure,
    create_cluster,
    delete_cluster,
    reconcile,
    resume_cluster,
    update_cluster,
)

__all__ = [
    "configure",
    "create_cluster",
    "delete_cluster",
    "reconcile",
    "resume_cluster",
    "update_cluster",
]
