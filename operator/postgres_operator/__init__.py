"""
PostgreSQL Operator - Kubernetes operator for PostgresCluster resources

A Python-based Kubernetes operator that manages the lifecycle of
PostgresCluster custom resources: it guards deletion with a finalizer,
provisions the RBAC identity of database instances and keeps the generated
pgBackRest configuration of every cluster current.

This operator uses Kopf (Kubernetes Operator Pythonic Framework) to watch
and reconcile PostgresCluster custom resources.
"""

__version__ = "5.0.0"
__license__ = "Apache-2.0"

from postgres_operator.models.cluster import PostgresCluster, PostgresClusterSpec

__all__ = [
    "PostgresCluster",
    "PostgresClusterSpec",
]
