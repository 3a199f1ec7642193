"""PostgresCluster resource event handlers."""

import logging
import time
from typing import Any, Optional

import kopf
from pydantic import ValidationError

from postgres_operator import __version__, naming
from postgres_operator.config import OperatorSettings, get_settings
from postgres_operator.controller import (
    ReconcileResult,
    handle_delete,
    reconcile_instance_rbac,
    reconcile_pgbackrest_config,
)
from postgres_operator.exceptions import (
    ConflictError,
    MalformedSpecError,
    OperatorError,
)
from postgres_operator.models.cluster import PostgresCluster
from postgres_operator.upgradecheck import DeploymentID, ensure_deployment_id
from postgres_operator.utils.k8s_client import K8sClient
from postgres_operator.utils.metrics import get_metrics

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs: Any) -> None:
    """Load client configuration and record the deployment id."""
    operator_settings = get_settings()
    settings.posting.level = logging.getLevelName(operator_settings.log_level)
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=naming.GROUP
    )

    K8sClient.load_config()

    k8s = K8sClient(
        namespace=operator_settings.namespace,
        request_timeout=operator_settings.request_timeout,
        field_manager=operator_settings.field_manager,
    )
    memo.deployment_id = DeploymentID()
    deployment_id = ensure_deployment_id(
        k8s, memo.deployment_id, operator_settings.namespace
    )
    metrics = get_metrics()
    metrics.set_info(__version__, deployment_id)
    if operator_settings.metrics_port:
        metrics.serve(operator_settings.metrics_port)

    logger.info(
        f"PostgresCluster operator {__version__} started "
        f"(clusterwide={operator_settings.clusterwide}, "
        f"domain={operator_settings.cluster_domain})"
    )


def reconcile(
    k8s: K8sClient, cluster: PostgresCluster, settings: OperatorSettings
) -> Optional[ReconcileResult]:
    """
    Run one reconcile pass over cluster.

    Deletion is handled first; while the cluster is being torn down nothing
    else is written.

    Returns:
        The result of the deletion step when it ended the pass, otherwise None
    """
    result = handle_delete(k8s, cluster, requeue_delay=settings.requeue_delay)
    if result is not None:
        return result

    reconcile_instance_rbac(k8s, cluster)
    reconcile_pgbackrest_config(k8s, cluster, settings.cluster_domain)
    return None


def _handle(body: kopf.Body, event_type: str) -> None:
    settings = get_settings()
    metrics = get_metrics()
    meta = body.get("metadata", {})
    name = meta.get("name", "")
    namespace = meta.get("namespace", "")
    started = time.monotonic()

    try:
        cluster = PostgresCluster.from_body(body)
    except ValidationError as e:
        logger.error(f"Invalid PostgresCluster {namespace}/{name}: {e}")
        metrics.record_error(name, namespace, "invalid_spec")
        raise kopf.PermanentError(f"Invalid PostgresCluster specification: {e}")

    k8s = K8sClient(
        namespace=cluster.namespace,
        request_timeout=settings.request_timeout,
        field_manager=settings.field_manager,
    )

    try:
        result = reconcile(k8s, cluster, settings)
    except MalformedSpecError as e:
        logger.error(f"Invalid PostgresCluster {cluster.key}: {e}")
        metrics.record_error(name, namespace, "invalid_spec")
        raise kopf.PermanentError(f"Invalid PostgresCluster specification: {e}")
    except ConflictError as e:
        logger.info(f"Conflict reconciling PostgresCluster {cluster.key}, retrying: {e}")
        metrics.record_error(name, namespace, "conflict")
        raise kopf.TemporaryError(str(e), delay=settings.conflict_retry_delay)
    except OperatorError as e:
        logger.error(f"Failed to reconcile PostgresCluster {cluster.key}: {e}")
        metrics.record_error(name, namespace, type(e).__name__)
        raise kopf.TemporaryError(str(e), delay=settings.retry_delay)
    finally:
        metrics.record_reconciliation(
            name, namespace, event_type, time.monotonic() - started
        )

    if result is not None and result.requeue_after is not None:
        raise kopf.TemporaryError(
            f"PostgresCluster {cluster.key} is being torn down",
            delay=result.requeue_after,
        )


@kopf.on.resume(naming.GROUP, naming.VERSION, naming.PLURAL)
def resume_cluster(body: kopf.Body, **kwargs: Any) -> None:
    """Reconcile clusters that existed before the operator started."""
    _handle(body, "resume")


@kopf.on.create(naming.GROUP, naming.VERSION, naming.PLURAL)
def create_cluster(body: kopf.Body, **kwargs: Any) -> None:
    """Handle PostgresCluster creation."""
    _handle(body, "create")


@kopf.on.update(naming.GROUP, naming.VERSION, naming.PLURAL)
def update_cluster(body: kopf.Body, **kwargs: Any) -> None:
    """Handle changes to a PostgresCluster spec."""
    _handle(body, "update")


@kopf.on.delete(naming.GROUP, naming.VERSION, naming.PLURAL, optional=True)
def delete_cluster(body: kopf.Body, **kwargs: Any) -> None:
    """
    Tear down a deleted PostgresCluster and release its finalizer.

    The operator keeps its own finalizer on every cluster, so kopf does not
    need to add one for this handler.
    """
    logger.info(
        f"Deleting PostgresCluster {body['metadata'].get('namespace')}/"
        f"{body['metadata'].get('name')}"
    )
    _handle(body, "delete")
