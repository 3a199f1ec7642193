"""Finalizer handling and ordered teardown of a deleted PostgresCluster."""

import logging
from typing import Optional

from postgres_operator import naming
from postgres_operator.controller.result import ReconcileResult
from postgres_operator.exceptions import ConflictError, NotFoundError
from postgres_operator.models.cluster import PostgresCluster
from postgres_operator.utils.k8s_client import K8sClient
from postgres_operator.utils.metrics import get_metrics

logger = logging.getLogger(__name__)


def handle_delete(
    k8s: K8sClient, cluster: PostgresCluster, requeue_delay: float = 5.0
) -> Optional[ReconcileResult]:
    """
    Set the finalizer on cluster and finalize cluster when it is deleted.

    An object with finalizers is not removed when deleted; it gets a
    deletionTimestamp and stays until its finalizers list is empty. Each
    controller removes its own token once its cleanup is done.

    The position in the lifecycle is derived from cluster alone, so a pass
    that fails part way can simply be run again.

    Args:
        k8s: Client for the namespace of cluster
        cluster: The cluster as last observed
        requeue_delay: Seconds to wait for instances that are stopping

    Returns:
        None when cluster is not being deleted and the caller may carry on
        reconciling. Otherwise a ReconcileResult, and the caller should stop.

    Raises:
        ConflictError: If the finalizers changed since cluster was observed
        OperatorError: If a teardown step failed; the finalizer is kept
    """
    finalizers = set(cluster.metadata.finalizers)

    if not cluster.is_deleting:
        if naming.FINALIZER in finalizers:
            return None

        # The list is shared with other controllers; send all of it along
        # with the resourceVersion it came from.
        intent = list(cluster.metadata.finalizers) + [naming.FINALIZER]
        _patch_finalizers(k8s, cluster, intent, "added")
        return None

    if naming.FINALIZER not in finalizers:
        # Someone else's finalizer is keeping the cluster around.
        return ReconcileResult()

    result = delete_instances(k8s, cluster, requeue_delay)
    if result is not None:
        return result

    # Instances are stopped; clean up after Patroni.
    delete_patroni_artifacts(k8s, cluster)

    finalizers.discard(naming.FINALIZER)
    _patch_finalizers(k8s, cluster, sorted(finalizers), "removed")
    return ReconcileResult()


def delete_instances(
    k8s: K8sClient, cluster: PostgresCluster, requeue_delay: float
) -> Optional[ReconcileResult]:
    """
    Stop every instance of cluster, the primary last.

    Returns:
        None when no instance Pods remain, otherwise a ReconcileResult asking
        to check again after requeue_delay.
    """
    pods = k8s.list_pods(naming.cluster_instances(cluster.name))
    if not pods:
        return None

    if len(pods) == 1:
        to_stop = pods
    else:
        to_stop = [
            pod
            for pod in pods
            if (pod.metadata.labels or {}).get(naming.LABEL_ROLE) != naming.ROLE_PRIMARY
        ]
        if not to_stop:
            logger.warning(
                f"All {len(pods)} instance Pods of PostgresCluster {cluster.key} "
                f"claim the primary role; stopping all of them"
            )
            to_stop = pods

    instances = sorted(
        {
            (pod.metadata.labels or {}).get(naming.LABEL_INSTANCE, "")
            for pod in to_stop
        }
        - {""}
    )
    for instance in instances:
        try:
            k8s.scale_statefulset(instance, 0)
        except NotFoundError:
            logger.debug(f"StatefulSet {cluster.namespace}/{instance} already gone")

    logger.info(
        f"Waiting for {len(pods)} instance Pods of PostgresCluster {cluster.key} to stop"
    )
    return ReconcileResult(requeue_after=requeue_delay)


def delete_patroni_artifacts(k8s: K8sClient, cluster: PostgresCluster) -> None:
    """Delete the Endpoints Patroni keeps its cluster state in."""
    try:
        k8s.delete_endpoints(naming.cluster_patronis(cluster))
    except NotFoundError:
        logger.debug(f"Patroni Endpoints of {cluster.key} already gone")
        return
    logger.info(f"Deleted Patroni Endpoints of PostgresCluster {cluster.key}")


def _patch_finalizers(
    k8s: K8sClient, cluster: PostgresCluster, finalizers: list[str], outcome: str
) -> None:
    metrics = get_metrics()
    try:
        k8s.patch_cluster_finalizers(cluster, finalizers)
    except ConflictError:
        metrics.record_finalizer_patch(cluster.namespace, "conflict")
        logger.warning(
            f"PostgresCluster {cluster.key} changed since resourceVersion "
            f"{cluster.metadata.resource_version}; finalizer not {outcome}"
        )
        raise

    metrics.record_finalizer_patch(cluster.namespace, outcome)
    logger.info(f"Finalizer {outcome} on PostgresCluster {cluster.key}")
