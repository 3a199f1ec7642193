"""Keeps the generated pgBackRest ConfigMap of a PostgresCluster current."""

import hashlib
import json
import logging
from typing import Any

import kopf

from postgres_operator import naming
from postgres_operator.models.cluster import PostgresCluster
from postgres_operator.pgbackrest import ConfigTopology, create_config_map_intent
from postgres_operator.pgbackrest.config import CONFIG_HASH_KEY, repo_host_volume_defined
from postgres_operator.utils.k8s_client import K8sClient
from postgres_operator.utils.metrics import get_metrics

logger = logging.getLogger(__name__)


def config_hash(cluster: PostgresCluster, topology: ConfigTopology) -> str:
    """
    Hash everything the generated documents depend on.

    The metadata of the backup section only lands on the ConfigMap, not in
    its documents, so it is left out.
    """
    archive = cluster.spec.backups.pgbackrest
    state = {
        "port": cluster.spec.port,
        "postgresVersion": cluster.spec.postgres_version,
        "global": archive.global_,
        "repos": [
            repo.model_dump(mode="json", by_alias=True, exclude_none=True)
            for repo in archive.sorted_repos
        ],
        "repoHost": topology.repo_host_name,
        "service": [topology.service_name, topology.service_namespace],
        "instances": list(topology.instance_names),
        "domain": topology.cluster_domain,
    }
    encoded = json.dumps(state, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode()).hexdigest()[:16]


def instance_names(k8s: K8sClient, cluster: PostgresCluster) -> tuple[str, ...]:
    """Names of the instance StatefulSets of cluster, sorted."""
    sets = k8s.list_statefulsets(naming.cluster_instances(cluster.name))
    return tuple(sorted(s.metadata.name for s in sets))


def build_topology(
    k8s: K8sClient, cluster: PostgresCluster, cluster_domain: str
) -> ConfigTopology:
    return ConfigTopology(
        repo_host_name=naming.repo_host_name(cluster)
        if repo_host_volume_defined(cluster)
        else "",
        service_name=naming.cluster_pod_service(cluster),
        service_namespace=cluster.namespace,
        instance_names=instance_names(k8s, cluster),
        cluster_domain=cluster_domain,
    )


def _unchanged(existing: Any, intent: dict[str, Any]) -> bool:
    if existing is None:
        return False
    data = existing.data or {}
    if data.get(CONFIG_HASH_KEY) != intent["data"][CONFIG_HASH_KEY]:
        return False
    meta = existing.metadata
    return (
        data == intent["data"]
        and (meta.labels or {}) == intent["metadata"]["labels"]
        and (meta.annotations or {}) == intent["metadata"]["annotations"]
    )


def reconcile_pgbackrest_config(
    k8s: K8sClient, cluster: PostgresCluster, cluster_domain: str = "cluster.local"
) -> dict[str, Any]:
    """
    Write the pgBackRest ConfigMap of cluster when its content changed.

    Args:
        k8s: Client for the namespace of cluster
        cluster: Desired PostgresCluster
        cluster_domain: DNS domain used in Pod hostnames

    Returns:
        The desired ConfigMap manifest

    Raises:
        MalformedSpecError: If a repository has no usable backend
        OperatorError: If the ConfigMap could not be read or written
    """
    metrics = get_metrics()
    topology = build_topology(k8s, cluster, cluster_domain)
    intent = create_config_map_intent(cluster, topology, config_hash(cluster, topology))
    kopf.append_owner_reference(intent, owner=cluster.owner_body())

    name = intent["metadata"]["name"]
    existing = k8s.get_config_map(name, cluster.namespace)
    if _unchanged(existing, intent):
        metrics.record_config_apply(cluster.namespace, "unchanged")
        logger.debug(f"pgBackRest ConfigMap {cluster.namespace}/{name} is up to date")
        return intent

    k8s.apply(intent)
    metrics.record_config_apply(cluster.namespace, "applied")
    logger.info(
        f"Applied pgBackRest ConfigMap {cluster.namespace}/{name} "
        f"(hash {intent['data'][CONFIG_HASH_KEY]})"
    )
    return intent
