"""Names, labels and selectors of the objects managed for a PostgresCluster."""

from typing import Any, Optional

GROUP = "postgres-operator.crunchydata.com"
VERSION = "v1beta1"
PLURAL = "postgresclusters"
KIND = "PostgresCluster"
API_VERSION = f"{GROUP}/{VERSION}"

LABEL_PREFIX = f"{GROUP}/"

LABEL_CLUSTER = LABEL_PREFIX + "cluster"
LABEL_INSTANCE = LABEL_PREFIX + "instance"
LABEL_PATRONI = LABEL_PREFIX + "patroni"
LABEL_ROLE = LABEL_PREFIX + "role"
LABEL_PGBACKREST = LABEL_PREFIX + "pgbackrest"
LABEL_PGBACKREST_CONFIG = LABEL_PREFIX + "pgbackrest-config"

ROLE_PRIMARY = "master"

# The one token this operator owns on PostgresCluster finalizers.
FINALIZER = LABEL_PREFIX + "finalizer"

UPGRADE_CHECK_CONFIG_MAP = "pgo-upgrade-check"

PGBACKREST_PGDATA_LOG_PATH = "/pgdata/pgbackrest/log"
PGBACKREST_REPO_LOG_PATH = "/pgbackrest/{}/log"


def merge(*maps: Optional[dict[str, str]]) -> dict[str, str]:
    """
    Merge string maps from left to right.

    Keys in later maps win. ``None`` entries are skipped. Always returns a new
    dict, even when every map is empty.
    """
    merged: dict[str, str] = {}
    for m in maps:
        if m:
            merged.update(m)
    return merged


def as_selector(labels: dict[str, str], exists: tuple[str, ...] = ()) -> str:
    """Render labels as a Kubernetes label selector string."""
    terms = [f"{k}={v}" for k, v in sorted(labels.items())]
    terms.extend(exists)
    return ",".join(terms)


def object_meta(name: str, namespace: str) -> dict[str, Any]:
    """Build the minimal metadata of a namespaced object."""
    return {"name": name, "namespace": namespace}


def cluster_instance_rbac(cluster: Any) -> dict[str, Any]:
    """Metadata shared by the ServiceAccount, Role and RoleBinding of instances."""
    return object_meta(f"{cluster.name}-instance", cluster.namespace)


def pgbackrest_config(cluster: Any) -> dict[str, Any]:
    """Metadata of the ConfigMap holding generated pgBackRest configuration."""
    return object_meta(f"{cluster.name}-pgbackrest-config", cluster.namespace)


def pgbackrest_config_labels(cluster_name: str) -> dict[str, str]:
    return {
        LABEL_CLUSTER: cluster_name,
        LABEL_PGBACKREST: "",
        LABEL_PGBACKREST_CONFIG: "",
    }


def cluster_pod_service(cluster: Any) -> str:
    """Name of the headless Service that gives every Pod a DNS name."""
    return f"{cluster.name}-pods"


def repo_host_name(cluster: Any) -> str:
    return f"{cluster.name}-repo-host"


def patroni_scope(cluster: Any) -> str:
    return f"{cluster.name}-ha"


def cluster_instances(cluster_name: str) -> str:
    """Selector for every instance Pod or StatefulSet of a cluster."""
    return as_selector({LABEL_CLUSTER: cluster_name}, exists=(LABEL_INSTANCE,))


def cluster_patronis(cluster: Any) -> str:
    """Selector for the objects Patroni creates for a cluster."""
    return as_selector(
        {LABEL_CLUSTER: cluster.name, LABEL_PATRONI: patroni_scope(cluster)}
    )


def pod_fqdn(pod_prefix: str, service_name: str, namespace: str, domain: str) -> str:
    """DNS name of the first Pod of a StatefulSet behind a headless Service."""
    return f"{pod_prefix}-0.{service_name}.{namespace}.svc.{domain}"
