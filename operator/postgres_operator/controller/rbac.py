"""ServiceAccount, Role and RoleBinding of PostgresCluster instances."""

import logging
from typing import Any

import kopf

from postgres_operator import naming, patroni
from postgres_operator.models.cluster import PostgresCluster
from postgres_operator.utils.k8s_client import K8sClient

logger = logging.getLogger(__name__)

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"
RBAC_GROUP = "rbac.authorization.k8s.io"


def reconcile_instance_rbac(k8s: K8sClient, cluster: PostgresCluster) -> dict[str, Any]:
    """
    Write the ServiceAccount, Role and RoleBinding for all instances of cluster.

    All three are owned by cluster and are garbage collected with it.

    Returns:
        The ServiceAccount manifest; its name is the account instance Pods
        run as.

    Raises:
        OperatorError: From the first write that fails; later writes are
            not attempted.
    """
    annotations = naming.merge(cluster.annotations_or_empty())
    labels = naming.merge(
        cluster.labels_or_empty(),
        {naming.LABEL_CLUSTER: cluster.name},
    )

    def metadata() -> dict[str, Any]:
        meta = naming.cluster_instance_rbac(cluster)
        meta["labels"] = dict(labels)
        meta["annotations"] = dict(annotations)
        return meta

    account = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": metadata(),
        "automountServiceAccountToken": True,
    }
    role = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "Role",
        "metadata": metadata(),
        "rules": patroni.permissions(cluster),
    }
    binding = {
        "apiVersion": RBAC_API_VERSION,
        "kind": "RoleBinding",
        "metadata": metadata(),
        "roleRef": {
            "apiGroup": RBAC_GROUP,
            "kind": role["kind"],
            "name": role["metadata"]["name"],
        },
        "subjects": [
            {
                "kind": account["kind"],
                "name": account["metadata"]["name"],
                "namespace": cluster.namespace,
            }
        ],
    }

    owner = cluster.owner_body()
    for obj in (account, role, binding):
        kopf.append_owner_reference(obj, owner=owner)

    for obj in (account, role, binding):
        k8s.apply(obj)

    logger.info(f"Applied instance RBAC {account['metadata']['name']} of {cluster.key}")
    return account
