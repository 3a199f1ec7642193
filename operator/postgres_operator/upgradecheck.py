"""
Deployment identifier of an operator installation.

The identifier is stored in a ConfigMap in the operator namespace so that it
survives restarts. It is reported with the operator info metric.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from postgres_operator import naming
from postgres_operator.exceptions import OperatorError
from postgres_operator.utils.k8s_client import K8sClient

logger = logging.getLogger(__name__)

DEPLOYMENT_ID_KEY = "deployment_id"


@dataclass
class DeploymentID:
    """
    Holds the deployment id of this process.

    Created empty by the startup handler and filled in by
    ensure_deployment_id; nothing is generated on first read.
    """

    value: str = ""


def is_valid_id(value: Any) -> bool:
    """Whether value parses as a UUID."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def upgrade_check_config_map(namespace: str, deployment_id: str) -> dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": naming.object_meta(naming.UPGRADE_CHECK_CONFIG_MAP, namespace),
        "data": {DEPLOYMENT_ID_KEY: deployment_id},
    }


def manage_upgrade_check_config_map(
    k8s: K8sClient, current_id: str, namespace: str
) -> dict[str, Any]:
    """
    Make sure the upgrade check ConfigMap holds a valid deployment id.

    A valid id already stored wins over current_id. Failures are logged and
    never raised; the returned ConfigMap then carries current_id.

    Args:
        k8s: Kubernetes client
        current_id: Id of this process
        namespace: Namespace the operator is deployed in

    Returns:
        ConfigMap manifest with the deployment id in effect
    """
    intent = upgrade_check_config_map(namespace, current_id)

    if not namespace:
        logger.error("upgrade check issue: namespace not set")
        return intent

    try:
        existing = k8s.get_config_map(naming.UPGRADE_CHECK_CONFIG_MAP, namespace)
    except OperatorError as e:
        logger.error(f"upgrade check issue: error retrieving configmap: {e}")
        return intent

    if existing is not None:
        stored = (existing.data or {}).get(DEPLOYMENT_ID_KEY)
        if is_valid_id(stored):
            return upgrade_check_config_map(namespace, stored)
        logger.warning(
            f"upgrade check issue: replacing invalid deployment id in "
            f"{namespace}/{naming.UPGRADE_CHECK_CONFIG_MAP}"
        )

    try:
        k8s.apply(intent)
    except OperatorError as e:
        logger.error(f"upgrade check issue: could not apply configmap: {e}")

    return intent


def ensure_deployment_id(k8s: K8sClient, state: DeploymentID, namespace: str) -> str:
    """
    Fill in state from the cluster, generating a new id when none is stored.

    Returns:
        The deployment id now held by state
    """
    if not is_valid_id(state.value):
        state.value = str(uuid.uuid4())

    config_map = manage_upgrade_check_config_map(k8s, state.value, namespace)
    state.value = config_map["data"][DEPLOYMENT_ID_KEY]
    logger.info(f"Deployment id is {state.value}")
    return state.value
