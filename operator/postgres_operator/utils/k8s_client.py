"""Kubernetes API client wrapper used by the reconcilers."""

import logging
from typing import Any, Callable, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from postgres_operator import naming
from postgres_operator.exceptions import (
    ApiRequestError,
    ConflictError,
    NotFoundError,
    OperatorError,
    UnavailableError,
)
from postgres_operator.models.cluster import PostgresCluster

logger = logging.getLogger(__name__)

# Kinds that can be applied, with the API group client and the suffix of the
# generated create_namespaced_* and replace_namespaced_* methods.
APPLY_METHODS: dict[str, tuple[str, str]] = {
    "ConfigMap": ("core_v1", "config_map"),
    "ServiceAccount": ("core_v1", "service_account"),
    "Role": ("rbac_v1", "role"),
    "RoleBinding": ("rbac_v1", "role_binding"),
}


def translate_api_error(exc: ApiException, operation: str, key: str) -> OperatorError:
    """
    Convert an ApiException into the operator error taxonomy.

    Args:
        exc: Exception raised by the kubernetes client
        operation: What was being attempted, e.g. "patch finalizers"
        key: Resource the operation targeted

    Returns:
        The matching OperatorError; the caller raises it
    """
    status = exc.status or 0
    message = exc.reason or str(exc)
    if status == 409:
        return ConflictError(message, operation=operation, key=key)
    if status == 404:
        return NotFoundError(message, operation=operation, key=key)
    if status == 0 or status == 429 or status >= 500:
        return UnavailableError(message, operation=operation, key=key)
    return ApiRequestError(message, operation=operation, key=key, status=status)


class K8sClient:
    """
    Wrapper around Kubernetes Python client with helper methods.

    Every call made through it carries the configured request deadline and
    fails with an OperatorError naming the operation and resource.
    """

    def __init__(
        self,
        namespace: str = "default",
        request_timeout: Optional[float] = None,
        field_manager: str = "postgres-operator",
    ):
        """
        Initialize Kubernetes client.

        Args:
            namespace: Default namespace for operations
            request_timeout: Deadline of each API call in seconds
            field_manager: Field manager recorded on writes
        """
        self.namespace = namespace
        self.request_timeout = request_timeout
        self.field_manager = field_manager
        self._core_v1: Optional[client.CoreV1Api] = None
        self._apps_v1: Optional[client.AppsV1Api] = None
        self._rbac_v1: Optional[client.RbacAuthorizationV1Api] = None
        self._custom_objects: Optional[client.CustomObjectsApi] = None

    @staticmethod
    def load_config() -> None:
        """Load in-cluster config, falling back to the local kubeconfig."""
        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from file")

    @property
    def core_v1(self) -> client.CoreV1Api:
        """Get CoreV1Api client."""
        if self._core_v1 is None:
            self._core_v1 = client.CoreV1Api()
        return self._core_v1

    @property
    def apps_v1(self) -> client.AppsV1Api:
        """Get AppsV1Api client."""
        if self._apps_v1 is None:
            self._apps_v1 = client.AppsV1Api()
        return self._apps_v1

    @property
    def rbac_v1(self) -> client.RbacAuthorizationV1Api:
        """Get RbacAuthorizationV1Api client."""
        if self._rbac_v1 is None:
            self._rbac_v1 = client.RbacAuthorizationV1Api()
        return self._rbac_v1

    @property
    def custom_objects(self) -> client.CustomObjectsApi:
        """Get CustomObjectsApi client."""
        if self._custom_objects is None:
            self._custom_objects = client.CustomObjectsApi()
        return self._custom_objects

    def _key(self, name: str, namespace: Optional[str] = None) -> str:
        return f"{namespace or self.namespace}/{name}"

    def _call(
        self, operation: str, key: str, method: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Any:
        if self.request_timeout is not None:
            kwargs.setdefault("_request_timeout", self.request_timeout)
        try:
            return method(*args, **kwargs)
        except ApiException as e:
            raise translate_api_error(e, operation, key) from e
        except HTTPError as e:
            raise UnavailableError(str(e), operation=operation, key=key) from e

    def patch_cluster_finalizers(
        self, cluster: PostgresCluster, finalizers: list[str]
    ) -> PostgresCluster:
        """
        Replace the finalizers of a cluster under an optimistic lock.

        The finalizers field is shared by several controllers and custom
        resources do not support strategic merge, so the merge-patch carries
        the complete list plus the resourceVersion it was computed from. The
        API server rejects the patch when the stored version differs.

        Args:
            cluster: The cluster as last observed
            finalizers: The complete desired list of finalizers

        Returns:
            The cluster as stored after the patch

        Raises:
            ConflictError: If the cluster changed since it was observed
        """
        body = {
            "metadata": {
                "finalizers": list(finalizers),
                "resourceVersion": cluster.metadata.resource_version,
            }
        }
        result = self._call(
            "patch finalizers",
            cluster.key,
            self.custom_objects.patch_namespaced_custom_object,
            naming.GROUP,
            naming.VERSION,
            cluster.namespace,
            naming.PLURAL,
            cluster.name,
            body,
        )
        return PostgresCluster.from_body(result)

    def apply(self, manifest: dict[str, Any]) -> Any:
        """
        Create an object, or replace it when it already exists.

        The replace is a full update, so keys no longer in manifest are
        removed from the stored object.

        Args:
            manifest: Complete desired object

        Returns:
            The object returned by the API
        """
        kind = manifest["kind"]
        if kind not in APPLY_METHODS:
            raise ValueError(f"cannot apply objects of kind {kind}")

        api_name, resource = APPLY_METHODS[kind]
        api = getattr(self, api_name)
        name = manifest["metadata"]["name"]
        namespace = manifest["metadata"].get("namespace") or self.namespace
        key = self._key(name, namespace)

        try:
            return self._call(
                f"create {kind}",
                key,
                getattr(api, f"create_namespaced_{resource}"),
                namespace,
                manifest,
                field_manager=self.field_manager,
            )
        except ConflictError:
            # 409 on create means the object already exists.
            logger.debug(f"{kind} {key} already exists, replacing")

        return self._call(
            f"replace {kind}",
            key,
            getattr(api, f"replace_namespaced_{resource}"),
            name,
            namespace,
            manifest,
            field_manager=self.field_manager,
        )

    def get_config_map(
        self, name: str, namespace: Optional[str] = None
    ) -> Optional[client.V1ConfigMap]:
        """
        Get a ConfigMap.

        Returns:
            ConfigMap object or None if not found
        """
        try:
            return self._call(
                "get ConfigMap",
                self._key(name, namespace),
                self.core_v1.read_namespaced_config_map,
                name,
                namespace or self.namespace,
            )
        except NotFoundError:
            return None

    def list_pods(self, label_selector: str) -> list[client.V1Pod]:
        """List Pods in the namespace matching a label selector."""
        result = self._call(
            "list Pods",
            self._key(label_selector),
            self.core_v1.list_namespaced_pod,
            self.namespace,
            label_selector=label_selector,
        )
        return list(result.items or [])

    def list_statefulsets(self, label_selector: str) -> list[client.V1StatefulSet]:
        """List StatefulSets in the namespace matching a label selector."""
        result = self._call(
            "list StatefulSets",
            self._key(label_selector),
            self.apps_v1.list_namespaced_stateful_set,
            self.namespace,
            label_selector=label_selector,
        )
        return list(result.items or [])

    def scale_statefulset(self, name: str, replicas: int) -> None:
        """
        Set the replicas of a StatefulSet.

        Raises:
            NotFoundError: If the StatefulSet does not exist
        """
        self._call(
            "scale StatefulSet",
            self._key(name),
            self.apps_v1.patch_namespaced_stateful_set,
            name,
            self.namespace,
            {"spec": {"replicas": replicas}},
            field_manager=self.field_manager,
        )

    def delete_endpoints(self, label_selector: str) -> None:
        """Delete every Endpoints object in the namespace matching a selector."""
        self._call(
            "delete Endpoints",
            self._key(label_selector),
            self.core_v1.delete_collection_namespaced_endpoints,
            self.namespace,
            label_selector=label_selector,
        )
