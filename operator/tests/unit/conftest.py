"""Shared fixtures and in-memory fakes of the Kubernetes APIs."""

import copy
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from postgres_operator import naming
from postgres_operator.config import OperatorSettings
from postgres_operator.models.cluster import PostgresCluster
from postgres_operator.utils import metrics as metrics_module
from postgres_operator.utils.k8s_client import K8sClient
from postgres_operator.utils.metrics import OperatorMetrics

NAMESPACE = "test-ns"


def selector_matches(labels: dict[str, str], selector: str) -> bool:
    """Evaluate the equality and existence terms the operator sends."""
    for term in filter(None, selector.split(",")):
        if "=" in term:
            key, value = term.split("=", 1)
            if labels.get(key) != value:
                return False
        elif term not in labels:
            return False
    return True


def merge_patch(target: dict[str, Any], patch: dict[str, Any]) -> None:
    """Apply a JSON merge patch to target in place."""
    for key, value in patch.items():
        if value is None:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            merge_patch(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class FakeObjectStore:
    """Namespaced objects of one kind, keyed by namespace and name."""

    def __init__(self, kind: str):
        self.kind = kind
        self.objects: dict[tuple[str, str], dict[str, Any]] = {}
        self.writes: list[tuple[str, str]] = []

    def create(self, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        name = body["metadata"]["name"]
        if (namespace, name) in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        self.objects[(namespace, name)] = copy.deepcopy(body)
        self.writes.append(("create", name))
        return copy.deepcopy(body)

    def replace(self, name: str, namespace: str, body: dict[str, Any]) -> dict[str, Any]:
        """Overwrite the whole object, like a PUT."""
        self.read(name, namespace)
        self.objects[(namespace, name)] = copy.deepcopy(body)
        self.writes.append(("replace", name))
        return copy.deepcopy(body)

    def read(self, name: str, namespace: str) -> dict[str, Any]:
        if (namespace, name) not in self.objects:
            raise ApiException(status=404, reason="NotFound")
        return copy.deepcopy(self.objects[(namespace, name)])


class FakeCoreV1Api:
    """ConfigMaps, ServiceAccounts, Pods and Endpoints."""

    def __init__(self):
        self.config_maps = FakeObjectStore("ConfigMap")
        self.service_accounts = FakeObjectStore("ServiceAccount")
        self.pods: list[client.V1Pod] = []
        self.endpoints: list[dict[str, Any]] = []
        self.deleted_endpoint_selectors: list[str] = []

    def add_pod(self, name: str, labels: dict[str, str], namespace: str = NAMESPACE) -> None:
        self.pods.append(
            client.V1Pod(
                metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels)
            )
        )

    def remove_pod(self, name: str) -> None:
        self.pods = [pod for pod in self.pods if pod.metadata.name != name]

    def create_namespaced_config_map(self, namespace, body, **kwargs):
        return self.config_maps.create(namespace, body)

    def replace_namespaced_config_map(self, name, namespace, body, **kwargs):
        return self.config_maps.replace(name, namespace, body)

    def read_namespaced_config_map(self, name, namespace, **kwargs):
        body = self.config_maps.read(name, namespace)
        meta = body.get("metadata", {})
        return client.V1ConfigMap(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                labels=meta.get("labels"),
                annotations=meta.get("annotations"),
            ),
            data=body.get("data"),
        )

    def create_namespaced_service_account(self, namespace, body, **kwargs):
        return self.service_accounts.create(namespace, body)

    def replace_namespaced_service_account(self, name, namespace, body, **kwargs):
        return self.service_accounts.replace(name, namespace, body)

    def list_namespaced_pod(self, namespace, label_selector="", **kwargs):
        return client.V1PodList(
            items=[
                pod
                for pod in self.pods
                if pod.metadata.namespace == namespace
                and selector_matches(pod.metadata.labels or {}, label_selector)
            ]
        )

    def delete_collection_namespaced_endpoints(self, namespace, label_selector="", **kwargs):
        self.deleted_endpoint_selectors.append(label_selector)
        self.endpoints = [
            e
            for e in self.endpoints
            if not (e["namespace"] == namespace and selector_matches(e["labels"], label_selector))
        ]


class FakeAppsV1Api:
    """StatefulSets; scaling records the requested replicas."""

    def __init__(self):
        self.statefulsets: dict[tuple[str, str], client.V1StatefulSet] = {}
        self.scaled: list[tuple[str, int]] = []

    def add_statefulset(
        self, name: str, labels: dict[str, str], namespace: str = NAMESPACE
    ) -> None:
        self.statefulsets[(namespace, name)] = client.V1StatefulSet(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels)
        )

    def list_namespaced_stateful_set(self, namespace, label_selector="", **kwargs):
        return client.V1StatefulSetList(
            items=[
                sts
                for (ns, _), sts in self.statefulsets.items()
                if ns == namespace
                and selector_matches(sts.metadata.labels or {}, label_selector)
            ]
        )

    def patch_namespaced_stateful_set(self, name, namespace, body, **kwargs):
        if (namespace, name) not in self.statefulsets:
            raise ApiException(status=404, reason="NotFound")
        self.scaled.append((name, body["spec"]["replicas"]))
        return self.statefulsets[(namespace, name)]


class FakeRbacV1Api:
    """Roles and RoleBindings."""

    def __init__(self):
        self.roles = FakeObjectStore("Role")
        self.role_bindings = FakeObjectStore("RoleBinding")

    def create_namespaced_role(self, namespace, body, **kwargs):
        return self.roles.create(namespace, body)

    def replace_namespaced_role(self, name, namespace, body, **kwargs):
        return self.roles.replace(name, namespace, body)

    def create_namespaced_role_binding(self, namespace, body, **kwargs):
        return self.role_bindings.create(namespace, body)

    def replace_namespaced_role_binding(self, name, namespace, body, **kwargs):
        return self.role_bindings.replace(name, namespace, body)


class FakeCustomObjectsApi:
    """
    PostgresCluster objects with resourceVersion enforcement.

    A patch carrying a stale resourceVersion fails with 409, like the API
    server. An object being deleted disappears once its finalizers are empty.
    """

    def __init__(self):
        self.objects: dict[tuple[str, str], dict[str, Any]] = {}
        self.patches: list[dict[str, Any]] = []
        self._version = 100

    def _bump(self, body: dict[str, Any]) -> None:
        self._version += 1
        body["metadata"]["resourceVersion"] = str(self._version)

    def add(self, body: dict[str, Any]) -> dict[str, Any]:
        body = copy.deepcopy(body)
        self._bump(body)
        meta = body["metadata"]
        self.objects[(meta["namespace"], meta["name"])] = body
        return copy.deepcopy(body)

    def touch(self, namespace: str, name: str, **metadata: Any) -> dict[str, Any]:
        """Write to an object the way another client would."""
        stored = self.objects[(namespace, name)]
        stored["metadata"].update(metadata)
        self._bump(stored)
        return copy.deepcopy(stored)

    def cluster(self, name: str, namespace: str = NAMESPACE) -> PostgresCluster:
        """The stored cluster as the operator would observe it."""
        if (namespace, name) not in self.objects:
            raise ApiException(status=404, reason="NotFound")
        return PostgresCluster.from_body(copy.deepcopy(self.objects[(namespace, name)]))

    def get_namespaced_custom_object(self, group, version, namespace, plural, name, **kwargs):
        if (namespace, name) not in self.objects:
            raise ApiException(status=404, reason="NotFound")
        return copy.deepcopy(self.objects[(namespace, name)])

    def patch_namespaced_custom_object(
        self, group, version, namespace, plural, name, body, **kwargs
    ):
        if (namespace, name) not in self.objects:
            raise ApiException(status=404, reason="NotFound")
        stored = self.objects[(namespace, name)]

        expected = body.get("metadata", {}).get("resourceVersion")
        if expected and expected != stored["metadata"]["resourceVersion"]:
            raise ApiException(status=409, reason="Conflict")

        self.patches.append(copy.deepcopy(body))
        patch = copy.deepcopy(body)
        patch.get("metadata", {}).pop("resourceVersion", None)
        merge_patch(stored, patch)
        self._bump(stored)

        if stored["metadata"].get("deletionTimestamp") and not stored["metadata"].get(
            "finalizers"
        ):
            del self.objects[(namespace, name)]
        return copy.deepcopy(stored)


@pytest.fixture(autouse=True)
def metrics(monkeypatch: pytest.MonkeyPatch) -> OperatorMetrics:
    """A fresh metrics registry for every test."""
    fresh = OperatorMetrics()
    monkeypatch.setattr(metrics_module, "_metrics", fresh)
    return fresh


@pytest.fixture
def fake_apis() -> SimpleNamespace:
    return SimpleNamespace(
        core=FakeCoreV1Api(),
        apps=FakeAppsV1Api(),
        rbac=FakeRbacV1Api(),
        custom=FakeCustomObjectsApi(),
    )


@pytest.fixture
def k8s(fake_apis: SimpleNamespace) -> K8sClient:
    """A K8sClient wired to the fakes."""
    k8s = K8sClient(namespace=NAMESPACE)
    k8s._core_v1 = fake_apis.core
    k8s._apps_v1 = fake_apis.apps
    k8s._rbac_v1 = fake_apis.rbac
    k8s._custom_objects = fake_apis.custom
    return k8s


@pytest.fixture
def settings() -> OperatorSettings:
    return OperatorSettings(
        namespace="postgres-operator",
        requeue_delay=5.0,
        conflict_retry_delay=1.0,
        retry_delay=15.0,
    )


@pytest.fixture
def cluster_body() -> Callable[..., dict[str, Any]]:
    """Factory for PostgresCluster bodies as delivered by the API."""

    def make(
        name: str = "hippo",
        repos: Optional[list[dict[str, Any]]] = None,
        finalizers: Optional[list[str]] = None,
        deleting: bool = False,
        metadata: Optional[dict[str, Any]] = None,
        **spec: Any,
    ) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "name": name,
            "namespace": NAMESPACE,
            "uid": "anumber",
            "resourceVersion": "1",
            "finalizers": list(finalizers or []),
        }
        if deleting:
            meta["deletionTimestamp"] = "2024-01-01T00:00:00Z"

        body_spec: dict[str, Any] = {
            "postgresVersion": 12,
            "port": 2345,
            "backups": {
                "pgbackrest": {
                    "repos": repos if repos is not None else [{"name": "repo1", "volume": {}}]
                }
            },
        }
        if metadata is not None:
            body_spec["metadata"] = metadata
        body_spec.update(spec)

        return {
            "apiVersion": naming.API_VERSION,
            "kind": naming.KIND,
            "metadata": meta,
            "spec": body_spec,
        }

    return make


@pytest.fixture
def stored_cluster(
    fake_apis: SimpleNamespace, cluster_body: Callable[..., dict[str, Any]]
) -> Callable[..., PostgresCluster]:
    """Store a cluster in the fake API and return it as observed."""

    def make(**kwargs: Any) -> PostgresCluster:
        return PostgresCluster.from_body(fake_apis.custom.add(cluster_body(**kwargs)))

    return make


@pytest.fixture
def four_repos() -> list[dict[str, Any]]:
    """One repository of each backend."""
    return [
        {"name": "repo1", "volume": {"volumeClaimSpec": {"accessModes": ["ReadWriteOnce"]}}},
        {"name": "repo2", "azure": {"container": "a-container"}},
        {"name": "repo3", "gcs": {"bucket": "g-bucket"}},
        {
            "name": "repo4",
            "s3": {"bucket": "s-bucket", "endpoint": "endpoint-s", "region": "earth"},
        },
    ]
