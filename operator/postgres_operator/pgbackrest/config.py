"""
pgBackRest configuration generated for a PostgresCluster.

Every function here is pure: the same cluster and topology always produce
byte-identical documents. The pgBackRest agents parse these files literally,
so options are sorted before they are written and every document ends with
exactly one newline.
"""

from dataclasses import dataclass, field
from typing import Any

from postgres_operator import naming
from postgres_operator.exceptions import MalformedSpecError
from postgres_operator.models.cluster import PostgresCluster, RepoBackend, Repository
from postgres_operator.pgbackrest.ini import IniMultiSet, IniSectionSet

# ConfigMap keys of the generated documents.
CM_INSTANCE_KEY = "pgbackrest_instance.conf"
CM_REPO_KEY = "pgbackrest_repo.conf"
SERVER_CONFIG_MAP_KEY = "pgbackrest-server.conf"
CONFIG_HASH_KEY = "config-hash"

DEFAULT_STANZA_NAME = "db"

CONFIG_DIRECTORY = "/etc/pgbackrest/conf.d"
SERVER_MOUNT_PATH = "/etc/pgbackrest/server"
CERT_AUTHORITY_PATH = f"{CONFIG_DIRECTORY}/~postgres-operator/tls-ca.crt"
CERT_CLIENT_PATH = f"{CONFIG_DIRECTORY}/~postgres-operator/client-tls.crt"
CERT_CLIENT_KEY_PATH = f"{CONFIG_DIRECTORY}/~postgres-operator/client-tls.key"

REPO_MOUNT_PATH = "/pgbackrest/"
SOCKET_DIRECTORY = "/tmp/postgres"

INI_GENERATED_WARNING = (
    "# Generated by postgres-operator. DO NOT EDIT.\n"
    "# Your changes will not be saved.\n"
)


@dataclass(frozen=True)
class ConfigTopology:
    """Where the pieces of a cluster live, as seen by pgBackRest."""

    repo_host_name: str = ""
    service_name: str = ""
    service_namespace: str = ""
    instance_names: tuple[str, ...] = field(default_factory=tuple)
    cluster_domain: str = "cluster.local"

    def fqdn(self, pod_prefix: str) -> str:
        return naming.pod_fqdn(
            pod_prefix, self.service_name, self.service_namespace, self.cluster_domain
        )


def pgdata_directory(postgres_version: int) -> str:
    return f"/pgdata/pg{postgres_version}"


def repo_host_volume_defined(cluster: PostgresCluster) -> bool:
    """Return whether any repository lives on a volume of the repo host."""
    return any(
        repo.backend == RepoBackend.VOLUME for repo in cluster.spec.backups.pgbackrest.repos
    )


def external_repo_options(repo: Repository) -> dict[str, str]:
    """
    Return the backend specific options of a repository.

    Volume repositories have no backend options; their data lives under the
    repository path of the repo host.
    """
    backend = repo.backend
    prefix = repo.name
    if backend == RepoBackend.VOLUME:
        return {}
    elif backend == RepoBackend.AZURE:
        return {
            f"{prefix}-type": "azure",
            f"{prefix}-azure-container": repo.azure.container,
        }
    elif backend == RepoBackend.GCS:
        return {
            f"{prefix}-type": "gcs",
            f"{prefix}-gcs-bucket": repo.gcs.bucket,
        }
    elif backend == RepoBackend.S3:
        return {
            f"{prefix}-type": "s3",
            f"{prefix}-s3-bucket": repo.s3.bucket,
            f"{prefix}-s3-endpoint": repo.s3.endpoint,
            f"{prefix}-s3-region": repo.s3.region,
        }
    raise MalformedSpecError(
        f"unsupported repository backend {backend!r}",
        operation="generate pgbackrest config",
        key=repo.name,
    )


def _repo_options(global_: IniMultiSet, repo: Repository) -> None:
    global_.set(f"{repo.name}-path", REPO_MOUNT_PATH + repo.name)
    for option, value in external_repo_options(repo).items():
        global_.set(option, value)


def _set_overrides(global_: IniMultiSet, overrides: dict[str, str]) -> None:
    for option in sorted(overrides):
        global_.set(option, overrides[option])


def instance_config(cluster: PostgresCluster, topology: ConfigTopology) -> IniSectionSet:
    """
    Build the document read by pgBackRest next to each PostgreSQL instance.

    Volume repositories are reached over TLS through the repo host when one
    is configured.
    """
    archive = cluster.spec.backups.pgbackrest
    global_ = IniMultiSet()
    stanza = IniMultiSet()

    global_.set("log-path", naming.PGBACKREST_PGDATA_LOG_PATH)

    repo_host_fqdn = topology.fqdn(topology.repo_host_name)
    for repo in archive.sorted_repos:
        _repo_options(global_, repo)

        if topology.repo_host_name and repo.backend == RepoBackend.VOLUME:
            global_.set(f"{repo.name}-host", repo_host_fqdn)
            global_.set(f"{repo.name}-host-type", "tls")
            global_.set(f"{repo.name}-host-ca-file", CERT_AUTHORITY_PATH)
            global_.set(f"{repo.name}-host-cert-file", CERT_CLIENT_PATH)
            global_.set(f"{repo.name}-host-key-file", CERT_CLIENT_KEY_PATH)
            global_.set(f"{repo.name}-host-user", "postgres")

    _set_overrides(global_, archive.global_)

    # The local instance is always pg1.
    stanza.set("pg1-path", pgdata_directory(cluster.spec.postgres_version))
    stanza.set("pg1-port", str(cluster.spec.port))
    stanza.set("pg1-socket-path", SOCKET_DIRECTORY)

    return IniSectionSet({"global": global_, DEFAULT_STANZA_NAME: stanza})


def repo_host_config(cluster: PostgresCluster, topology: ConfigTopology) -> IniSectionSet:
    """Build the document read by pgBackRest on the dedicated repo host."""
    archive = cluster.spec.backups.pgbackrest
    global_ = IniMultiSet()
    stanza = IniMultiSet()

    log_repo = ""
    for repo in archive.sorted_repos:
        _repo_options(global_, repo)
        if repo.backend == RepoBackend.VOLUME and not log_repo:
            log_repo = repo.name

    global_.set("log-path", naming.PGBACKREST_REPO_LOG_PATH.format(log_repo))

    _set_overrides(global_, archive.global_)

    pgdata = pgdata_directory(cluster.spec.postgres_version)
    for index, instance_name in enumerate(topology.instance_names, start=1):
        pg = f"pg{index}"
        stanza.set(f"{pg}-host", topology.fqdn(instance_name))
        stanza.set(f"{pg}-host-type", "tls")
        stanza.set(f"{pg}-host-ca-file", CERT_AUTHORITY_PATH)
        stanza.set(f"{pg}-host-cert-file", CERT_CLIENT_PATH)
        stanza.set(f"{pg}-host-key-file", CERT_CLIENT_KEY_PATH)
        stanza.set(f"{pg}-path", pgdata)
        stanza.set(f"{pg}-port", str(cluster.spec.port))
        stanza.set(f"{pg}-socket-path", SOCKET_DIRECTORY)

    return IniSectionSet({"global": global_, DEFAULT_STANZA_NAME: stanza})


def server_config(cluster: PostgresCluster) -> IniSectionSet:
    """
    Build the document of the pgBackRest TLS server.

    Only clients presenting a certificate for this cluster are authorized.
    """
    global_ = IniMultiSet()
    server = IniMultiSet()

    global_.set("tls-server-address", "0.0.0.0")
    global_.set("tls-server-auth", f"pgbackrest@{cluster.uid}=*")
    global_.set("tls-server-ca-file", CERT_AUTHORITY_PATH)
    global_.set("tls-server-cert-file", f"{SERVER_MOUNT_PATH}/server-tls.crt")
    global_.set("tls-server-key-file", f"{SERVER_MOUNT_PATH}/server-tls.key")

    server.set("log-level-console", "detail")
    server.set("log-level-file", "off")
    server.set("log-level-stderr", "error")
    server.set("log-timestamp", "n")

    return IniSectionSet({"global": global_, "global:server": server})


def synthesize(cluster: PostgresCluster, topology: ConfigTopology) -> dict[str, str]:
    """
    Generate every pgBackRest document of a cluster keyed by ConfigMap key.

    The instance and server keys are always present. Instances that have not
    yet rolled out may still mount the server file, so it stays an empty
    document when there is no repo host.
    """
    documents = {
        CM_INSTANCE_KEY: INI_GENERATED_WARNING + str(instance_config(cluster, topology)),
        SERVER_CONFIG_MAP_KEY: "",
    }

    if repo_host_volume_defined(cluster) and topology.repo_host_name:
        documents[SERVER_CONFIG_MAP_KEY] = INI_GENERATED_WARNING + str(
            server_config(cluster)
        )
        documents[CM_REPO_KEY] = INI_GENERATED_WARNING + str(
            repo_host_config(cluster, topology)
        )

    return documents


def create_config_map_intent(
    cluster: PostgresCluster, topology: ConfigTopology, config_hash: str
) -> dict[str, Any]:
    """
    Build the ConfigMap carrying the generated documents.

    Args:
        cluster: Desired PostgresCluster
        topology: Hostnames of the repo host and instances
        config_hash: Hash of the desired state computed by the caller

    Returns:
        ConfigMap manifest
    """
    archive = cluster.spec.backups.pgbackrest
    backup_metadata = archive.metadata

    metadata = naming.pgbackrest_config(cluster)
    metadata["annotations"] = naming.merge(
        cluster.annotations_or_empty(),
        backup_metadata.annotations if backup_metadata else None,
    )
    metadata["labels"] = naming.merge(
        cluster.labels_or_empty(),
        backup_metadata.labels if backup_metadata else None,
        naming.pgbackrest_config_labels(cluster.name),
    )

    data = {CONFIG_HASH_KEY: config_hash}
    data.update(synthesize(cluster, topology))

    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": metadata,
        "data": data,
    }
