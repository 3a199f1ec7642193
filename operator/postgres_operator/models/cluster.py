"""PostgresCluster Custom Resource Definition models."""

from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from postgres_operator import naming
from postgres_operator.exceptions import MalformedSpecError
from postgres_operator.utils.validators import repo_ordinal, validate_resource_name


class Metadata(BaseModel):
    """User supplied labels and annotations for generated objects."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    labels: dict[str, str] = Field(default_factory=dict, description="Extra labels")
    annotations: dict[str, str] = Field(
        default_factory=dict, description="Extra annotations"
    )


class RepoBackend(str, Enum):
    """pgBackRest repository backend types."""

    VOLUME = "volume"
    S3 = "s3"
    GCS = "gcs"
    AZURE = "azure"


class RepoVolume(BaseModel):
    """A repository stored on a PersistentVolumeClaim of the repo host."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    volume_claim_spec: dict[str, Any] = Field(
        default_factory=dict,
        alias="volumeClaimSpec",
        description="PersistentVolumeClaim spec of the repository volume",
    )


class RepoS3(BaseModel):
    """An S3 compatible object store."""

    bucket: str = Field(..., description="S3 bucket name")
    endpoint: str = Field(..., description="S3 endpoint")
    region: str = Field(..., description="S3 region")


class RepoGCS(BaseModel):
    """A Google Cloud Storage bucket."""

    bucket: str = Field(..., description="GCS bucket name")


class RepoAzure(BaseModel):
    """An Azure Blob Storage container."""

    container: str = Field(..., description="Blob container name")


class Repository(BaseModel):
    """
    A pgBackRest repository.

    Exactly one of the backend fields is set.
    """

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str = Field(..., description="Repository name: repo1, repo2, ...")
    volume: Optional[RepoVolume] = None
    s3: Optional[RepoS3] = None
    gcs: Optional[RepoGCS] = None
    azure: Optional[RepoAzure] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the repository follows the repoN naming scheme."""
        if repo_ordinal(v) == 0:
            raise ValueError(f"repository name {v!r} must match repo1, repo2, ...")
        return v

    @model_validator(mode="after")
    def validate_backend(self) -> "Repository":
        """Validate exactly one backend is configured."""
        self.backend  # raises when zero or several are set
        return self

    @property
    def ordinal(self) -> int:
        return repo_ordinal(self.name)

    @property
    def backend(self) -> RepoBackend:
        """Return the one backend configured on this repository."""
        configured = [
            kind
            for kind, value in (
                (RepoBackend.VOLUME, self.volume),
                (RepoBackend.S3, self.s3),
                (RepoBackend.GCS, self.gcs),
                (RepoBackend.AZURE, self.azure),
            )
            if value is not None
        ]
        if len(configured) != 1:
            raise MalformedSpecError(
                f"exactly one backend must be set, found {len(configured)}",
                operation="validate repository",
                key=self.name,
            )
        return configured[0]


class PGBackRestArchive(BaseModel):
    """pgBackRest archive configuration of a cluster."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    global_: dict[str, str] = Field(
        default_factory=dict,
        alias="global",
        description="Options added to the [global] section of every document",
    )
    repos: list[Repository] = Field(default_factory=list, description="Repositories")
    metadata: Optional[Metadata] = None

    @field_validator("repos")
    @classmethod
    def validate_unique_repos(cls, v: list[Repository]) -> list[Repository]:
        """Validate each repository index is used once."""
        seen: set[int] = set()
        for repo in v:
            if repo.ordinal in seen:
                raise ValueError(f"repository {repo.name} is defined more than once")
            seen.add(repo.ordinal)
        return v

    @property
    def sorted_repos(self) -> list[Repository]:
        """Repositories in ascending index order."""
        return sorted(self.repos, key=lambda repo: repo.ordinal)


class Backups(BaseModel):
    """Backup configuration of a cluster."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    pgbackrest: PGBackRestArchive = Field(default_factory=PGBackRestArchive)


class PostgresClusterSpec(BaseModel):
    """
    PostgresCluster Custom Resource Specification.

    Only the fields reconciled by this operator are modelled; anything else in
    the resource is ignored.
    """

    model_config = {"populate_by_name": True, "extra": "ignore"}

    port: int = Field(default=5432, ge=1024, le=65535, description="PostgreSQL port")
    postgres_version: int = Field(
        ..., ge=10, le=16, alias="postgresVersion", description="PostgreSQL major version"
    )
    metadata: Optional[Metadata] = None
    backups: Backups = Field(default_factory=Backups)


class ObjectMeta(BaseModel):
    """The parts of Kubernetes object metadata the operator reads."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str
    namespace: str
    uid: str = ""
    resource_version: str = Field(default="", alias="resourceVersion")
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: Optional[str] = Field(default=None, alias="deletionTimestamp")
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not validate_resource_name(v):
            raise ValueError(f"invalid resource name {v!r}")
        return v


class PostgresCluster(BaseModel):
    """A PostgresCluster resource as observed from the Kubernetes API."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    api_version: str = Field(default=naming.API_VERSION, alias="apiVersion")
    kind: str = naming.KIND
    metadata: ObjectMeta
    spec: PostgresClusterSpec

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> "PostgresCluster":
        """Parse a resource body as delivered by kopf or the API."""
        return cls.model_validate(dict(body))

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def uid(self) -> str:
        return self.metadata.uid

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_deleting(self) -> bool:
        return bool(self.metadata.deletion_timestamp)

    def owner_body(self) -> dict[str, Any]:
        """The fields of this resource needed to reference it as an owner."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "uid": self.uid,
            },
        }

    def labels_or_empty(self) -> dict[str, str]:
        return dict(self.spec.metadata.labels) if self.spec.metadata else {}

    def annotations_or_empty(self) -> dict[str, str]:
        return dict(self.spec.metadata.annotations) if self.spec.metadata else {}
