"""Pydantic models for PostgresCluster custom resources."""

from postgres_operator.models.cluster import (
    Backups,
    Metadata,
    ObjectMeta,
    PGBackRestArchive,
    PostgresCluster,
    PostgresClusterSpec,
    RepoAzure,
    RepoBackend,
    RepoGCS,
    Repository,
    RepoS3,
    RepoVolume,
)

__all__ = [
    "Backups",
    "Metadata",
    "ObjectMeta",
    "PGBackRestArchive",
    "PostgresCluster",
    "PostgresClusterSpec",
    "RepoAzure",
    "RepoBackend",
    "RepoGCS",
    "Repository",
    "RepoS3",
    "RepoVolume",
]
