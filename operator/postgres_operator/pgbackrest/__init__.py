"""pgBackRest configuration for PostgresCluster backups."""

from postgres_operator.pgbackrest.config import (
    ConfigTopology,
    create_config_map_intent,
    synthesize,
)

__all__ = ["ConfigTopology", "create_config_map_intent", "synthesize"]
