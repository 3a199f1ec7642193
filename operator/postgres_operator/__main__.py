"""Main entry point for the PostgresCluster operator."""

import logging
import sys

import kopf

from postgres_operator.config import get_settings
from postgres_operator.handlers import cluster_handler  # noqa: F401

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the PostgresCluster operator."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    if settings.clusterwide:
        logger.info("Watching for PostgresCluster resources in all namespaces")
    else:
        logger.info(f"Watching for PostgresCluster resources in {settings.namespace}")

    # Handlers registered on import of cluster_handler
    kopf.run(
        clusterwide=settings.clusterwide,
        namespaces=[] if settings.clusterwide else [settings.namespace],
        liveness_endpoint=settings.liveness_endpoint,
    )


if __name__ == "__main__":
    main()
