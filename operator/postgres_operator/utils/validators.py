"""Input validation utilities."""

import re
from typing import Pattern


# Kubernetes resource name pattern (RFC 1123 DNS label)
K8S_NAME_PATTERN: Pattern[str] = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

# pgBackRest repositories are addressed by index: repo1, repo2, ...
REPO_NAME_PATTERN: Pattern[str] = re.compile(r"^repo([1-9][0-9]*)$")

HOSTNAME_PATTERN: Pattern[str] = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)*[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$",
    re.IGNORECASE,
)


def validate_resource_name(name: str) -> bool:
    """
    Validate Kubernetes resource name.

    Args:
        name: Resource name to validate

    Returns:
        True if valid, False otherwise
    """
    if not name or len(name) > 63:
        return False
    return K8S_NAME_PATTERN.match(name) is not None


def repo_ordinal(name: str) -> int:
    """
    Return the index of a pgBackRest repository name.

    Args:
        name: Repository name such as "repo3"

    Returns:
        The repository index, or 0 when the name does not follow the scheme
    """
    match = REPO_NAME_PATTERN.match(name or "")
    if match is None:
        return 0
    return int(match.group(1))


def validate_hostname(hostname: str) -> bool:
    """
    Validate hostname format.

    Args:
        hostname: Hostname to validate

    Returns:
        True if valid, False otherwise
    """
    if not hostname or len(hostname) > 253:
        return False
    return HOSTNAME_PATTERN.match(hostname) is not None
