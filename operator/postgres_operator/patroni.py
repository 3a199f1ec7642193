"""Permissions Patroni needs inside instance Pods."""

from typing import Any


def permissions(cluster: Any) -> list[dict[str, Any]]:
    """
    Return the Role rules Patroni needs to manage a cluster.

    Patroni keeps leader and configuration state in Endpoints and labels Pods
    with their role.
    """
    return [
        {
            "apiGroups": [""],
            "resources": ["endpoints"],
            "verbs": ["create", "deletecollection", "get", "list", "patch", "watch"],
        },
        {
            "apiGroups": [""],
            "resources": ["pods"],
            "verbs": ["get", "list", "patch", "watch"],
        },
        {
            "apiGroups": [""],
            "resources": ["services"],
            "verbs": ["create"],
        },
    ]
