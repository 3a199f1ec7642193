"""Outcome of a reconcile step that ends the current pass."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ReconcileResult:
    """
    Tells the driver to stop the current pass.

    With requeue_after unset the driver waits for the next event on the
    resource; otherwise it reconciles again after that many seconds.
    """

    requeue_after: Optional[float] = None
