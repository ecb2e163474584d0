"""Lifecycle library public API.

Finite-state model of a dataset's archival and retrieval progress.
"""

from dataset_catalog.lib.lifecycle.states import (
    INITIAL_STATE,
    TRANSITIONS,
    LifecycleEvent,
    LifecycleState,
    allowed_events,
    target_state,
)
from dataset_catalog.lib.lifecycle.tracker import InvalidTransitionError, Lifecycle

__all__ = [
    "INITIAL_STATE",
    "TRANSITIONS",
    "InvalidTransitionError",
    "Lifecycle",
    "LifecycleEvent",
    "LifecycleState",
    "allowed_events",
    "target_state",
]
