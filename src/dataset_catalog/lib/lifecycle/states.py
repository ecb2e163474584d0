"""Lifecycle states, events, and the transition table.

A dataset moves through storage handling as follows::

    created -> archivable -> scheduled_for_archiving -> archived -> retrievable
                   ^                   |                              |
                   +--- archiving_failed                              v
                                          on_disk_expired <- retrieved <- retrieving
                                                 |                           ^
                                                 +---- retrieval_requested --+

``retrieval_failed`` returns a retrieving dataset to ``retrievable``.
"""

from enum import StrEnum


class LifecycleState(StrEnum):
    """Storage/retrieval position of a dataset."""

    CREATED = "created"
    ARCHIVABLE = "archivable"
    SCHEDULED_FOR_ARCHIVING = "scheduled_for_archiving"
    ARCHIVED = "archived"
    RETRIEVABLE = "retrievable"
    RETRIEVING = "retrieving"
    RETRIEVED = "retrieved"
    ON_DISK_EXPIRED = "on_disk_expired"


class LifecycleEvent(StrEnum):
    """Events reported by the archival subsystem or an operator."""

    MARK_ARCHIVABLE = "mark_archivable"
    ARCHIVING_STARTED = "archiving_started"
    ARCHIVING_FAILED = "archiving_failed"
    ARCHIVING_COMPLETE = "archiving_complete"
    DISK_COPY_PURGED = "disk_copy_purged"
    RETRIEVAL_REQUESTED = "retrieval_requested"
    RETRIEVAL_FAILED = "retrieval_failed"
    RETRIEVAL_COMPLETE = "retrieval_complete"
    RETRIEVAL_EXPIRED = "retrieval_expired"


INITIAL_STATE = LifecycleState.CREATED

# event -> (allowed source states, target state)
TRANSITIONS: dict[LifecycleEvent, tuple[frozenset[LifecycleState], LifecycleState]] = {
    LifecycleEvent.MARK_ARCHIVABLE: (frozenset({LifecycleState.CREATED}), LifecycleState.ARCHIVABLE),
    LifecycleEvent.ARCHIVING_STARTED: (
        frozenset({LifecycleState.ARCHIVABLE}),
        LifecycleState.SCHEDULED_FOR_ARCHIVING,
    ),
    LifecycleEvent.ARCHIVING_FAILED: (
        frozenset({LifecycleState.SCHEDULED_FOR_ARCHIVING}),
        LifecycleState.ARCHIVABLE,
    ),
    LifecycleEvent.ARCHIVING_COMPLETE: (
        frozenset({LifecycleState.SCHEDULED_FOR_ARCHIVING}),
        LifecycleState.ARCHIVED,
    ),
    LifecycleEvent.DISK_COPY_PURGED: (frozenset({LifecycleState.ARCHIVED}), LifecycleState.RETRIEVABLE),
    LifecycleEvent.RETRIEVAL_REQUESTED: (
        frozenset({LifecycleState.RETRIEVABLE, LifecycleState.ON_DISK_EXPIRED}),
        LifecycleState.RETRIEVING,
    ),
    LifecycleEvent.RETRIEVAL_FAILED: (frozenset({LifecycleState.RETRIEVING}), LifecycleState.RETRIEVABLE),
    LifecycleEvent.RETRIEVAL_COMPLETE: (frozenset({LifecycleState.RETRIEVING}), LifecycleState.RETRIEVED),
    LifecycleEvent.RETRIEVAL_EXPIRED: (frozenset({LifecycleState.RETRIEVED}), LifecycleState.ON_DISK_EXPIRED),
}

ARCHIVE_EVENTS = frozenset(
    {
        LifecycleEvent.MARK_ARCHIVABLE,
        LifecycleEvent.ARCHIVING_STARTED,
        LifecycleEvent.ARCHIVING_FAILED,
        LifecycleEvent.ARCHIVING_COMPLETE,
        LifecycleEvent.DISK_COPY_PURGED,
    }
)

ARCHIVABLE_STATES = frozenset({LifecycleState.ARCHIVABLE})
RETRIEVABLE_STATES = frozenset({LifecycleState.RETRIEVABLE, LifecycleState.ON_DISK_EXPIRED})
# An archive copy exists from here on
PUBLISHABLE_STATES = frozenset(
    {
        LifecycleState.ARCHIVED,
        LifecycleState.RETRIEVABLE,
        LifecycleState.RETRIEVING,
        LifecycleState.RETRIEVED,
        LifecycleState.ON_DISK_EXPIRED,
    }
)
OFF_DISK_STATES = frozenset(
    {LifecycleState.RETRIEVABLE, LifecycleState.RETRIEVING, LifecycleState.ON_DISK_EXPIRED}
)


def target_state(event: LifecycleEvent) -> LifecycleState:
    """State an event leads to."""
    return TRANSITIONS[event][1]


def allowed_events(state: LifecycleState) -> list[LifecycleEvent]:
    """Events that are legal from ``state``, in declaration order."""
    return [event for event, (sources, _) in TRANSITIONS.items() if state in sources]
