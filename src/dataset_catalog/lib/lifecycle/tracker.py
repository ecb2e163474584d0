"""Embedded lifecycle document and its transition logic."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from dataset_catalog.lib.lifecycle.states import (
    ARCHIVABLE_STATES,
    ARCHIVE_EVENTS,
    INITIAL_STATE,
    OFF_DISK_STATES,
    PUBLISHABLE_STATES,
    RETRIEVABLE_STATES,
    TRANSITIONS,
    LifecycleEvent,
    LifecycleState,
    allowed_events,
)


class InvalidTransitionError(ValueError):
    """Raised when an event is not legal from the current lifecycle state."""

    def __init__(self, state: LifecycleState, event: LifecycleEvent) -> None:
        self.state = state
        self.event = event
        allowed = ", ".join(allowed_events(state)) or "none"
        super().__init__(f"Event '{event}' is not allowed in state '{state}' (allowed: {allowed})")


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Lifecycle:
    """Storage lifecycle of one dataset.

    Exactly one current state.  Flags are derived from the state, never
    stored independently, so they cannot drift.
    """

    state: LifecycleState = INITIAL_STATE
    last_event: LifecycleEvent | None = None
    transitioned_at: dict[LifecycleState, datetime] = field(default_factory=dict)
    archive_status_message: str | None = None
    retrieve_status_message: str | None = None
    archive_retention_time: datetime | None = None
    date_of_disk_purging: datetime | None = None

    @classmethod
    def new(cls, at: datetime | None = None) -> "Lifecycle":
        """Lifecycle in the initial state, stamped at ``at``."""
        return cls(transitioned_at={INITIAL_STATE: at or datetime.now(UTC)})

    @property
    def archivable(self) -> bool:
        return self.state in ARCHIVABLE_STATES

    @property
    def retrievable(self) -> bool:
        return self.state in RETRIEVABLE_STATES

    @property
    def publishable(self) -> bool:
        return self.state in PUBLISHABLE_STATES

    @property
    def is_on_central_disk(self) -> bool:
        return self.state not in OFF_DISK_STATES

    def apply(self, event: LifecycleEvent, *, at: datetime | None = None, message: str | None = None) -> bool:
        """Advance the lifecycle by one event.

        Redelivery of the event that produced the current state is a no-op.

        Args:
            event: Event to apply.
            at: Transition timestamp (defaults to now).
            message: Optional status message from the reporting system.

        Returns:
            True if the state changed, False for an idempotent redelivery.

        Raises:
            InvalidTransitionError: If the event is illegal here. State is untouched.
        """
        sources, target = TRANSITIONS[event]
        if self.last_event == event and self.state == target:
            return False
        if self.state not in sources:
            raise InvalidTransitionError(self.state, event)

        self.state = target
        self.last_event = event
        self.transitioned_at[target] = at or datetime.now(UTC)
        if message is not None:
            if event in ARCHIVE_EVENTS:
                self.archive_status_message = message
            else:
                self.retrieve_status_message = message
        return True

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON document stored on the dataset row."""
        return {
            "state": self.state.value,
            "last_event": self.last_event.value if self.last_event else None,
            "transitioned_at": {state.value: ts.isoformat() for state, ts in self.transitioned_at.items()},
            "archive_status_message": self.archive_status_message,
            "retrieve_status_message": self.retrieve_status_message,
            "archive_retention_time": self.archive_retention_time.isoformat() if self.archive_retention_time else None,
            "date_of_disk_purging": self.date_of_disk_purging.isoformat() if self.date_of_disk_purging else None,
            "archivable": self.archivable,
            "retrievable": self.retrievable,
            "publishable": self.publishable,
            "is_on_central_disk": self.is_on_central_disk,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Lifecycle":
        """Rebuild from the stored document; derived flags are recomputed."""
        if not data:
            return cls()
        last_event = data.get("last_event")
        return cls(
            state=LifecycleState(data.get("state", INITIAL_STATE)),
            last_event=LifecycleEvent(last_event) if last_event else None,
            transitioned_at={
                LifecycleState(state): datetime.fromisoformat(ts)
                for state, ts in (data.get("transitioned_at") or {}).items()
            },
            archive_status_message=data.get("archive_status_message"),
            retrieve_status_message=data.get("retrieve_status_message"),
            archive_retention_time=_dt(data.get("archive_retention_time")),
            date_of_disk_purging=_dt(data.get("date_of_disk_purging")),
        )
