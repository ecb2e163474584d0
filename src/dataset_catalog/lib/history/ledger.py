"""Append-only field change ledger embedded in each dataset record."""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any


def to_json_value(value: Any) -> Any:
    """Coerce a field value into something the JSON column can store.

    Datetimes are rendered in UTC so one instant has one form. Naive values
    are taken to be UTC (SQLite drops the offset on read).
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC).isoformat()
        return value.astimezone(UTC).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple | list):
        return [to_json_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    return value


def detect_field_changes(
    existing: dict[str, Any],
    incoming: dict[str, Any],
) -> dict[str, tuple[Any, Any]]:
    """Detect field-level changes between a stored record and a patch.

    Values are compared in their JSON form so that e.g. a datetime and its
    ISO string are not reported as different.

    Args:
        existing: The current record as a dict.
        incoming: Patch fields; only keys present here are compared.

    Returns:
        Dictionary of field_name → (old_value, new_value) for changed fields,
        in patch order.
    """
    changes: dict[str, tuple[Any, Any]] = {}
    for field, new_val in incoming.items():
        old_val = existing.get(field)
        if to_json_value(old_val) != to_json_value(new_val):
            changes[field] = (old_val, new_val)
    return changes


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded field change. Never mutated after creation."""

    field: str
    old_value: Any
    new_value: Any
    changed_at: datetime
    changed_by: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "old_value": to_json_value(self.old_value),
            "new_value": to_json_value(self.new_value),
            "changed_at": self.changed_at.isoformat(),
            "changed_by": self.changed_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        return cls(
            field=data["field"],
            old_value=data.get("old_value"),
            new_value=data.get("new_value"),
            changed_at=datetime.fromisoformat(data["changed_at"]),
            changed_by=data["changed_by"],
        )


class HistoryLedger:
    """Ordered, append-only list of history entries.

    No reordering and no deduplication: a field changed twice yields two
    entries.
    """

    def __init__(self, entries: list[HistoryEntry] | None = None) -> None:
        self._entries: list[HistoryEntry] = list(entries or [])

    def record(
        self,
        field: str,
        old_value: Any,
        new_value: Any,
        actor: str,
        *,
        at: datetime | None = None,
    ) -> HistoryEntry:
        """Append one entry and return it."""
        entry = HistoryEntry(
            field=field,
            old_value=to_json_value(old_value),
            new_value=to_json_value(new_value),
            changed_at=at or datetime.now(UTC),
            changed_by=actor,
        )
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def for_field(self, field: str) -> list[HistoryEntry]:
        """Entries touching one field, in insertion order."""
        return [e for e in self._entries if e.field == field]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def to_json(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    @classmethod
    def from_json(cls, data: list[dict[str, Any]] | None) -> "HistoryLedger":
        return cls([HistoryEntry.from_dict(item) for item in data or []])
