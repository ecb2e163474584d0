"""History ledger public API."""

from dataset_catalog.lib.history.ledger import HistoryEntry, HistoryLedger, detect_field_changes, to_json_value

__all__ = [
    "HistoryEntry",
    "HistoryLedger",
    "detect_field_changes",
    "to_json_value",
]
