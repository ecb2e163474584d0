"""Dataset record validation rules.

Raw and derived datasets share one record shape.  The ``type`` tag selects
which extra required-field predicates apply via a dispatch table.
"""

from collections.abc import Callable
from enum import StrEnum
from typing import Any


class DatasetType(StrEnum):
    """Dataset variant tag."""

    RAW = "raw"
    DERIVED = "derived"


class DatasetValidationError(ValueError):
    """Raised when a dataset record violates an invariant. Nothing is persisted."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


Predicate = Callable[[dict[str, Any]], str | None]

REQUIRED_FIELDS = ["owner", "contact_email", "source_folder", "creation_time", "type"]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def require(field: str) -> Predicate:
    """Predicate: the field must be present and non-blank."""

    def check(record: dict[str, Any]) -> str | None:
        if _is_blank(record.get(field)):
            return f"Missing required field: {field}"
        return None

    return check


def require_non_empty_list(field: str) -> Predicate:
    """Predicate: the field must be a list with at least one non-blank item."""

    def check(record: dict[str, Any]) -> str | None:
        value = record.get(field)
        if not isinstance(value, list) or not [v for v in value if not _is_blank(v)]:
            return f"{field} must contain at least one entry"
        return None

    return check


TYPE_RULES: dict[DatasetType, list[Predicate]] = {
    DatasetType.RAW: [require("creation_location")],
    DatasetType.DERIVED: [require_non_empty_list("input_datasets")],
}


def validate_record(record: dict[str, Any]) -> list[str]:
    """Validate a full dataset record.

    Args:
        record: Dictionary of dataset field name → value.

    Returns:
        List of error messages (empty when valid).
    """
    errors: list[str] = []

    for field in REQUIRED_FIELDS:
        if _is_blank(record.get(field)):
            errors.append(f"Missing required field: {field}")

    raw_type = record.get("type")
    if _is_blank(raw_type):
        return errors
    try:
        dataset_type = DatasetType(raw_type)
    except ValueError:
        errors.append(f"Unknown dataset type: {raw_type}")
        return errors

    for predicate in TYPE_RULES[dataset_type]:
        problem = predicate(record)
        if problem:
            errors.append(problem)

    return errors


def ensure_valid(record: dict[str, Any]) -> None:
    """Raise DatasetValidationError if the record is invalid."""
    errors = validate_record(record)
    if errors:
        raise DatasetValidationError(errors)
