"""Dataset record helpers: type validation, derived values, PID minting."""

from dataset_catalog.lib.dataset.derivation import derive_dataset_name, normalize_source_folder
from dataset_catalog.lib.dataset.pid import PidFactory, generate_pid, pid_factory
from dataset_catalog.lib.dataset.validation import (
    TYPE_RULES,
    DatasetType,
    DatasetValidationError,
    ensure_valid,
    validate_record,
)

__all__ = [
    "TYPE_RULES",
    "DatasetType",
    "DatasetValidationError",
    "PidFactory",
    "derive_dataset_name",
    "ensure_valid",
    "generate_pid",
    "normalize_source_folder",
    "pid_factory",
    "validate_record",
]
