"""Persistent identifier generation for datasets."""

import uuid
from collections.abc import Callable

PidFactory = Callable[[], str]


def generate_pid(prefix: str = "") -> str:
    """Return ``prefix`` followed by a random UUID4."""
    return f"{prefix}{uuid.uuid4()}"


def pid_factory(prefix: str = "") -> PidFactory:
    """Zero-argument PID generator bound to a site prefix."""
    return lambda: generate_pid(prefix)
