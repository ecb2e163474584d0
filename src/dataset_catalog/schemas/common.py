"""Opaque keyset-pagination cursors shared by the catalog listings."""

import base64
import json
from typing import Any


def encode_cursor(values: list[Any]) -> str:
    """Encode the sort key of the last row of a page as an opaque token."""
    raw = json.dumps(values, default=str, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> list[Any]:
    """Decode a token produced by :func:`encode_cursor`.

    Raises:
        ValueError: If the token is malformed.
    """
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        values = json.loads(base64.urlsafe_b64decode(padded.encode()))
    except (ValueError, UnicodeDecodeError) as e:
        msg = "Malformed pagination cursor"
        raise ValueError(msg) from e
    if not isinstance(values, list) or len(values) != 2:
        msg = "Malformed pagination cursor"
        raise ValueError(msg)
    return values
