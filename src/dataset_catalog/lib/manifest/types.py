"""Manifest data types.

Dataclasses for single file entries and the size/count-bounded blocks a
dataset's file listing is partitioned into.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

# Per-record ceiling of the document store, less headroom for the other
# block fields. Every entry must serialize within MAX_ENTRY_BYTES, so a full
# block of DEFAULT_MAX_BLOCK_FILES entries always fits.
RECORD_CEILING_BYTES = 16 * 1024**2
RECORD_HEADROOM_BYTES = 1024**2
MAX_ENTRY_BYTES = 2048
DEFAULT_MAX_BLOCK_FILES = (RECORD_CEILING_BYTES - RECORD_HEADROOM_BYTES) // MAX_ENTRY_BYTES
DEFAULT_MAX_BLOCK_BYTES = 1024**4


class ChecksumAlgorithm(StrEnum):
    """Hash algorithm used to produce a manifest entry checksum."""

    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"
    BLAKE2B = "blake2b"


class BlockVariant(StrEnum):
    """Which listing a block belongs to."""

    ORIGINAL = "original"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class ManifestEntry:
    """A single file in a dataset listing. Immutable once recorded."""

    path: str
    size: int
    checksum: str
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256
    time: datetime | None = None
    perm: str | None = None
    uid: str | None = None
    gid: str | None = None

    def __post_init__(self) -> None:
        if not self.path:
            msg = "path must not be empty"
            raise ValueError(msg)
        if self.size < 0:
            msg = f"size must be non-negative, got {self.size}"
            raise ValueError(msg)
        encoded = len(json.dumps(self.to_dict()))
        if encoded > MAX_ENTRY_BYTES:
            msg = f"entry for {self.path[:80]!r} serializes to {encoded} bytes, over the {MAX_ENTRY_BYTES} byte limit"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        data: dict[str, Any] = {
            "path": self.path,
            "size": self.size,
            "checksum": self.checksum,
            "checksum_algorithm": self.checksum_algorithm.value,
        }
        if self.time is not None:
            data["time"] = self.time.isoformat()
        for key in ("perm", "uid", "gid"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class ManifestBlock:
    """An ordered, bounded partition of a dataset's file listing."""

    block_index: int
    entries: list[ManifestEntry] = field(default_factory=list)
    oversize: bool = False

    @property
    def block_size(self) -> int:
        return sum(entry.size for entry in self.entries)

    @property
    def file_count(self) -> int:
        return len(self.entries)


@dataclass
class BlockLimits:
    """Ceilings a block must respect."""

    max_bytes: int
    max_files: int

    def __post_init__(self) -> None:
        if self.max_bytes <= 0 or self.max_files <= 0:
            msg = f"block limits must be positive, got bytes={self.max_bytes} files={self.max_files}"
            raise ValueError(msg)
