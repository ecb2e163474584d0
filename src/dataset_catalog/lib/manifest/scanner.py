"""Build manifest entries from a local directory tree.

Walks the tree in sorted order and hashes every regular file in chunks.
"""

import hashlib
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from dataset_catalog.lib.manifest.types import ChecksumAlgorithm, ManifestEntry

# Read buffer size for hashing large files
_CHUNK_SIZE = 1024 * 1024


def file_checksum(file_path: Path, algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256) -> str:
    """Return the hex digest of a file.

    Args:
        file_path: File to hash.
        algorithm: Hash algorithm.

    Returns:
        Lowercase hex digest.
    """
    digest = hashlib.new(algorithm.value)
    with file_path.open("rb") as f:
        while chunk := f.read(_CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest().lower()


def scan_directory(
    root: Path,
    algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256,
) -> list[ManifestEntry]:
    """List every regular file below ``root`` as a manifest entry.

    Paths are recorded relative to ``root`` with forward slashes, in sorted
    order so repeated scans produce identical listings.

    Args:
        root: Directory to scan.
        algorithm: Hash algorithm for entry checksums.

    Returns:
        Ordered manifest entries.

    Raises:
        NotADirectoryError: If ``root`` is not a directory.
    """
    if not root.is_dir():
        msg = f"{root} is not a directory"
        raise NotADirectoryError(msg)

    entries: list[ManifestEntry] = []
    for path in sorted(p for p in root.rglob("*") if p.is_file() and not p.is_symlink()):
        stat = path.stat()
        entries.append(
            ManifestEntry(
                path=path.relative_to(root).as_posix(),
                size=stat.st_size,
                checksum=file_checksum(path, algorithm),
                checksum_algorithm=algorithm,
                time=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                perm=oct(stat.st_mode & 0o777),
            )
        )

    logger.debug(f"Scanned {len(entries)} files under {root}")
    return entries
