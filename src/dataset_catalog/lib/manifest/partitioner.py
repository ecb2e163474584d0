"""Partition ordered file listings into size/count-bounded manifest blocks.

Entries are accumulated in order.  When the next entry would push the open
block past either ceiling, the open block is sealed and a new one begins.
An entry that alone exceeds the byte ceiling is placed by itself in a block
flagged ``oversize``; it still counts as one file.
"""

from collections.abc import Iterable, Sequence

from loguru import logger

from dataset_catalog.lib.manifest.types import BlockLimits, ManifestBlock, ManifestEntry


def partition_entries(
    entries: Iterable[ManifestEntry],
    limits: BlockLimits,
    *,
    start_index: int = 0,
) -> list[ManifestBlock]:
    """Split entries into sealed blocks.

    Args:
        entries: File entries in listing order.
        limits: Byte and file-count ceilings per block.
        start_index: Index for the first new block; continues an existing
            sequence when a dataset already owns sealed blocks.

    Returns:
        New blocks with consecutive indices starting at ``start_index``.
    """
    if start_index < 0:
        msg = f"start_index must be non-negative, got {start_index}"
        raise ValueError(msg)

    blocks: list[ManifestBlock] = []
    current: list[ManifestEntry] = []
    current_bytes = 0

    def seal(block_entries: list[ManifestEntry], *, oversize: bool = False) -> None:
        blocks.append(
            ManifestBlock(block_index=start_index + len(blocks), entries=block_entries, oversize=oversize)
        )

    for entry in entries:
        if entry.size > limits.max_bytes:
            if current:
                seal(current)
                current, current_bytes = [], 0
            logger.warning(
                "Entry {} ({} bytes) exceeds block ceiling of {} bytes; isolating in its own block",
                entry.path,
                entry.size,
                limits.max_bytes,
            )
            seal([entry], oversize=True)
            continue

        if current and (current_bytes + entry.size > limits.max_bytes or len(current) + 1 > limits.max_files):
            seal(current)
            current, current_bytes = [], 0

        current.append(entry)
        current_bytes += entry.size

    if current:
        seal(current)

    return blocks


def total_size(blocks: Sequence[ManifestBlock]) -> int:
    """Sum of block sizes."""
    return sum(block.block_size for block in blocks)


def total_files(blocks: Sequence[ManifestBlock]) -> int:
    """Sum of block file counts."""
    return sum(block.file_count for block in blocks)


def check_block(block: ManifestBlock, limits: BlockLimits) -> list[str]:
    """Return ceiling violations for a block (empty when it is well-formed)."""
    problems: list[str] = []
    if block.file_count > limits.max_files:
        problems.append(f"block {block.block_index} holds {block.file_count} files (max {limits.max_files})")
    if block.block_size > limits.max_bytes and not (block.oversize and block.file_count == 1):
        problems.append(f"block {block.block_index} holds {block.block_size} bytes (max {limits.max_bytes})")
    return problems
