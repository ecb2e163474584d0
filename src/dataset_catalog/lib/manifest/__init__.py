"""Manifest library public API.

Provides file entry/block types, the block partitioner, and directory scanning.
"""

from dataset_catalog.lib.manifest.partitioner import check_block, partition_entries, total_files, total_size
from dataset_catalog.lib.manifest.scanner import file_checksum, scan_directory
from dataset_catalog.lib.manifest.types import (
    DEFAULT_MAX_BLOCK_BYTES,
    DEFAULT_MAX_BLOCK_FILES,
    MAX_ENTRY_BYTES,
    BlockLimits,
    BlockVariant,
    ChecksumAlgorithm,
    ManifestBlock,
    ManifestEntry,
)

__all__ = [
    "DEFAULT_MAX_BLOCK_BYTES",
    "DEFAULT_MAX_BLOCK_FILES",
    "MAX_ENTRY_BYTES",
    "BlockLimits",
    "BlockVariant",
    "ChecksumAlgorithm",
    "ManifestBlock",
    "ManifestEntry",
    "check_block",
    "file_checksum",
    "partition_entries",
    "scan_directory",
    "total_files",
    "total_size",
]
