"""Pydantic v2 schemas for manifest ingestion and block listings."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from dataset_catalog.lib.manifest import BlockVariant, ChecksumAlgorithm, ManifestEntry


class ManifestEntryIn(BaseModel):
    """One file in an ingestion request."""

    path: str = Field(min_length=1)
    size: int = Field(ge=0, description="File size in bytes")
    checksum: str = Field(min_length=1)
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256
    time: datetime | None = None
    perm: str | None = None
    uid: str | None = None
    gid: str | None = None

    def to_entry(self) -> ManifestEntry:
        return ManifestEntry(**self.model_dump())

    @model_validator(mode="after")
    def check_entry_fits_block(self) -> "ManifestEntryIn":
        """Reject entries too large to store inside a manifest block."""
        self.to_entry()
        return self


class ManifestIngestRequest(BaseModel):
    """A batch of ordered file entries for one dataset listing."""

    variant: BlockVariant = BlockVariant.ORIGINAL
    entries: list[ManifestEntryIn] = Field(min_length=1)
    archive_id: str | None = Field(default=None, description="Archival system identifier (archived listings)")


class ManifestBlockResponse(BaseModel):
    """A sealed manifest block."""

    model_config = {"from_attributes": True}

    dataset_pid: str
    variant: BlockVariant
    block_index: int
    block_size: int
    file_count: int
    oversize: bool
    sealed_at: datetime
    archive_id: str | None = None
    entries: list[ManifestEntryIn]


class ManifestTotals(BaseModel):
    """Roll-up of one listing variant."""

    dataset_pid: str
    variant: BlockVariant
    block_count: int
    total_size: int
    total_files: int
