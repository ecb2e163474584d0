"""ManifestBlockRecord model — one sealed partition of a dataset's file listing."""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dataset_catalog.lib.manifest import BlockVariant, ManifestBlock
from dataset_catalog.models.base import Base, JSONType, UUIDMixin, utcnow

if TYPE_CHECKING:
    from dataset_catalog.models.dataset import Dataset


class ManifestBlockRecord(Base, UUIDMixin):
    """A sealed manifest block. Insert-only; rows are never updated."""

    __tablename__ = "manifest_blocks"

    dataset_pid: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("datasets.pid", ondelete="CASCADE"),
        nullable=False,
    )
    variant: Mapped[str] = mapped_column(String(20), nullable=False)
    block_index: Mapped[int] = mapped_column(Integer, nullable=False)
    entries: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    block_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    file_count: Mapped[int] = mapped_column(Integer, nullable=False)
    oversize: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sealed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Identifier assigned by the archival system (archived blocks only)
    archive_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    dataset: Mapped["Dataset"] = relationship(back_populates="blocks")

    __table_args__ = (
        Index("uq_manifest_block_position", "dataset_pid", "variant", "block_index", unique=True),
        CheckConstraint("variant IN ('original', 'archived')", name="ck_manifest_block_variant"),
        CheckConstraint("block_index >= 0", name="ck_manifest_block_index"),
    )

    @classmethod
    def from_block(
        cls,
        dataset_pid: str,
        variant: BlockVariant,
        block: ManifestBlock,
        *,
        archive_id: str | None = None,
    ) -> "ManifestBlockRecord":
        """Build a row from a freshly sealed block."""
        return cls(
            dataset_pid=dataset_pid,
            variant=variant.value,
            block_index=block.block_index,
            entries=[entry.to_dict() for entry in block.entries],
            block_size=block.block_size,
            file_count=block.file_count,
            oversize=block.oversize,
            archive_id=archive_id,
        )
