"""Dataset model — the catalog's aggregate root.

Lifecycle and history are embedded JSON documents owned by the row.
Manifest blocks are owned child rows (one record per block keeps each block
under the store's per-record ceiling).
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dataset_catalog.lib.history import HistoryLedger
from dataset_catalog.lib.lifecycle import Lifecycle
from dataset_catalog.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from dataset_catalog.models.manifest_block import ManifestBlockRecord


class Dataset(Base, TimestampMixin):
    """A cataloged dataset (raw or derived)."""

    __tablename__ = "datasets"

    pid: Mapped[str] = mapped_column(String(255), primary_key=True)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Ownership
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    owner_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    orcid_of_owner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    owner_group: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    access_groups: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    shared_with: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Location
    source_folder: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    source_folder_host: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Derived roll-ups
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    number_of_files: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    packed_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    number_of_files_archived: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Descriptive
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    creation_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    dataset_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    keywords: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    validation_status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    classification: Mapped[str | None] = mapped_column(String(255), nullable=True)
    license: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scientific_metadata: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    techniques: Mapped[list[dict[str, str]]] = mapped_column(JSONType, nullable=False, default=list)
    # Lineage links to other datasets: [{"pid": ..., "relationship": ...}]
    relationships: Mapped[list[dict[str, str]]] = mapped_column(JSONType, nullable=False, default=list)

    # Embedded documents
    lifecycle: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    lifecycle_state: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    # Raw datasets
    principal_investigator: Mapped[str | None] = mapped_column(String(255), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    creation_location: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    data_format: Mapped[str | None] = mapped_column(String(255), nullable=True)
    proposal_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sample_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    instrument_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Derived datasets
    investigator: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    input_datasets: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    used_software: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    job_parameters: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    job_log_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    blocks: Mapped[list["ManifestBlockRecord"]] = relationship(
        back_populates="dataset",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    __mapper_args__ = {"version_id_col": row_version}

    __table_args__ = (
        CheckConstraint("type IN ('raw', 'derived')", name="ck_dataset_type"),
        CheckConstraint("size >= 0 AND packed_size >= 0", name="ck_dataset_sizes"),
        Index("idx_datasets_owner_creation_time", "owner", "creation_time"),
    )

    def get_lifecycle(self) -> Lifecycle:
        """Decode the embedded lifecycle document."""
        return Lifecycle.from_dict(self.lifecycle)

    def set_lifecycle(self, lifecycle: Lifecycle) -> None:
        """Store a lifecycle document, keeping the queryable state column in sync."""
        self.lifecycle = lifecycle.to_dict()
        self.lifecycle_state = lifecycle.state.value

    def get_history(self) -> HistoryLedger:
        """Decode the embedded history ledger."""
        return HistoryLedger.from_json(self.history)

    def set_history(self, ledger: HistoryLedger) -> None:
        self.history = ledger.to_json()
