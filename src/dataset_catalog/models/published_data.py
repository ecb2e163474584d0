"""PublishedData model — a citable aggregate of datasets."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from dataset_catalog.models.base import Base, JSONType, TimestampMixin, UUIDMixin


class PublicationStatus(StrEnum):
    """Registration status of a published data record."""

    PENDING_REGISTRATION = "pending_registration"
    REGISTERED = "registered"
    PUBLIC = "public"
    CANCELLED = "cancelled"


class PublishedData(Base, UUIDMixin, TimestampMixin):
    """Published data record.

    ``id`` is stable from creation; ``doi`` is set once the registration
    agency confirms.  Aggregates are snapshots taken at registration.
    """

    __tablename__ = "published_data"

    doi: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="pending_registration", server_default="pending_registration"
    )
    pid_array: Mapped[list[str]] = mapped_column(JSONType, nullable=False)
    pid_set_key: Mapped[str] = mapped_column(String(64), nullable=False)
    number_of_files: Mapped[int] = mapped_column(Integer, nullable=False)
    size_of_archive: Mapped[int] = mapped_column(BigInteger, nullable=False)
    registered_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Citation metadata
    creator: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    publisher: Mapped[str] = mapped_column(String(255), nullable=False)
    publication_year: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    abstract: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    resource_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    affiliation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    authors: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    related_publications: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    download_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail: Mapped[str | None] = mapped_column(Text, nullable=True)
    registered_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending_registration', 'registered', 'public', 'cancelled')",
            name="ck_published_data_status",
        ),
        # At most one live registration per set of datasets
        Index(
            "uq_published_data_active_pid_set",
            "pid_set_key",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("idx_published_data_status", "status"),
    )

    __mapper_args__ = {"version_id_col": row_version}
