"""create dataset catalog tables

Revision ID: 001
Revises:
Create Date: 2026-10-17

Creates datasets, manifest_blocks, and published_data with their indexes,
check constraints, and the partial unique index that allows one live
registration per dataset set.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # --- datasets ---
    op.create_table(
        "datasets",
        sa.Column("pid", sa.String(255), primary_key=True),
        sa.Column("row_version", sa.Integer, nullable=False),
        sa.Column("owner", sa.String(255), nullable=False),
        sa.Column("owner_email", sa.String(255), nullable=True),
        sa.Column("orcid_of_owner", sa.String(255), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("owner_group", sa.String(255), nullable=True),
        sa.Column("access_groups", JSON_TYPE, nullable=False),
        sa.Column("shared_with", JSON_TYPE, nullable=False),
        sa.Column("source_folder", sa.Text, nullable=False),
        sa.Column("source_folder_host", sa.String(255), nullable=True),
        sa.Column("size", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("number_of_files", sa.Integer, nullable=False, server_default="0"),
        sa.Column("packed_size", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("number_of_files_archived", sa.Integer, nullable=False, server_default="0"),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("creation_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("dataset_name", sa.String(500), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("keywords", JSON_TYPE, nullable=False),
        sa.Column("validation_status", sa.String(255), nullable=True),
        sa.Column("classification", sa.String(255), nullable=True),
        sa.Column("license", sa.String(255), nullable=True),
        sa.Column("version", sa.String(50), nullable=True),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("scientific_metadata", JSON_TYPE, nullable=False),
        sa.Column("techniques", JSON_TYPE, nullable=False),
        sa.Column("relationships", JSON_TYPE, nullable=False),
        sa.Column("lifecycle", JSON_TYPE, nullable=False),
        sa.Column("lifecycle_state", sa.String(40), nullable=False),
        sa.Column("history", JSON_TYPE, nullable=False),
        sa.Column("principal_investigator", sa.String(255), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("creation_location", sa.String(255), nullable=True),
        sa.Column("data_format", sa.String(255), nullable=True),
        sa.Column("proposal_id", sa.String(255), nullable=True),
        sa.Column("sample_id", sa.String(255), nullable=True),
        sa.Column("instrument_id", sa.String(255), nullable=True),
        sa.Column("investigator", sa.String(255), nullable=True),
        sa.Column("input_datasets", JSON_TYPE, nullable=False),
        sa.Column("used_software", JSON_TYPE, nullable=False),
        sa.Column("job_parameters", JSON_TYPE, nullable=True),
        sa.Column("job_log_data", sa.Text, nullable=True),
        *_timestamps(),
        sa.CheckConstraint("type IN ('raw', 'derived')", name="ck_dataset_type"),
        sa.CheckConstraint("size >= 0 AND packed_size >= 0", name="ck_dataset_sizes"),
    )
    for column in (
        "owner",
        "contact_email",
        "owner_group",
        "source_folder",
        "type",
        "creation_time",
        "lifecycle_state",
        "creation_location",
        "investigator",
        "created_at",
    ):
        op.create_index(f"ix_datasets_{column}", "datasets", [column])
    op.create_index("idx_datasets_owner_creation_time", "datasets", ["owner", "creation_time"])

    # --- manifest_blocks ---
    op.create_table(
        "manifest_blocks",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "dataset_pid",
            sa.String(255),
            sa.ForeignKey("datasets.pid", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("variant", sa.String(20), nullable=False),
        sa.Column("block_index", sa.Integer, nullable=False),
        sa.Column("entries", JSON_TYPE, nullable=False),
        sa.Column("block_size", sa.BigInteger, nullable=False),
        sa.Column("file_count", sa.Integer, nullable=False),
        sa.Column("oversize", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("sealed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("archive_id", sa.String(255), nullable=True),
        sa.CheckConstraint("variant IN ('original', 'archived')", name="ck_manifest_block_variant"),
        sa.CheckConstraint("block_index >= 0", name="ck_manifest_block_index"),
    )
    op.create_index(
        "uq_manifest_block_position",
        "manifest_blocks",
        ["dataset_pid", "variant", "block_index"],
        unique=True,
    )

    # --- published_data ---
    op.create_table(
        "published_data",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("doi", sa.String(255), nullable=True, unique=True),
        sa.Column("row_version", sa.Integer, nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending_registration"),
        sa.Column("pid_array", JSON_TYPE, nullable=False),
        sa.Column("pid_set_key", sa.String(64), nullable=False),
        sa.Column("number_of_files", sa.Integer, nullable=False),
        sa.Column("size_of_archive", sa.BigInteger, nullable=False),
        sa.Column("registered_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("creator", JSON_TYPE, nullable=False),
        sa.Column("publisher", sa.String(255), nullable=False),
        sa.Column("publication_year", sa.Integer, nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("abstract", sa.Text, nullable=True),
        sa.Column("data_description", sa.Text, nullable=True),
        sa.Column("resource_type", sa.String(100), nullable=True),
        sa.Column("affiliation", sa.String(255), nullable=True),
        sa.Column("url", sa.Text, nullable=True),
        sa.Column("authors", JSON_TYPE, nullable=False),
        sa.Column("related_publications", JSON_TYPE, nullable=False),
        sa.Column("download_link", sa.Text, nullable=True),
        sa.Column("thumbnail", sa.Text, nullable=True),
        sa.Column("registered_by", sa.String(255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending_registration', 'registered', 'public', 'cancelled')",
            name="ck_published_data_status",
        ),
    )
    op.create_index("idx_published_data_status", "published_data", ["status"])
    op.create_index("ix_published_data_created_at", "published_data", ["created_at"])
    op.create_index(
        "uq_published_data_active_pid_set",
        "published_data",
        ["pid_set_key"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
        sqlite_where=sa.text("status <> 'cancelled'"),
    )


def downgrade() -> None:
    op.drop_index("uq_published_data_active_pid_set", table_name="published_data")
    op.drop_index("ix_published_data_created_at", table_name="published_data")
    op.drop_index("idx_published_data_status", table_name="published_data")
    op.drop_table("published_data")

    op.drop_index("uq_manifest_block_position", table_name="manifest_blocks")
    op.drop_table("manifest_blocks")

    op.drop_index("idx_datasets_owner_creation_time", table_name="datasets")
    for column in (
        "investigator",
        "creation_location",
        "lifecycle_state",
        "creation_time",
        "type",
        "source_folder",
        "owner_group",
        "contact_email",
        "owner",
        "created_at",
    ):
        op.drop_index(f"ix_datasets_{column}", table_name="datasets")
    op.drop_table("datasets")
