"""Pydantic v2 schemas for dataset records.

Type-specific required fields are not enforced here; the catalog applies
the dispatch table in ``lib.dataset.validation`` to the merged record so the
same rules cover create and update.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

DatasetTypeName = Literal["raw", "derived"]
SortKey = Literal["pid", "creation_time", "size", "owner", "updated_at"]

# --- Request schemas ---


class Technique(BaseModel):
    """Experimental technique applied to a dataset."""

    pid: str = Field(min_length=1, description="Technique identifier, e.g. an ontology IRI")
    name: str = Field(min_length=1)


class DatasetRelationship(BaseModel):
    """Typed link to another dataset."""

    pid: str = Field(min_length=1, description="PID of the related dataset")
    relationship: str = Field(min_length=1, description="e.g. 'isSupplementTo', 'isCompiledBy'")


class DatasetFields(BaseModel):
    """Editable dataset fields shared by create and update."""

    owner_email: str | None = None
    orcid_of_owner: str | None = None
    owner_group: str | None = None
    access_groups: list[str] | None = None
    shared_with: list[str] | None = None
    source_folder_host: str | None = None
    dataset_name: str | None = Field(default=None, max_length=500)
    description: str | None = None
    keywords: list[str] | None = None
    validation_status: str | None = None
    classification: str | None = Field(default=None, description="ACIA classification, e.g. 'AV=medium,CO=low'")
    license: str | None = None
    version: str | None = None
    scientific_metadata: dict[str, Any] | None = None
    techniques: list[Technique] | None = None
    relationships: list[DatasetRelationship] | None = None

    # Raw datasets
    principal_investigator: str | None = None
    end_time: datetime | None = None
    creation_location: str | None = Field(default=None, description="Required for raw datasets")
    data_format: str | None = None
    proposal_id: str | None = None
    sample_id: str | None = None
    instrument_id: str | None = None

    # Derived datasets
    investigator: str | None = None
    input_datasets: list[str] | None = Field(default=None, description="Required (non-empty) for derived datasets")
    used_software: list[str] | None = None
    job_parameters: dict[str, Any] | None = None
    job_log_data: str | None = None


class DatasetCreateRequest(DatasetFields):
    """Request body for cataloging a new dataset."""

    pid: str | None = Field(default=None, min_length=1, max_length=255, description="Minted when omitted")
    owner: str = Field(min_length=1, max_length=255)
    contact_email: str = Field(min_length=1, max_length=255)
    source_folder: str = Field(min_length=1, description="Absolute path; one trailing '/' is removed")
    type: DatasetTypeName
    creation_time: datetime


class DatasetUpdateRequest(DatasetFields):
    """Partial update; only fields explicitly set are applied."""

    owner: str | None = Field(default=None, max_length=255)
    contact_email: str | None = Field(default=None, max_length=255)
    source_folder: str | None = None
    type: DatasetTypeName | None = None
    creation_time: datetime | None = None


class DatasetFilter(BaseModel):
    """Field filters for dataset listing."""

    owner: str | None = None
    owner_group: str | None = None
    type: DatasetTypeName | None = None
    creation_location: str | None = None
    lifecycle_state: str | None = None
    is_published: bool | None = None
    source_folder_prefix: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None


# --- Response schemas ---


class LifecycleResponse(BaseModel):
    """Embedded lifecycle document."""

    state: str
    last_event: str | None = None
    archivable: bool
    retrievable: bool
    publishable: bool
    is_on_central_disk: bool
    transitioned_at: dict[str, datetime] = Field(default_factory=dict)
    archive_status_message: str | None = None
    retrieve_status_message: str | None = None
    archive_retention_time: datetime | None = None
    date_of_disk_purging: datetime | None = None


class HistoryEntryResponse(BaseModel):
    """One recorded field change."""

    field: str
    old_value: Any = None
    new_value: Any = None
    changed_at: datetime
    changed_by: str


class DatasetSummary(BaseModel):
    """Dataset summary for list output."""

    model_config = {"from_attributes": True}

    pid: str
    owner: str
    type: str
    dataset_name: str | None
    source_folder: str
    size: int
    number_of_files: int
    lifecycle_state: str
    is_published: bool
    creation_time: datetime


class DatasetDetailResponse(DatasetSummary):
    """Full dataset record."""

    owner_email: str | None
    orcid_of_owner: str | None
    contact_email: str
    owner_group: str | None
    access_groups: list[str]
    shared_with: list[str]
    source_folder_host: str | None
    packed_size: int
    number_of_files_archived: int
    description: str | None
    keywords: list[str]
    validation_status: str | None
    classification: str | None
    license: str | None
    version: str | None
    scientific_metadata: dict[str, Any]
    techniques: list[Technique]
    relationships: list[DatasetRelationship]
    lifecycle: LifecycleResponse
    history: list[HistoryEntryResponse]
    principal_investigator: str | None
    end_time: datetime | None
    creation_location: str | None
    data_format: str | None
    proposal_id: str | None
    sample_id: str | None
    instrument_id: str | None
    investigator: str | None
    input_datasets: list[str]
    used_software: list[str]
    job_parameters: dict[str, Any] | None
    job_log_data: str | None
    created_at: datetime
    updated_at: datetime


class DatasetPage(BaseModel):
    """One page of a keyset-paginated dataset listing."""

    items: list[DatasetSummary]
    next_cursor: str | None = Field(default=None, description="Pass back to fetch the next page; null at the end")
