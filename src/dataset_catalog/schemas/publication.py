"""Pydantic v2 schemas for published data registration."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class PublicationMetadata(BaseModel):
    """Citation metadata supplied at registration."""

    title: str = Field(min_length=1, max_length=500)
    creator: list[str] = Field(min_length=1)
    publisher: str = Field(min_length=1, max_length=255)
    publication_year: int = Field(ge=1900, le=9999)
    abstract: str | None = None
    data_description: str | None = None
    resource_type: str | None = Field(default=None, max_length=100)
    affiliation: str | None = None
    url: str | None = None
    authors: list[str] = Field(default_factory=list)
    related_publications: list[str] = Field(default_factory=list)
    download_link: str | None = None
    thumbnail: str | None = None


class PublicationMetadataUpdate(BaseModel):
    """Metadata corrections. Aggregates, ``pid_array`` and ``doi`` are not editable."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    creator: list[str] | None = Field(default=None, min_length=1)
    publisher: str | None = Field(default=None, min_length=1, max_length=255)
    publication_year: int | None = Field(default=None, ge=1900, le=9999)
    abstract: str | None = None
    data_description: str | None = None
    resource_type: str | None = Field(default=None, max_length=100)
    affiliation: str | None = None
    url: str | None = None
    authors: list[str] | None = None
    related_publications: list[str] | None = None
    download_link: str | None = None
    thumbnail: str | None = None


class PublicationResponse(BaseModel):
    """Published data record."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    doi: str | None
    status: str
    pid_array: list[str]
    number_of_files: int
    size_of_archive: int
    registered_time: datetime | None
    title: str
    creator: list[str]
    publisher: str
    publication_year: int
    abstract: str | None
    resource_type: str | None
    registered_by: str | None
    created_at: datetime
    updated_at: datetime
