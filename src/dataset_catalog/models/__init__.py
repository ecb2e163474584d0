"""ORM model registry — import all models so Alembic autogenerate discovers them."""

from dataset_catalog.models.dataset import Dataset
from dataset_catalog.models.manifest_block import ManifestBlockRecord
from dataset_catalog.models.published_data import PublicationStatus, PublishedData

__all__ = [
    "Dataset",
    "ManifestBlockRecord",
    "PublicationStatus",
    "PublishedData",
]
