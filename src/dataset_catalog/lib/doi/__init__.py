"""DOI library — pluggable registration agencies.

Public API:
    - BaseDoiMinter: Abstract minter interface
    - DoiRequest: Publication metadata sent to the agency
    - DoiMintingError: Rejection/transport error with a retryable flag
    - DataCiteMinter: DataCite REST backend
    - LocalDoiMinter: Offline backend for development and tests
    - get_minter: Build the configured minter from settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dataset_catalog.lib.doi.base import BaseDoiMinter, DoiMintingError, DoiRequest
from dataset_catalog.lib.doi.datacite import DataCiteMinter
from dataset_catalog.lib.doi.local import LocalDoiMinter

if TYPE_CHECKING:
    from dataset_catalog.core.config import Settings


def get_minter(settings: Settings) -> BaseDoiMinter:
    """Build the minter selected by ``settings.doi_minter``.

    Raises:
        ValueError: If DataCite is selected without credentials.
    """
    if settings.doi_minter == "datacite":
        if not settings.datacite_username or not settings.datacite_password:
            msg = "DataCite minting requires DATACITE_USERNAME and DATACITE_PASSWORD"
            raise ValueError(msg)
        return DataCiteMinter(
            settings.doi_prefix,
            base_url=settings.datacite_url,
            username=settings.datacite_username,
            password=settings.datacite_password,
            landing_page_base=settings.public_url_base,
            timeout=settings.datacite_timeout,
        )
    return LocalDoiMinter(settings.doi_prefix)


__all__ = [
    "BaseDoiMinter",
    "DataCiteMinter",
    "DoiMintingError",
    "DoiRequest",
    "LocalDoiMinter",
    "get_minter",
]
