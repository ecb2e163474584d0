"""Offline minter that confirms DOIs without contacting an agency.

Suitable for development instances and tests.
"""

from loguru import logger

from dataset_catalog.lib.doi.base import BaseDoiMinter, DoiRequest


class LocalDoiMinter(BaseDoiMinter):
    """Confirms ``<prefix>/<publication id>`` immediately."""

    @property
    def provider_name(self) -> str:
        return "local"

    async def mint(self, request: DoiRequest) -> str:
        doi = self.doi_for(request.publication_id)
        logger.info(f"Locally confirmed DOI {doi}")
        return doi
