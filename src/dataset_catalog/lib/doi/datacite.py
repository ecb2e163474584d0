"""DataCite REST API minter.

Registers DOIs via ``POST /dois`` (JSON:API) with the ``register`` event,
see https://support.datacite.org/docs/api-create-dois.
"""

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from dataset_catalog.lib.doi.base import BaseDoiMinter, DoiMintingError, DoiRequest

DEFAULT_TIMEOUT = 30.0
_JSONAPI = "application/vnd.api+json"


class DataCiteMinter(BaseDoiMinter):
    """DataCite registration backend."""

    def __init__(
        self,
        prefix: str,
        *,
        base_url: str,
        username: str,
        password: str,
        landing_page_base: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(prefix)
        self._base_url = base_url.rstrip("/")
        self._auth = (username, password)
        self._landing_page_base = landing_page_base
        self._timeout = timeout
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "datacite"

    def build_payload(self, request: DoiRequest, doi: str) -> dict[str, Any]:
        """Build the JSON:API document for a registration request."""
        attributes: dict[str, Any] = {
            "doi": doi,
            "event": "register",
            "creators": [{"name": name} for name in request.creators],
            "titles": [{"title": request.title}],
            "publisher": request.publisher,
            "publicationYear": request.publication_year,
            "types": {"resourceTypeGeneral": "Dataset", "resourceType": request.resource_type or "Dataset"},
            "url": request.landing_page_url or f"{self._landing_page_base}{quote(doi, safe='')}",
        }
        if request.abstract:
            attributes["descriptions"] = [{"description": request.abstract, "descriptionType": "Abstract"}]
        if request.related_identifiers:
            attributes["relatedIdentifiers"] = [
                {"relatedIdentifier": pid, "relatedIdentifierType": "Handle", "relationType": "HasPart"}
                for pid in request.related_identifiers
            ]
        return {"data": {"type": "dois", "attributes": attributes}}

    async def mint(self, request: DoiRequest) -> str:
        """Register a DOI with DataCite.

        A 422 reporting the DOI as already taken means an earlier attempt
        succeeded, so the DOI is returned as confirmed.

        Raises:
            DoiMintingError: On rejection or transport failure.
        """
        doi = self.doi_for(request.publication_id)
        payload = self.build_payload(request, doi)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, auth=self._auth, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self._base_url}/dois",
                    json=payload,
                    headers={"Content-Type": _JSONAPI, "Accept": _JSONAPI},
                )
                if response.status_code == 422 and "taken" in response.text.lower():
                    logger.info(f"DataCite reports {doi} already registered")
                    return doi
                response.raise_for_status()

            data = response.json()
            confirmed = data.get("data", {}).get("id") or doi
            logger.info(f"DataCite registered DOI {confirmed}")
            return confirmed

        except httpx.TimeoutException as e:
            logger.warning("DataCite request timed out")
            raise DoiMintingError("datacite", "Registration request timed out", retryable=True) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            retryable = status == 429 or status >= 500
            logger.warning(f"DataCite HTTP error {status}")
            raise DoiMintingError(
                "datacite", f"Agency returned HTTP {status}", retryable=retryable, status_code=status
            ) from e
        except httpx.TransportError as e:
            logger.warning("DataCite connection error")
            raise DoiMintingError("datacite", "Connection to registration agency failed", retryable=True) from e
        except ValueError as e:
            raise DoiMintingError("datacite", f"Failed to parse response: {e}", retryable=False) from e
