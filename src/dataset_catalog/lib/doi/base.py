"""Abstract DOI minting interface for pluggable registration agencies."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class DoiRequest:
    """Metadata sent to the registration agency for one publication."""

    publication_id: uuid.UUID
    title: str
    creators: list[str]
    publisher: str
    publication_year: int
    abstract: str | None = None
    resource_type: str | None = None
    landing_page_url: str | None = None
    related_identifiers: list[str] = field(default_factory=list)


class DoiMintingError(Exception):
    """Raised when the registration agency rejects or cannot process a request.

    Args:
        provider_name: Name of the failing minter.
        message: Human-readable error description.
        retryable: Whether the same request may succeed later (timeouts,
            connection errors, 5xx, rate limiting).
        status_code: Optional HTTP status code from the agency.
    """

    def __init__(
        self,
        provider_name: str,
        message: str,
        *,
        retryable: bool,
        status_code: int | None = None,
    ) -> None:
        self.provider_name = provider_name
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(f"{provider_name}: {message}")


class BaseDoiMinter(ABC):
    """Abstract minter interface. All registration backends implement this."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name identifying this minter."""

    @property
    def prefix(self) -> str:
        return self._prefix

    def doi_for(self, publication_id: uuid.UUID) -> str:
        """Deterministic DOI for a publication, so a retried mint targets the same name."""
        return f"{self._prefix}/{publication_id}"

    @abstractmethod
    async def mint(self, request: DoiRequest) -> str:
        """Register a DOI for the publication.

        Args:
            request: Publication metadata.

        Returns:
            The confirmed DOI.

        Raises:
            DoiMintingError: On rejection or transport failure.
        """
