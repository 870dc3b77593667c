"""
E-signature Base Classes and Interfaces

Defines the contract every signature provider adapter implements so the
rest of Event Desk never sees a provider's wire format.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ESignatureType(str, Enum):
    """Supported e-signature provider types."""
    ASSINAFY = "assinafy"


@dataclass
class UploadedDocument:
    """Result of sending a document to the provider."""
    provider_document_id: str
    provider_status: Optional[str] = None
    original_artifact_url: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None


class SignatureError(Exception):
    """E-signature provider specific errors."""

    default_code = "provider_error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        provider: Optional[str] = None,
        provider_response: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.error_message = message
        self.error_code = error_code or self.default_code
        self.provider = provider
        self.provider_response = provider_response
        self.http_status = http_status


class ProviderUnavailable(SignatureError):
    """Network failure, timeout, or a server-side failure at the provider."""

    default_code = "provider_unavailable"


class ProviderRejected(SignatureError):
    """The provider understood the request and refused it."""

    default_code = "provider_rejected"


class ESignatureProvider(ABC):
    """Abstract base class for e-signature providers."""

    def __init__(self, **config):
        """Initialize the e-signature provider with configuration."""
        self.config = config
        self.provider_type = self._get_provider_type()

    @abstractmethod
    def _get_provider_type(self) -> ESignatureType:
        """Return the provider type identifier."""

    @abstractmethod
    async def upload_document(self, file_bytes: bytes, file_name: str) -> UploadedDocument:
        """
        Send a document to the provider.

        Args:
            file_bytes: Raw document content
            file_name: File name shown at the provider

        Returns:
            UploadedDocument with the provider document id and status

        Raises:
            ProviderUnavailable: On network failure, timeout or any non-success response
        """

    @abstractmethod
    async def create_signer(self, full_name: str, email: str) -> str:
        """
        Register a signer with the provider.

        Returns:
            The provider signer id

        Raises:
            ProviderRejected: If the provider refuses the signer (e.g. malformed email)
            ProviderUnavailable: On network failure, timeout or server error
        """

    @abstractmethod
    async def create_signature_assignment(
        self,
        provider_document_id: str,
        signer_ids: Sequence[str],
    ) -> str:
        """
        Ask the given signers to sign the document.

        Returns:
            The provider signature request (assignment) id

        Raises:
            ProviderRejected: On a non-success response
            ProviderUnavailable: On network failure, timeout or server error
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider API is reachable."""

    async def close(self) -> None:
        """Release any held connections."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class ESignatureFactory:
    """Factory for creating e-signature provider instances."""

    _providers: Dict[ESignatureType, type] = {}

    @classmethod
    def register_provider(
        cls,
        provider_type: ESignatureType,
        provider_class: type[ESignatureProvider]
    ):
        """Register an e-signature provider implementation."""
        cls._providers[provider_type] = provider_class

    @classmethod
    def create_provider(
        cls,
        provider_type: ESignatureType,
        **config
    ) -> ESignatureProvider:
        """Create an e-signature provider instance."""
        if provider_type not in cls._providers:
            raise ValueError(f"Unsupported provider type: {provider_type}")

        provider_class = cls._providers[provider_type]
        return provider_class(**config)

    @classmethod
    def get_supported_providers(cls) -> List[ESignatureType]:
        """Get list of registered provider types."""
        return list(cls._providers.keys())
