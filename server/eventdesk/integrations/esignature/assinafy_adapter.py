"""
Assinafy E-signature Adapter

Provides integration with the Assinafy e-signature platform: document
upload, signer registration and signature assignments.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Sequence, Type

import aiohttp
from aiohttp import ClientTimeout

from .base import (
    ESignatureProvider,
    ESignatureType,
    ProviderRejected,
    ProviderUnavailable,
    SignatureError,
    UploadedDocument,
)

logger = logging.getLogger(__name__)

ASSIGNMENT_METHOD = "virtual"


class AssinafyAdapter(ESignatureProvider):
    """Assinafy e-signature adapter."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        account_id: str,
        timeout_seconds: int = 30,
        **config
    ):
        """
        Initialize Assinafy adapter.

        Args:
            base_url: Assinafy API base URL
            api_key: API key sent in the X-Api-Key header
            account_id: Assinafy account (workspace) id
            timeout_seconds: Total timeout applied to every call
            **config: Additional configuration
        """
        super().__init__(
            base_url=base_url,
            api_key=api_key,
            account_id=account_id,
            timeout_seconds=timeout_seconds,
            **config
        )
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.account_id = account_id

        self.documents_endpoint = f"{self.base_url}/accounts/{self.account_id}/documents"
        self.signers_endpoint = f"{self.base_url}/accounts/{self.account_id}/signers"

        # Session will be created lazily to avoid event loop issues during initialization
        self._session: Optional[aiohttp.ClientSession] = None
        self._timeout = ClientTimeout(total=timeout_seconds, connect=min(10, timeout_seconds))

    def _get_provider_type(self) -> ESignatureType:
        """Return the provider type identifier."""
        return ESignatureType.ASSINAFY

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={
                    "X-Api-Key": self.api_key,
                    "Accept": "application/json",
                }
            )
        return self._session

    def assignments_endpoint(self, provider_document_id: str) -> str:
        return f"{self.base_url}/documents/{provider_document_id}/assignments"

    async def upload_document(self, file_bytes: bytes, file_name: str) -> UploadedDocument:
        """
        Upload a document to Assinafy as multipart form data.

        Any failure is reported as ProviderUnavailable; Assinafy's message is
        kept when the response carries one.
        """
        form = aiohttp.FormData()
        form.add_field("file", file_bytes, filename=file_name, content_type="application/octet-stream")

        data = await self._post(
            "upload_document",
            self.documents_endpoint,
            error_class=ProviderUnavailable,
            data=form,
        )
        artifacts = data.get("artifacts") or {}
        return UploadedDocument(
            provider_document_id=str(data["id"]),
            provider_status=data.get("status"),
            original_artifact_url=artifacts.get("original"),
            provider_response=data,
        )

    async def create_signer(self, full_name: str, email: str) -> str:
        data = await self._post(
            "create_signer",
            self.signers_endpoint,
            error_class=ProviderRejected,
            json={"full_name": full_name, "email": email},
        )
        return str(data["id"])

    async def create_signature_assignment(
        self,
        provider_document_id: str,
        signer_ids: Sequence[str],
    ) -> str:
        data = await self._post(
            "create_signature_assignment",
            self.assignments_endpoint(provider_document_id),
            error_class=ProviderRejected,
            json={"method": ASSIGNMENT_METHOD, "signerIds": list(signer_ids)},
        )
        return str(data["id"])

    async def health_check(self) -> bool:
        """
        Check if the Assinafy API is healthy.

        Returns:
            True if the account endpoint answers with 200
        """
        try:
            async with self.session.get(f"{self.base_url}/accounts/{self.account_id}") as response:
                return response.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Assinafy health check failed: {e}")
            return False

    async def _post(
        self,
        operation: str,
        endpoint: str,
        *,
        error_class: Type[SignatureError],
        **request_kwargs: Any,
    ) -> Dict[str, Any]:
        """POST to Assinafy and return the ``data`` object of a successful envelope."""
        try:
            async with self.session.post(endpoint, **request_kwargs) as response:
                body = await self._read_body(response)
                return self._unwrap(operation, response.status, body, error_class)
        except SignatureError:
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"Assinafy timeout in {operation}: {e}")
            raise ProviderUnavailable(
                message=f"Assinafy did not answer in time ({operation})",
                error_code="provider_timeout",
                provider="assinafy",
            )
        except aiohttp.ClientError as e:
            logger.error(f"Assinafy API error in {operation}: {e}")
            raise ProviderUnavailable(
                message=f"Failed to reach Assinafy ({operation}): {str(e)}",
                error_code="api_error",
                provider="assinafy",
            )

    async def _read_body(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, json.JSONDecodeError, ValueError):
            text = await response.text()
            return {"message": text} if text else {}
        return body if isinstance(body, dict) else {}

    def _unwrap(
        self,
        operation: str,
        http_status: int,
        body: Dict[str, Any],
        error_class: Type[SignatureError],
    ) -> Dict[str, Any]:
        """
        Validate an Assinafy response envelope.

        Assinafy wraps every payload as ``{"status": ..., "message": ..., "data": {...}}``.
        The call succeeded only when the HTTP status is 2xx, the envelope status
        (if present) is 200 and ``data.id`` is set.
        """
        envelope_status = body.get("status")
        data = body.get("data")
        message = body.get("message") or f"Assinafy API error in {operation}"

        succeeded = (
            200 <= http_status < 300
            and envelope_status in (None, 200)
            and isinstance(data, dict)
            and data.get("id") is not None
        )
        if succeeded:
            return data

        logger.warning(f"Assinafy {operation} failed with HTTP {http_status}: {message}")
        if http_status >= 500 or http_status == 429:
            raise ProviderUnavailable(
                message=message,
                error_code="server_error" if http_status >= 500 else "rate_limited",
                provider="assinafy",
                provider_response=body,
                http_status=http_status,
            )
        raise error_class(
            message=message,
            provider="assinafy",
            provider_response=body,
            http_status=http_status,
        )

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
