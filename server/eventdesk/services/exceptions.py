"""
Domain exceptions raised by the contract signature services.

Routes translate these into HTTP errors; the ``code`` attribute is the
stable, machine-readable identifier sent back to callers.
"""

from typing import Any, Optional


class ContractError(Exception):
    """Base exception for all contract workflow errors."""

    code = "contract_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ContractNotFound(ContractError):
    code = "contract_not_found"

    def __init__(self, contract_id: int):
        super().__init__(f"Contract {contract_id} not found", {"contract_id": contract_id})


class Forbidden(ContractError):
    """Raised when the caller is not the contract's uploader."""

    code = "forbidden"

    def __init__(self, contract_id: int):
        super().__init__(
            f"Caller is not allowed to act on contract {contract_id}",
            {"contract_id": contract_id},
        )


class AlreadySubmitted(ContractError):
    code = "already_submitted"

    def __init__(self, contract_id: int, provider_document_id: str):
        super().__init__(
            f"Contract {contract_id} was already sent to the signature provider",
            {"contract_id": contract_id, "provider_document_id": provider_document_id},
        )


class NotYetSubmitted(ContractError):
    code = "not_yet_submitted"

    def __init__(self, contract_id: int):
        super().__init__(
            f"Contract {contract_id} has not been sent to the signature provider yet",
            {"contract_id": contract_id},
        )


class InvalidSigners(ContractError):
    code = "invalid_signers"

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message, {"errors": errors or []})


class FileUnavailable(ContractError):
    """Raised when the contract's underlying file cannot be read."""

    code = "file_unavailable"

    def __init__(self, file_reference: str, reason: str):
        super().__init__(
            f"Contract file could not be read: {reason}",
            {"file_reference": file_reference},
        )


class MalformedPayload(ContractError):
    """Raised when an inbound webhook body cannot be normalized."""

    code = "malformed_payload"


class ContractFinalized(ContractError):
    """Raised when a contract already reached a terminal signature status."""

    code = "contract_finalized"

    def __init__(self, contract_id: int, internal_status: str):
        super().__init__(
            f"Contract {contract_id} is already {internal_status}",
            {"contract_id": contract_id, "internal_status": internal_status},
        )


class DuplicateProviderDocument(ContractError):
    """Raised when the provider hands back a document id another contract holds."""

    code = "duplicate_provider_document"

    def __init__(self, contract_id: int, provider_document_id: str):
        super().__init__(
            f"Provider document {provider_document_id} is already linked to another contract",
            {"contract_id": contract_id, "provider_document_id": provider_document_id},
        )
