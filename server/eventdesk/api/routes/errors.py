"""Translation of service and provider exceptions into HTTP errors."""

from typing import Any

from fastapi import HTTPException, status

from eventdesk.integrations.esignature import SignatureError
from eventdesk.services.exceptions import (
    AlreadySubmitted,
    ContractError,
    ContractFinalized,
    ContractNotFound,
    DuplicateProviderDocument,
    FileUnavailable,
    Forbidden,
    InvalidSigners,
    MalformedPayload,
    NotYetSubmitted,
)

CONTRACT_ERROR_STATUS: dict[type[ContractError], int] = {
    ContractNotFound: status.HTTP_404_NOT_FOUND,
    Forbidden: status.HTTP_403_FORBIDDEN,
    AlreadySubmitted: status.HTTP_409_CONFLICT,
    NotYetSubmitted: status.HTTP_409_CONFLICT,
    ContractFinalized: status.HTTP_409_CONFLICT,
    DuplicateProviderDocument: status.HTTP_409_CONFLICT,
    InvalidSigners: 422,
    FileUnavailable: status.HTTP_500_INTERNAL_SERVER_ERROR,
    MalformedPayload: status.HTTP_400_BAD_REQUEST,
}


def contract_http_error(exc: ContractError) -> HTTPException:
    detail: dict[str, Any] = {"code": exc.code, "message": exc.message, **exc.details}
    status_code = CONTRACT_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=detail)


def provider_http_error(exc: SignatureError) -> HTTPException:
    detail: dict[str, Any] = {
        "code": exc.default_code,
        "message": exc.error_message,
        "provider_error_code": exc.error_code,
    }
    if exc.http_status is not None:
        detail["provider_http_status"] = exc.http_status
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
