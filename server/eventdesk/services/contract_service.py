from __future__ import annotations

from typing import Any, Mapping, Sequence

from pydantic import BaseModel, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from eventdesk.core.logging import get_logger
from eventdesk.integrations.esignature import ESignatureProvider, SignatureError
from eventdesk.models.contract import Contract, ContractStatus
from eventdesk.schemas.contract import SignerDescriptor
from eventdesk.services.exceptions import (
    AlreadySubmitted,
    ContractFinalized,
    ContractNotFound,
    DuplicateProviderDocument,
    Forbidden,
    InvalidSigners,
    NotYetSubmitted,
)
from eventdesk.services.file_storage import LocalFileStorage

logger = get_logger(__name__)

PENDING_SIGNATURE_PROVIDER_STATUS = "pending_signature"

_signers_adapter = TypeAdapter(list[SignerDescriptor])


async def get_contract(session: AsyncSession, contract_id: int, *, for_update: bool = False) -> Contract | None:
    query = select(Contract).where(Contract.id == contract_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalars().first()


async def get_owned_contract(
    session: AsyncSession,
    contract_id: int,
    caller_identity: str,
    *,
    for_update: bool = False,
) -> Contract:
    contract = await get_contract(session, contract_id, for_update=for_update)
    if contract is None:
        raise ContractNotFound(contract_id)
    if contract.uploader_identity != caller_identity:
        logger.warning("contract.access_denied", contract_id=contract_id, caller=caller_identity)
        raise Forbidden(contract_id)
    return contract


def validate_signers(signers: Sequence[BaseModel | Mapping[str, Any]]) -> list[SignerDescriptor]:
    """Check the signer list before anything touches the provider."""
    if not signers:
        raise InvalidSigners("At least one signer is required")
    raw = [item.model_dump() if isinstance(item, BaseModel) else dict(item) for item in signers]
    try:
        return _signers_adapter.validate_python(raw)
    except ValidationError as exc:
        errors = [
            {"loc": list(error["loc"]), "msg": error["msg"]}
            for error in exc.errors(include_url=False, include_context=False, include_input=False)
        ]
        raise InvalidSigners("Signer list is invalid", errors) from exc


async def submit_to_provider(
    session: AsyncSession,
    *,
    contract_id: int,
    caller_identity: str,
    provider: ESignatureProvider,
    storage: LocalFileStorage,
) -> Contract:
    """
    Send the contract's document to the signature provider.

    The record is only touched after the provider accepted the upload, so a
    provider failure leaves it exactly as it was.
    """
    contract = await get_owned_contract(session, contract_id, caller_identity, for_update=True)
    if contract.provider_document_id is not None:
        raise AlreadySubmitted(contract.id, contract.provider_document_id)

    file_bytes = await storage.read(contract.file_reference)

    try:
        uploaded = await provider.upload_document(file_bytes, contract.file_name)
    except SignatureError as exc:
        logger.error(
            "contract.submit_failed",
            contract_id=contract.id,
            error_code=exc.error_code,
            error=exc.error_message,
        )
        raise

    contract.provider_document_id = uploaded.provider_document_id
    contract.provider_status = uploaded.provider_status
    contract.provider_original_url = uploaded.original_artifact_url
    contract.internal_status = ContractStatus.PENDING_SIGNATURE_SETUP
    try:
        await session.flush()
    except IntegrityError as exc:
        await session.rollback()
        logger.error(
            "contract.submit_conflict",
            contract_id=contract_id,
            provider_document_id=uploaded.provider_document_id,
        )
        raise DuplicateProviderDocument(contract_id, uploaded.provider_document_id) from exc

    logger.info(
        "contract.submitted",
        contract_id=contract.id,
        provider_document_id=uploaded.provider_document_id,
        provider_status=uploaded.provider_status,
    )
    return contract


async def request_signatures(
    session: AsyncSession,
    *,
    contract_id: int,
    caller_identity: str,
    signers: Sequence[BaseModel | Mapping[str, Any]],
    provider: ESignatureProvider,
) -> Contract:
    """
    Register every signer with the provider and open a signature assignment.

    Signers are created one at a time in the given order. The first failure
    aborts the request; signers already created stay registered at the
    provider and are logged for manual cleanup. The local record changes only
    once the assignment exists.
    """
    descriptors = validate_signers(signers)

    contract = await get_owned_contract(session, contract_id, caller_identity, for_update=True)
    if contract.provider_document_id is None:
        raise NotYetSubmitted(contract.id)
    if contract.internal_status.is_terminal:
        raise ContractFinalized(contract.id, contract.internal_status.value)

    signer_ids: list[str] = []
    try:
        for descriptor in descriptors:
            signer_ids.append(await provider.create_signer(descriptor.full_name, str(descriptor.email)))
        assignment_id = await provider.create_signature_assignment(contract.provider_document_id, signer_ids)
    except SignatureError as exc:
        if signer_ids:
            logger.warning(
                "signature_request.orphaned_signers",
                contract_id=contract.id,
                provider_signer_ids=signer_ids,
            )
        logger.error(
            "signature_request.failed",
            contract_id=contract.id,
            error_code=exc.error_code,
            error=exc.error_message,
        )
        raise

    contract.provider_signature_request_id = assignment_id
    contract.provider_status = PENDING_SIGNATURE_PROVIDER_STATUS
    contract.internal_status = ContractStatus.PENDING_SIGNATURES
    await session.flush()

    logger.info(
        "signature_request.created",
        contract_id=contract.id,
        provider_signature_request_id=assignment_id,
        signer_count=len(signer_ids),
    )
    return contract
