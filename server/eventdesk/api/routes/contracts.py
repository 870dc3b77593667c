from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventdesk.api.dependencies.auth import get_caller_identity
from eventdesk.api.dependencies.database import get_db
from eventdesk.api.dependencies.esignature import get_file_storage, get_signature_provider
from eventdesk.api.routes.errors import contract_http_error, provider_http_error
from eventdesk.integrations.esignature import ESignatureProvider, SignatureError
from eventdesk.schemas.contract import (
    ContractRead,
    SignatureRequestCreate,
    SignatureRequestResult,
    SubmissionResult,
)
from eventdesk.services.contract_service import get_owned_contract, request_signatures, submit_to_provider
from eventdesk.services.exceptions import ContractError
from eventdesk.services.file_storage import LocalFileStorage


router = APIRouter(prefix="/contracts", tags=["contracts"])


@router.get("/{contract_id}", response_model=ContractRead)
async def get_contract_endpoint(
    contract_id: int,
    session: AsyncSession = Depends(get_db),
    caller_identity: str = Depends(get_caller_identity),
) -> ContractRead:
    try:
        contract = await get_owned_contract(session, contract_id, caller_identity)
    except ContractError as exc:
        raise contract_http_error(exc) from exc
    return ContractRead.model_validate(contract)


@router.post("/{contract_id}/submit", response_model=SubmissionResult)
async def submit_contract_endpoint(
    contract_id: int,
    session: AsyncSession = Depends(get_db),
    caller_identity: str = Depends(get_caller_identity),
    provider: ESignatureProvider = Depends(get_signature_provider),
    storage: LocalFileStorage = Depends(get_file_storage),
) -> SubmissionResult:
    try:
        contract = await submit_to_provider(
            session,
            contract_id=contract_id,
            caller_identity=caller_identity,
            provider=provider,
            storage=storage,
        )
    except ContractError as exc:
        await session.rollback()
        raise contract_http_error(exc) from exc
    except SignatureError as exc:
        await session.rollback()
        raise provider_http_error(exc) from exc
    await session.commit()
    return SubmissionResult(
        contract_id=contract.id,
        provider_document_id=contract.provider_document_id,
        provider_status=contract.provider_status,
        internal_status=contract.internal_status,
    )


@router.post("/{contract_id}/signature-requests", response_model=SignatureRequestResult)
async def create_signature_request_endpoint(
    contract_id: int,
    payload: SignatureRequestCreate,
    session: AsyncSession = Depends(get_db),
    caller_identity: str = Depends(get_caller_identity),
    provider: ESignatureProvider = Depends(get_signature_provider),
) -> SignatureRequestResult:
    try:
        contract = await request_signatures(
            session,
            contract_id=contract_id,
            caller_identity=caller_identity,
            signers=payload.signers,
            provider=provider,
        )
    except ContractError as exc:
        await session.rollback()
        raise contract_http_error(exc) from exc
    except SignatureError as exc:
        await session.rollback()
        raise provider_http_error(exc) from exc
    await session.commit()
    return SignatureRequestResult(
        contract_id=contract.id,
        provider_signature_request_id=contract.provider_signature_request_id,
        provider_status=contract.provider_status,
        internal_status=contract.internal_status,
    )
