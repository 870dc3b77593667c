from collections.abc import AsyncIterator

from fastapi import HTTPException, status

from eventdesk.core.config import get_settings
from eventdesk.core.logging import get_logger
from eventdesk.integrations.esignature import ESignatureFactory, ESignatureProvider, ESignatureType
from eventdesk.services.file_storage import LocalFileStorage

logger = get_logger(__name__)


async def get_signature_provider() -> AsyncIterator[ESignatureProvider]:
    settings = get_settings()
    if not settings.signature_provider_configured:
        logger.error("esignature.provider_not_configured", provider=ESignatureType.ASSINAFY.value)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "code": "provider_not_configured",
                "message": "Signature provider credentials are not configured",
            },
        )
    provider = ESignatureFactory.create_provider(
        ESignatureType.ASSINAFY,
        base_url=settings.assinafy_api_base_url,
        api_key=settings.assinafy_api_key,
        account_id=settings.assinafy_account_id,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    async with provider:
        yield provider


def get_file_storage() -> LocalFileStorage:
    return LocalFileStorage(get_settings().upload_dir)
