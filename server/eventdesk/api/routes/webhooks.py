from fastapi import APIRouter, Depends, HTTPException, Request, status
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from eventdesk.api.dependencies.database import get_db
from eventdesk.api.dependencies.redis import get_redis_client
from eventdesk.api.routes.errors import contract_http_error
from eventdesk.core.config import get_settings
from eventdesk.core.logging import bind_log_context, clear_log_context, get_logger
from eventdesk.schemas.webhook import WebhookAck
from eventdesk.services.exceptions import MalformedPayload
from eventdesk.services.webhook_service import (
    acquire_delivery_lock,
    delivery_lock_key,
    normalize_payload,
    parse_body,
    process_event,
    release_delivery_lock,
    verify_signature,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "X-Assinafy-Signature"
TIMESTAMP_HEADER = "X-Assinafy-Timestamp"


@router.post("/assinafy", response_model=WebhookAck, response_model_exclude_none=True)
async def assinafy_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db),
    redis_client: Redis | None = Depends(get_redis_client),
) -> WebhookAck:
    """Receive Assinafy document events and fold them into the matching contract."""
    settings = get_settings()
    body = await request.body()

    secret = settings.assinafy_webhook_secret
    if secret:
        signature = request.headers.get(SIGNATURE_HEADER)
        timestamp = request.headers.get(TIMESTAMP_HEADER)
        if not verify_signature(secret, body, signature, timestamp):
            logger.warning("webhook.signature_invalid", signature_present=signature is not None)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"code": "invalid_signature", "message": "Webhook signature verification failed"},
            )

    try:
        payload = parse_body(body)
        event = normalize_payload(payload)
    except MalformedPayload as exc:
        logger.warning("webhook.malformed_payload", error=exc.message)
        raise contract_http_error(exc) from exc

    clear_log_context()
    bind_log_context(
        provider="assinafy",
        provider_document_id=event.provider_document_id,
        event_type=event.event_type,
    )

    lock_key = delivery_lock_key(body)
    try:
        acquired = await acquire_delivery_lock(redis_client, lock_key, settings.webhook_dedupe_ttl_seconds)
    except RedisError as exc:
        logger.warning("webhook.dedupe_unavailable", error=str(exc))
        redis_client = None
        acquired = True
    if not acquired:
        logger.info("webhook.duplicate_delivery")
        return WebhookAck(status="duplicate")

    try:
        result = await process_event(session, event, payload=payload)
        await session.commit()
    except Exception:
        await session.rollback()
        try:
            await release_delivery_lock(redis_client, lock_key)
        except RedisError as redis_exc:
            logger.warning("webhook.dedupe_release_failed", error=str(redis_exc))
        raise

    return WebhookAck(status="ok", outcome=result.outcome)
