from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventdesk.core.logging import get_logger
from eventdesk.models.contract import Contract
from eventdesk.models.webhook import WebhookDelivery, WebhookOutcome
from eventdesk.services.exceptions import MalformedPayload
from eventdesk.services.signature_status import ContractSnapshot, ProviderEvent, map_event

logger = get_logger(__name__)

PROVIDER_NAME = "assinafy"
LOCK_PREFIX = "eventdesk:webhook:delivery:"

EVENT_TYPE_KEYS = ("event", "event_type", "type")
DOCUMENT_ID_KEYS = ("id", "document_id")
STATUS_KEYS = ("status", "current_status")
ARTIFACT_CONTAINERS = ("artifacts", "download_urls")
TIMESTAMP_KEYS = ("occurred_at", "timestamp", "created_at")


@dataclass(slots=True, frozen=True)
class WebhookResult:
    outcome: WebhookOutcome
    contract_id: int | None = None
    changes: tuple[str, ...] = ()


def verify_signature(
    secret: str,
    body: bytes,
    signature: str | None,
    timestamp: str | None = None,
) -> bool:
    """
    Check an ``X-Assinafy-Signature`` header.

    The expected value is the hex HMAC-SHA256 of ``"{timestamp}.{body}"`` when
    a timestamp header is sent, of the raw body otherwise. A ``sha256=``
    prefix on the header is accepted.
    """
    if not signature:
        return False
    signed_payload = f"{timestamp}.".encode("utf-8") + body if timestamp else body
    expected = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    provided = signature.strip().lower()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]
    return hmac.compare_digest(expected, provided)


def parse_body(body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayload(f"Webhook body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedPayload("Webhook body must be a JSON object")
    return payload


def _first_text(source: Mapping[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = source.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _event_type(payload: Mapping[str, Any]) -> str | None:
    for key in EVENT_TYPE_KEYS:
        value = payload.get(key)
        if isinstance(value, Mapping):
            value = value.get("name") or value.get("type")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _document_container(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    data = payload.get("data")
    if isinstance(data, Mapping):
        if isinstance(data.get("document"), Mapping):
            return data["document"]
        if _first_text(data, DOCUMENT_ID_KEYS):
            return data
    if isinstance(payload.get("document"), Mapping):
        return payload["document"]
    return payload


def _certified_url(document: Mapping[str, Any]) -> str | None:
    for container in ARTIFACT_CONTAINERS:
        artifacts = document.get(container)
        if isinstance(artifacts, Mapping):
            url = artifacts.get("certificated")
            if isinstance(url, str) and url.strip():
                return url.strip()
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_payload(payload: Mapping[str, Any]) -> ProviderEvent:
    """
    Reduce a provider webhook body to a ProviderEvent.

    The provider has used several shapes for the same information, so each
    logical value is looked up under a short list of aliases. Raises
    MalformedPayload when the event type or the document id is missing.
    """
    event_type = _event_type(payload)
    if event_type is None:
        raise MalformedPayload("Webhook payload has no event type")

    document = _document_container(payload)
    document_id = _first_text(document, DOCUMENT_ID_KEYS)
    if document_id is None:
        raise MalformedPayload("Webhook payload has no provider document id")

    occurred_at = None
    for key in TIMESTAMP_KEYS:
        occurred_at = _parse_timestamp(payload.get(key))
        if occurred_at is not None:
            break

    return ProviderEvent(
        event_type=event_type,
        provider_document_id=document_id,
        provider_status=_first_text(document, STATUS_KEYS),
        certified_artifact_url=_certified_url(document),
        occurred_at=occurred_at,
    )


def delivery_lock_key(body: bytes) -> str:
    return f"{LOCK_PREFIX}{hashlib.sha256(body).hexdigest()}"


async def acquire_delivery_lock(redis_client: Optional[Redis], key: str, ttl_seconds: int) -> bool:
    if redis_client is None:
        return True
    async with redis_client.pipeline(transaction=True) as pipe:
        pipe.setnx(key, 1)
        pipe.expire(key, ttl_seconds)
        created, _ = await pipe.execute()
        return bool(created)


async def release_delivery_lock(redis_client: Optional[Redis], key: str) -> None:
    if redis_client is not None:
        await redis_client.delete(key)


async def find_contract_for_update(session: AsyncSession, provider_document_id: str) -> Contract | None:
    result = await session.execute(
        select(Contract).where(Contract.provider_document_id == provider_document_id).with_for_update()
    )
    return result.scalars().first()


async def process_event(
    session: AsyncSession,
    event: ProviderEvent,
    *,
    payload: Mapping[str, Any],
) -> WebhookResult:
    """
    Apply a normalized provider event to its contract.

    The contract row is locked for the read-modify-write so two deliveries
    for the same document serialize. A delivery log row is always appended;
    the contract is written only when the mapped state differs. The caller
    owns the transaction.
    """
    contract = await find_contract_for_update(session, event.provider_document_id)
    if contract is None:
        logger.warning(
            "webhook.contract_not_found",
            provider_document_id=event.provider_document_id,
            event_type=event.event_type,
        )
        _log_delivery(session, event, payload, WebhookOutcome.UNKNOWN_DOCUMENT, contract_id=None)
        return WebhookResult(outcome=WebhookOutcome.UNKNOWN_DOCUMENT)

    transition = map_event(ContractSnapshot.from_contract(contract), event)
    changes = transition.changes

    if transition.outcome is WebhookOutcome.UNRECOGNIZED_EVENT:
        logger.info(
            "webhook.event_unrecognized",
            contract_id=contract.id,
            event_type=event.event_type,
            provider_status=event.provider_status,
        )
    elif transition.outcome in (WebhookOutcome.STALE, WebhookOutcome.TERMINAL_LOCKED):
        logger.info(
            "webhook.event_skipped",
            contract_id=contract.id,
            event_type=event.event_type,
            reason=transition.outcome.value,
            internal_status=contract.internal_status.value,
        )

    for field_name, value in changes.items():
        setattr(contract, field_name, value)

    if changes:
        logger.info(
            "webhook.applied",
            contract_id=contract.id,
            event_type=event.event_type,
            changed_fields=sorted(changes),
            internal_status=contract.internal_status.value,
            provider_status=contract.provider_status,
        )

    _log_delivery(session, event, payload, transition.outcome, contract_id=contract.id)
    await session.flush()
    return WebhookResult(
        outcome=transition.outcome,
        contract_id=contract.id,
        changes=tuple(sorted(changes)),
    )


def _log_delivery(
    session: AsyncSession,
    event: ProviderEvent,
    payload: Mapping[str, Any],
    outcome: WebhookOutcome,
    *,
    contract_id: int | None,
) -> None:
    session.add(
        WebhookDelivery(
            provider=PROVIDER_NAME,
            event_type=event.event_type,
            provider_document_id=event.provider_document_id,
            provider_status=event.provider_status,
            payload=dict(payload),
            outcome=outcome,
            contract_id=contract_id,
        )
    )
