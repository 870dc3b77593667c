"""
Signature status mapping.

Translates a normalized provider event into the new state of a contract.
Everything here is pure: callers pass the current state in and decide what
to do with the returned transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from eventdesk.models.contract import Contract, ContractStatus
from eventdesk.models.webhook import WebhookOutcome


@dataclass(slots=True, frozen=True)
class ProviderEvent:
    event_type: str
    provider_document_id: str
    provider_status: str | None = None
    certified_artifact_url: str | None = None
    occurred_at: datetime | None = None

    @property
    def normalized_type(self) -> str:
        return self.event_type.strip().lower()


@dataclass(slots=True, frozen=True)
class ContractSnapshot:
    internal_status: ContractStatus
    provider_status: str | None = None
    provider_certified_url: str | None = None
    signed_at: datetime | None = None
    provider_event_at: datetime | None = None

    @classmethod
    def from_contract(cls, contract: Contract) -> ContractSnapshot:
        return cls(
            internal_status=contract.internal_status,
            provider_status=contract.provider_status,
            provider_certified_url=contract.provider_certified_url,
            signed_at=contract.signed_at,
            provider_event_at=contract.provider_event_at,
        )


SNAPSHOT_FIELDS = (
    "internal_status",
    "provider_status",
    "provider_certified_url",
    "signed_at",
    "provider_event_at",
)


@dataclass(slots=True, frozen=True)
class StatusRule:
    family: str
    internal_status: ContractStatus
    provider_status: str
    captures_artifact: bool = False
    marks_signed: bool = False
    # When set the provider's reported status is ignored in favour of ``provider_status``.
    fixed_provider_status: bool = False


SIGNER_SIGNED = StatusRule("signer_signed", ContractStatus.PENDING_SIGNATURES, "pending_signature")
COMPLETED = StatusRule(
    "completed",
    ContractStatus.SIGNED,
    "certificated",
    captures_artifact=True,
    marks_signed=True,
)
REJECTED = StatusRule("rejected", ContractStatus.REJECTED, "rejected_by_signer")
EXPIRED = StatusRule("expired", ContractStatus.EXPIRED, "expired", fixed_provider_status=True)
CANCELLED = StatusRule("cancelled", ContractStatus.CANCELLED, "cancelled")
FAILED = StatusRule("failed", ContractStatus.ERROR_SIGNATURE_PROVIDER, "failed")

STATUS_RULES: dict[str, StatusRule] = {
    "signer_signed_document": SIGNER_SIGNED,
    "document_signed": SIGNER_SIGNED,
    "document_ready": COMPLETED,
    "process_completed": COMPLETED,
    "document_certificated": COMPLETED,
    "document_rejected": REJECTED,
    "signer_rejected_document": REJECTED,
    "document_expired": EXPIRED,
    "document_cancelled": CANCELLED,
    "rejected_by_user": CANCELLED,
    "document_processing_failed": FAILED,
    "failed": FAILED,
}


@dataclass(slots=True, frozen=True)
class StatusTransition:
    before: ContractSnapshot
    after: ContractSnapshot
    outcome: WebhookOutcome
    rule: StatusRule | None = None

    @property
    def changes(self) -> dict[str, Any]:
        return {
            name: getattr(self.after, name)
            for name in SNAPSHOT_FIELDS
            if getattr(self.after, name) != getattr(self.before, name)
        }

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def rule_for(event_type: str) -> StatusRule | None:
    return STATUS_RULES.get(event_type.strip().lower())


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _latest(current: datetime | None, incoming: datetime | None) -> datetime | None:
    if incoming is None:
        return current
    if current is None or as_utc(incoming) > as_utc(current):
        return incoming
    return current


def _is_stale(current: ContractSnapshot, event: ProviderEvent) -> bool:
    if event.occurred_at is None or current.provider_event_at is None:
        return False
    return as_utc(event.occurred_at) < as_utc(current.provider_event_at)


def _skip(current: ContractSnapshot, outcome: WebhookOutcome, rule: StatusRule | None) -> StatusTransition:
    return StatusTransition(before=current, after=current, outcome=outcome, rule=rule)


def _finish(current: ContractSnapshot, after: ContractSnapshot, rule: StatusRule | None) -> StatusTransition:
    if rule is None:
        outcome = WebhookOutcome.UNRECOGNIZED_EVENT
    elif after != current:
        outcome = WebhookOutcome.APPLIED
    else:
        outcome = WebhookOutcome.NO_CHANGE
    return StatusTransition(before=current, after=after, outcome=outcome, rule=rule)


def map_event(
    current: ContractSnapshot,
    event: ProviderEvent,
    *,
    now: datetime | None = None,
) -> StatusTransition:
    """
    Compute the contract state after ``event``.

    Ordering rules come first: an event older than the last applied one is
    stale, and a contract in a terminal status only accepts events that
    re-assert that same status (which may fill still-empty fields but never
    rewrites ``signed_at``). Unrecognized events only refresh the mirrored
    provider status.
    """
    now = now or datetime.now(timezone.utc)
    rule = rule_for(event.event_type)

    if _is_stale(current, event):
        return _skip(current, WebhookOutcome.STALE, rule)

    event_at = _latest(current.provider_event_at, event.occurred_at)

    if current.internal_status.is_terminal:
        if rule is None or rule.internal_status != current.internal_status:
            return _skip(current, WebhookOutcome.TERMINAL_LOCKED, rule)
        after = ContractSnapshot(
            internal_status=current.internal_status,
            provider_status=current.provider_status or _provider_status(rule, event),
            provider_certified_url=current.provider_certified_url
            or (event.certified_artifact_url if rule.captures_artifact else None),
            signed_at=current.signed_at or (now if rule.marks_signed else None),
            provider_event_at=event_at,
        )
        return _finish(current, after, rule)

    if rule is None:
        after = ContractSnapshot(
            internal_status=current.internal_status,
            provider_status=event.provider_status or current.provider_status,
            provider_certified_url=current.provider_certified_url,
            signed_at=current.signed_at,
            provider_event_at=event_at,
        )
        return _finish(current, after, None)

    certified_url = current.provider_certified_url
    if rule.captures_artifact and event.certified_artifact_url:
        certified_url = event.certified_artifact_url

    signed_at = current.signed_at
    if rule.marks_signed and signed_at is None:
        signed_at = now

    after = ContractSnapshot(
        internal_status=rule.internal_status,
        provider_status=_provider_status(rule, event),
        provider_certified_url=certified_url,
        signed_at=signed_at,
        provider_event_at=event_at,
    )
    return _finish(current, after, rule)


def _provider_status(rule: StatusRule, event: ProviderEvent) -> str:
    if rule.fixed_provider_status:
        return rule.provider_status
    return event.provider_status or rule.provider_status
