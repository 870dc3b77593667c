from __future__ import annotations

import uuid
from enum import Enum
from typing import Annotated, Optional

from sqlalchemy import Enum as SAEnum, ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventdesk.db.base import Base, TimestampMixin

Identifier = Annotated[str, mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))]


class WebhookOutcome(str, Enum):
    APPLIED = "applied"
    NO_CHANGE = "no_change"
    UNKNOWN_DOCUMENT = "unknown_document"
    STALE = "stale"
    TERMINAL_LOCKED = "terminal_locked"
    UNRECOGNIZED_EVENT = "unrecognized_event"


class WebhookDelivery(TimestampMixin, Base):
    __tablename__ = "webhook_deliveries"

    id: Mapped[Identifier]
    provider: Mapped[str] = mapped_column(String(40), nullable=False, default="assinafy")
    event_type: Mapped[str] = mapped_column(String(120), nullable=False)
    provider_document_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    provider_status: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    outcome: Mapped[WebhookOutcome] = mapped_column(SAEnum(WebhookOutcome), nullable=False)
    contract_id: Mapped[int | None] = mapped_column(
        ForeignKey("contracts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    contract: Mapped[Optional["Contract"]] = relationship(back_populates="webhook_deliveries")
