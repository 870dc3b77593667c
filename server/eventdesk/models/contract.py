from __future__ import annotations

from enum import Enum

from sqlalchemy import Enum as SAEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventdesk.db.base import Base, OptionalTimestamp, TimestampMixin


class ContractStatus(str, Enum):
    UPLOADED = "uploaded"
    PENDING_SIGNATURE_SETUP = "pending_signature_setup"
    PENDING_SIGNATURES = "pending_signatures"
    SIGNED = "signed"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    ERROR_SIGNATURE_PROVIDER = "error_signature_provider"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        ContractStatus.SIGNED,
        ContractStatus.REJECTED,
        ContractStatus.EXPIRED,
        ContractStatus.CANCELLED,
    }
)


class Contract(TimestampMixin, Base):
    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_reference: Mapped[str] = mapped_column(String(1024), nullable=False)
    uploader_identity: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    internal_status: Mapped[ContractStatus] = mapped_column(
        SAEnum(ContractStatus), default=ContractStatus.UPLOADED, nullable=False
    )

    # Signature provider mirror
    provider_document_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    provider_status: Mapped[str | None] = mapped_column(String(100), nullable=True)
    provider_original_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_certified_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_signature_request_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_event_at: Mapped[OptionalTimestamp]
    signed_at: Mapped[OptionalTimestamp]

    webhook_deliveries: Mapped[list["WebhookDelivery"]] = relationship(back_populates="contract")

    @property
    def submitted(self) -> bool:
        return self.provider_document_id is not None
