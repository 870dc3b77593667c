from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from eventdesk.models.contract import ContractStatus


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ContractRead(ORMModel):
    id: int
    title: str
    file_name: str
    uploader_identity: str
    internal_status: ContractStatus
    provider_document_id: str | None
    provider_status: str | None
    provider_original_url: str | None
    provider_certified_url: str | None
    provider_signature_request_id: str | None
    signed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SignerInput(BaseModel):
    """Signer as sent by callers; checked by the service, not here."""

    model_config = ConfigDict(populate_by_name=True)

    full_name: str | None = Field(default=None, validation_alias=AliasChoices("fullName", "full_name"))
    email: str | None = None


class SignerDescriptor(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_name(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class SignatureRequestCreate(BaseModel):
    signers: list[SignerInput] = Field(default_factory=list)


class SubmissionResult(ORMModel):
    contract_id: int
    provider_document_id: str
    provider_status: str | None
    internal_status: ContractStatus


class SignatureRequestResult(ORMModel):
    contract_id: int
    provider_signature_request_id: str
    provider_status: str | None
    internal_status: ContractStatus
