from eventdesk.schemas.contract import (
    ContractRead,
    SignatureRequestCreate,
    SignatureRequestResult,
    SignerDescriptor,
    SignerInput,
    SubmissionResult,
)
from eventdesk.schemas.webhook import WebhookAck

__all__ = [
    "ContractRead",
    "SignatureRequestCreate",
    "SignatureRequestResult",
    "SignerDescriptor",
    "SignerInput",
    "SubmissionResult",
    "WebhookAck",
]
