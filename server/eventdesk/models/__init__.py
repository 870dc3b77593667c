from eventdesk.models.contract import TERMINAL_STATUSES, Contract, ContractStatus
from eventdesk.models.webhook import WebhookDelivery, WebhookOutcome

__all__ = [
    "TERMINAL_STATUSES",
    "Contract",
    "ContractStatus",
    "WebhookDelivery",
    "WebhookOutcome",
]
