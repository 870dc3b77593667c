from pydantic import BaseModel

from eventdesk.models.webhook import WebhookOutcome


class WebhookAck(BaseModel):
    status: str = "ok"
    outcome: WebhookOutcome | None = None
