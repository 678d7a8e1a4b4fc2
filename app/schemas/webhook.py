"""WhatsApp Cloud API webhook payload (subset used by the intake flow)."""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class WhatsAppText(BaseModel):
    body: str = ""


class WhatsAppButtonReply(BaseModel):
    id: str
    title: Optional[str] = None


class WhatsAppInteractive(BaseModel):
    type: str  # button_reply, list_reply
    button_reply: Optional[WhatsAppButtonReply] = None


class WhatsAppMessage(BaseModel):
    from_number: str  # "from" is reserved in Python
    id: Optional[str] = None
    timestamp: Optional[str] = None
    type: str = "text"
    text: Optional[WhatsAppText] = None
    interactive: Optional[WhatsAppInteractive] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def __init__(self, **data):
        if "from" in data:
            data["from_number"] = data.pop("from")
        super().__init__(**data)


class WhatsAppValue(BaseModel):
    messaging_product: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    messages: list[WhatsAppMessage] = []
    statuses: Optional[list[Any]] = None

    model_config = ConfigDict(extra="ignore")


class WhatsAppChange(BaseModel):
    field: Optional[str] = None
    value: WhatsAppValue = WhatsAppValue()


class WhatsAppEntry(BaseModel):
    id: Optional[str] = None
    changes: list[WhatsAppChange] = []


class WhatsAppWebhookPayload(BaseModel):
    object: Optional[str] = None
    entry: list[WhatsAppEntry] = []

    def iter_messages(self):
        for entry in self.entry:
            for change in entry.changes:
                yield from change.value.messages


@dataclass(frozen=True)
class InboundMessage:
    """One sender message, reduced to what the orchestrator acts on."""

    sender: str
    message_id: Optional[str] = None
    text: Optional[str] = None
    button_id: Optional[str] = None

    @property
    def is_button_reply(self) -> bool:
        return self.button_id is not None

    @classmethod
    def from_whatsapp(cls, message: WhatsAppMessage) -> "InboundMessage":
        text = None
        button_id = None
        if message.type == "text" and message.text:
            text = message.text.body.strip() or None
        elif message.type == "interactive" and message.interactive and message.interactive.button_reply:
            button_id = message.interactive.button_reply.id
        return cls(sender=message.from_number, message_id=message.id, text=text, button_id=button_id)
