from app.schemas.notification import WorkerNotificationRequest, WorkerNotificationResponse
from app.schemas.ticket import (
    TicketCreatedResponse,
    TicketCreateRequest,
    TicketEnvelope,
    TicketListEnvelope,
    TicketOut,
    TicketStatusUpdateRequest,
)
from app.schemas.webhook import InboundMessage, WhatsAppWebhookPayload

__all__ = [
    "InboundMessage",
    "TicketCreatedResponse",
    "TicketCreateRequest",
    "TicketEnvelope",
    "TicketListEnvelope",
    "TicketOut",
    "TicketStatusUpdateRequest",
    "WhatsAppWebhookPayload",
    "WorkerNotificationRequest",
    "WorkerNotificationResponse",
]
