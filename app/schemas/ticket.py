from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TicketCreateRequest(BaseModel):
    """Web form submission. Required fields are checked by the route to answer 400, not 422."""

    phone_number: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    zone: Optional[str] = None
    urgency: Optional[str] = None

    def missing_fields(self) -> list[str]:
        required = ("phone_number", "category", "description")
        return [name for name in required if not (getattr(self, name) or "").strip()]


class TicketStatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class TicketOut(BaseModel):
    id: int
    phone_number: str
    category: Optional[str] = None
    description: Optional[str] = None
    zone: Optional[str] = None
    urgency: Optional[str] = None
    status: str
    source: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TicketEnvelope(BaseModel):
    success: bool
    data: TicketOut


class TicketListEnvelope(BaseModel):
    success: bool
    data: list[TicketOut]


class TicketCreatedResponse(BaseModel):
    success: bool
    message: str
    ticketId: int
