from app.models.ticket import Ticket, TicketSource, TicketStatus
from app.models.user import User

__all__ = [
    "Ticket",
    "TicketSource",
    "TicketStatus",
    "User",
]
