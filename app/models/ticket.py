from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from app.database import Base


class TicketStatus(str, Enum):
    ABIERTO = "ABIERTO"
    ASIGNADO = "ASIGNADO"
    COMPLETADO = "COMPLETADO"
    CANCELADO = "CANCELADO"


class TicketSource(str, Enum):
    WHATSAPP = "whatsapp"
    WEB = "web"


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String(20), nullable=False)
    category = Column(String(100))
    description = Column(Text)
    zone = Column(String(100))
    urgency = Column(String(50))
    status = Column(String(20), nullable=False, default=TicketStatus.ABIERTO.value)
    source = Column(String(20))  # whatsapp, web
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
