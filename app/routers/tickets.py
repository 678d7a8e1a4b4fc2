from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database import get_db
from app.logging_config import get_logger
from app.models import TicketSource, TicketStatus
from app.schemas.ticket import (
    TicketCreatedResponse,
    TicketCreateRequest,
    TicketEnvelope,
    TicketListEnvelope,
    TicketOut,
    TicketStatusUpdateRequest,
)
from app.services import ticket_store

logger = get_logger("tickets_api")

router = APIRouter(tags=["tickets"])

VALID_STATUSES = [item.value for item in TicketStatus]


@router.get("/tickets/{ticket_id}", response_model=TicketEnvelope)
def get_ticket(ticket_id: int, db: Session = Depends(get_db)):
    """Single ticket, used by the match page linked from WhatsApp."""
    try:
        ticket = ticket_store.get_ticket_by_id(db, ticket_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to load ticket: {e}", extra={"context": {"ticket_id": ticket_id}})
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al obtener el ticket")

    if ticket is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket no encontrado.")
    return TicketEnvelope(success=True, data=TicketOut.model_validate(ticket))


@router.get("/tickets", response_model=TicketListEnvelope)
def list_tickets(db: Session = Depends(get_db)):
    """Latest tickets for the admin dashboard."""
    try:
        tickets = ticket_store.get_tickets(db)
    except SQLAlchemyError as e:
        logger.error(f"Failed to list tickets: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al obtener los tickets")
    return TicketListEnvelope(success=True, data=[TicketOut.model_validate(ticket) for ticket in tickets])


@router.patch("/tickets/{ticket_id}/status", response_model=TicketEnvelope)
def update_status(ticket_id: int, request: TicketStatusUpdateRequest, db: Session = Depends(get_db)):
    if not request.status:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El campo status es requerido.")
    if request.status not in VALID_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Estado inválido: {request.status}. Valores permitidos: {', '.join(VALID_STATUSES)}",
        )

    try:
        ticket = ticket_store.update_ticket_status(db, ticket_id, request.status)
    except SQLAlchemyError as e:
        logger.error(f"Failed to update ticket status: {e}", extra={"context": {"ticket_id": ticket_id}})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al actualizar el ticket"
        )

    if ticket is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket no encontrado.")
    return TicketEnvelope(success=True, data=TicketOut.model_validate(ticket))


@router.post("/tickets", response_model=TicketCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(request: TicketCreateRequest, db: Session = Depends(get_db)):
    """Ticket submitted from the web platform."""
    missing = request.missing_fields()
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Faltan campos obligatorios: {', '.join(missing)}.",
        )

    ticket_data = {
        "category": request.category,
        "description": request.description,
        "zone": request.zone,
        "urgency": request.urgency,
    }
    try:
        ticket_id = ticket_store.save_ticket(db, request.phone_number, ticket_data, TicketSource.WEB)
    except SQLAlchemyError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al procesar el ticket"
        )

    return TicketCreatedResponse(success=True, message="Ticket creado con éxito desde la web", ticketId=ticket_id)
