"""Ticket and user persistence.

Every function is a single-row operation against the given session and commits
its own work. Database errors are logged and re-raised; callers decide whether
that becomes a 500 or a logged abandonment.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import Ticket, TicketSource, TicketStatus, User

logger = get_logger("ticket_store")

DEFAULT_TICKET_LIMIT = 100


def save_ticket(db: Session, phone: str, ticket_data: dict, source: TicketSource | str) -> int:
    """Insert a ticket and return its id."""
    source_value = TicketSource(source).value
    ticket = Ticket(
        phone_number=phone,
        category=ticket_data.get("category"),
        description=ticket_data.get("description"),
        zone=ticket_data.get("zone"),
        urgency=ticket_data.get("urgency"),
        status=TicketStatus.ABIERTO.value,
        source=source_value,
        created_at=datetime.now(timezone.utc),
    )
    try:
        db.add(ticket)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to insert ticket: {e}", extra={"context": {"source": source_value}})
        raise

    logger.info("Ticket saved", extra={"context": {"ticket_id": ticket.id, "source": source_value}})
    return ticket.id


def get_tickets(db: Session, limit: int = DEFAULT_TICKET_LIMIT) -> list[Ticket]:
    """Latest tickets first."""
    return db.query(Ticket).order_by(Ticket.created_at.desc(), Ticket.id.desc()).limit(limit).all()


def get_ticket_by_id(db: Session, ticket_id: int) -> Optional[Ticket]:
    return db.query(Ticket).filter(Ticket.id == ticket_id).first()


def update_ticket_status(db: Session, ticket_id: int, status: TicketStatus | str) -> Optional[Ticket]:
    """Set the ticket status. Returns the updated ticket, or None if it does not exist."""
    ticket = get_ticket_by_id(db, ticket_id)
    if ticket is None:
        return None

    ticket.status = TicketStatus(status).value
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


def get_user(db: Session, phone: str) -> Optional[User]:
    return db.query(User).filter(User.phone_number == phone).first()


def create_user(db: Session, phone: str) -> User:
    user = User(phone_number=phone, terms_accepted=False, created_at=datetime.now(timezone.utc))
    try:
        db.add(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("User created", extra={"context": {"phone": phone}})
    return user


def get_or_create_user(db: Session, phone: str) -> User:
    """Find user by phone number or create a new one."""
    user = get_user(db, phone)
    if user is None:
        user = create_user(db, phone)
    return user


def accept_terms(db: Session, phone: str, terms_version: Optional[str] = None) -> User:
    """Record terms acceptance for the current terms version."""
    user = get_or_create_user(db, phone)
    user.terms_accepted = True
    user.accepted_at = datetime.now(timezone.utc)
    user.terms_version = terms_version or settings.terms_version
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Terms accepted", extra={"context": {"phone": phone, "terms_version": user.terms_version}})
    return user
