from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import User
from app.services import ticket_store
from app.services.whatsapp_service import (
    ACCEPT_TERMS_ID,
    MSG_TERMS_ACCEPTED,
    MSG_TERMS_REJECTED,
    REJECT_TERMS_ID,
    WhatsAppService,
)

logger = get_logger("terms_service")

TERMS_BUTTON_IDS = {ACCEPT_TERMS_ID, REJECT_TERMS_ID}


def current_terms_version() -> str:
    return settings.terms_version


def is_cleared(user: Optional[User]) -> bool:
    """True iff the user accepted the terms currently in force."""
    if user is None:
        return False
    return bool(user.terms_accepted) and user.terms_version == current_terms_version()


def is_terms_button(button_id: Optional[str]) -> bool:
    return button_id in TERMS_BUTTON_IDS


def handle_terms_reply(db: Session, sender: str, button_id: str, messenger: WhatsAppService) -> None:
    """Accept records acceptance and confirms; reject only acknowledges."""
    if button_id == ACCEPT_TERMS_ID:
        ticket_store.accept_terms(db, sender, current_terms_version())
        result = messenger.send_text(sender, MSG_TERMS_ACCEPTED)
    elif button_id == REJECT_TERMS_ID:
        logger.info("Terms rejected", extra={"context": {"phone": sender}})
        result = messenger.send_text(sender, MSG_TERMS_REJECTED)
    else:
        raise ValueError(f"Not a terms button: {button_id}")

    if not result.ok:
        logger.warning(f"Terms reply not delivered: {result.error}", extra={"context": {"phone": sender}})
