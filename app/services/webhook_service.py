"""Inbound WhatsApp message flow.

Runs after the webhook delivery has been acknowledged: best-effort and
at-most-once. Nothing here reports back to the messaging provider; failures
are only visible in the logs.

Per message:
    allow-list -> terms buttons -> terms gate -> session/extraction -> ticket -> matchmaking -> one reply
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from app.config import settings
from app.database import SessionLocal
from app.logging_config import MessageLogger, get_logger
from app.models import TicketSource
from app.schemas.webhook import InboundMessage, WhatsAppWebhookPayload
from app.services import ticket_store
from app.services.intent_extractor import ExtractionError, ExtractionResult, extract_ticket_intent
from app.services.matchmaking_service import MatchCandidate, find_matching_providers
from app.services.phone import same_number, to_outbound
from app.services.session_store import ConversationSession, InMemorySessionStore, SessionStore, Turn
from app.services.state_machine import ConversationState, complete, keep_collecting, start_collecting
from app.services.terms_service import handle_terms_reply, is_cleared, is_terms_button
from app.services.whatsapp_service import WhatsAppService

logger = get_logger("webhook_service")

Extractor = Callable[[Sequence[Turn]], ExtractionResult]
Matchmaker = Callable[[dict], list[MatchCandidate]]


class TurnOutcome(str, Enum):
    IGNORED = "ignored"
    NOT_ALLOWED = "not_allowed"
    TERMS_REPLY = "terms_reply"
    TERMS_PROMPT = "terms_prompt"
    EXTRACTION_FAILED = "extraction_failed"
    COLLECTING = "collecting"
    TICKET_CREATED = "ticket_created"
    FAILED = "failed"


@dataclass
class TurnResult:
    outcome: TurnOutcome
    ticket_id: Optional[int] = None
    ticket_data: dict = field(default_factory=dict)
    matches: list[MatchCandidate] = field(default_factory=list)


class WebhookOrchestrator:
    def __init__(
        self,
        session_store: SessionStore,
        messenger: WhatsAppService,
        db_factory: Callable[[], Session] = SessionLocal,
        extractor: Extractor = extract_ticket_intent,
        matchmaker: Matchmaker = find_matching_providers,
        allowed_senders: Optional[list[str]] = None,
    ):
        self.session_store = session_store
        self.messenger = messenger
        self.db_factory = db_factory
        self.extractor = extractor
        self.matchmaker = matchmaker
        self.allowed_senders = allowed_senders

    def is_allowed(self, sender: str) -> bool:
        """Only listed senders get through; an empty allow-list admits nobody."""
        allowed = self.allowed_senders if self.allowed_senders is not None else settings.allowed_senders
        return any(same_number(sender, candidate) for candidate in allowed)

    def process_delivery(self, payload: dict) -> list[TurnResult]:
        """Handle every message in one webhook delivery. Never raises."""
        try:
            delivery = WhatsAppWebhookPayload(**payload)
        except Exception as e:
            logger.warning(f"Unparseable webhook payload: {e}")
            return []

        results = []
        for raw_message in delivery.iter_messages():
            message = InboundMessage.from_whatsapp(raw_message)
            try:
                results.append(self.handle_message(message))
            except Exception as e:
                logger.error(
                    f"Webhook message processing failed: {e}",
                    extra={"context": {"sender": message.sender, "message_id": message.message_id}},
                    exc_info=True,
                )
                results.append(TurnResult(TurnOutcome.FAILED))
        return results

    def handle_message(self, message: InboundMessage) -> TurnResult:
        log = MessageLogger(logger, message.sender, message.message_id)

        if not self.is_allowed(message.sender):
            log.info("Sender not in allow-list, dropping message")
            return TurnResult(TurnOutcome.NOT_ALLOWED)

        if not message.is_button_reply and not message.text:
            log.info("Message without text, ignoring")
            return TurnResult(TurnOutcome.IGNORED)

        reply_to = to_outbound(message.sender)
        db = self.db_factory()
        try:
            if message.is_button_reply:
                if not is_terms_button(message.button_id):
                    log.info("Unknown button reply, ignoring", context={"button_id": message.button_id})
                    return TurnResult(TurnOutcome.IGNORED)
                handle_terms_reply(db, message.sender, message.button_id, self.messenger)
                return TurnResult(TurnOutcome.TERMS_REPLY)

            user = ticket_store.get_or_create_user(db, message.sender)
            if not is_cleared(user):
                log.info("Terms not accepted, sending prompt")
                self._deliver(self.messenger.send_terms_prompt(reply_to), log, "terms prompt")
                return TurnResult(TurnOutcome.TERMS_PROMPT)

            with self.session_store.lock(message.sender):
                result = self._advance_session(db, message.sender, message.text, reply_to, log)
        finally:
            db.close()

        if result.outcome == TurnOutcome.TICKET_CREATED:
            self._notify_matches(result, reply_to, log)
        return result

    def _advance_session(
        self, db: Session, sender: str, text: str, reply_to: str, log: MessageLogger
    ) -> TurnResult:
        session = self.session_store.get(sender)
        if session is None:
            session = ConversationSession(sender_id=sender, state=start_collecting(ConversationState.EMPTY))
        session.add_user_turn(text)
        self.session_store.save(session)

        try:
            extraction = self.extractor(list(session.turns))
        except ExtractionError as e:
            # Session keeps the user turn; the next message retries with the full history
            log.warning(f"Extraction failed: {e.message}", context={"code": e.code, "turns": len(session.turns)})
            return TurnResult(TurnOutcome.EXTRACTION_FAILED)

        if not extraction.is_complete:
            session.state = keep_collecting(session.state)
            session.add_assistant_turn(extraction.reply_to_client)
            self.session_store.save(session)
            self._deliver(self.messenger.send_text(reply_to, extraction.reply_to_client), log, "extractor reply")
            return TurnResult(TurnOutcome.COLLECTING)

        next_state = complete(session.state)
        ticket_data = extraction.ticket_data()
        ticket_id = ticket_store.save_ticket(db, sender, ticket_data, TicketSource.WHATSAPP)
        session.state = next_state
        self.session_store.clear(sender)
        log.info("Ticket completed, session cleared", context={"ticket_id": ticket_id})

        return TurnResult(TurnOutcome.TICKET_CREATED, ticket_id=ticket_id, ticket_data=ticket_data)

    def _notify_matches(self, result: TurnResult, reply_to: str, log: MessageLogger) -> None:
        ticket_id = result.ticket_id
        result.matches = self.matchmaker(result.ticket_data)
        if result.matches:
            sent = self.messenger.send_match_results(reply_to, len(result.matches), ticket_id)
        else:
            sent = self.messenger.send_no_matches(reply_to)
        self._deliver(sent, log, "match outcome", ticket_id=ticket_id, matches=len(result.matches))

    @staticmethod
    def _deliver(result, log: MessageLogger, what: str, **context) -> None:
        if not result.ok:
            log.warning(f"Failed to send {what}: {result.error}", context={"error_code": result.error_code, **context})


_orchestrator: Optional[WebhookOrchestrator] = None


def get_orchestrator() -> WebhookOrchestrator:
    """Get or create the process-wide orchestrator with an in-memory session store."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = WebhookOrchestrator(session_store=InMemorySessionStore(), messenger=WhatsAppService())
    return _orchestrator
