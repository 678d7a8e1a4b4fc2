"""Outbound messages through the Meta WhatsApp Cloud API.

Docs: https://developers.facebook.com/docs/whatsapp/cloud-api
"""

from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger
from app.services.phone import to_outbound
from app.services.result import Result

logger = get_logger("whatsapp_service")

ACCEPT_TERMS_ID = "accept_terms"
REJECT_TERMS_ID = "reject_terms"

MSG_TERMS_PROMPT = (
    "¡Hola! Para conectarte con los mejores profesionales, por favor confirmá que aceptás "
    "nuestros nuevos Términos y Políticas actualizados (v{version}): {url}"
)
MSG_TERMS_ACCEPTED = (
    "¡Gracias por aceptar los Términos! ✅ Contame qué servicio necesitás, "
    "qué problema tenés y en qué zona estás."
)
MSG_TERMS_REJECTED = (
    "Entendido. Sin aceptar los Términos no podemos tomar tu pedido. "
    "Si cambiás de opinión, escribinos de nuevo."
)
MSG_MATCH_RESULTS = (
    "¡Buenas noticias! 🚀 Encontré {count} profesionales disponibles para tu pedido.\n\n"
    "Tocá el siguiente enlace para ver sus perfiles, reputación y elegir al que más te guste:\n"
    "{link}\n\n"
    "¡Avisame por acá cuando hayas elegido!"
)
MSG_NO_MATCHES = (
    "Registramos tu pedido ✅ Por ahora no encontramos profesionales disponibles en tu zona. "
    "Te avisamos por acá apenas aparezca uno."
)
MSG_WORKER_NOTIFICATION = (
    "¡Hola {worker_name}! Tienes un nuevo interesado en tu servicio de {category} en {locality}. "
    "Entra a la app para ver los detalles."
)


def ticket_match_link(ticket_id) -> str:
    return f"{settings.frontend_url.rstrip('/')}/pedidos/match/{ticket_id}"


class WhatsAppService:
    """Send text and interactive messages from the business number."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        graph_base: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.access_token = access_token if access_token is not None else settings.meta_wa_token
        self.phone_number_id = phone_number_id if phone_number_id is not None else settings.meta_wa_phone_number_id
        self.graph_base = (graph_base or settings.meta_graph_base).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.whatsapp_timeout_seconds

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def _post_message(self, phone_number: str, message: dict) -> Result[Optional[str]]:
        """POST /{phone_number_id}/messages. Returns the message id; never raises."""
        if not self.is_configured:
            return Result.failure("META_WA_TOKEN or META_WA_PHONE_NUMBER_ID not configured", "not_configured")

        to = to_outbound(phone_number)
        if not to:
            return Result.failure("Invalid phone number", "invalid_phone")

        payload = {"messaging_product": "whatsapp", "to": to, **message}
        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    f"{self.graph_base}/{self.phone_number_id}/messages",
                    headers={
                        "Authorization": f"Bearer {self.access_token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"WhatsApp API error: {e}", extra={"context": {"to": to, "type": message.get("type")}})
            return Result.failure(str(e), "transport_error")

        if response.status_code >= 400:
            error = (data.get("error") or {}).get("message") if isinstance(data, dict) else None
            error = error or f"HTTP {response.status_code}"
            logger.error(
                f"WhatsApp send error: {error}",
                extra={"context": {"to": to, "status": response.status_code, "type": message.get("type")}},
            )
            return Result.failure(error, "api_error")

        if not isinstance(data, dict):
            logger.error("WhatsApp reply is not a JSON object", extra={"context": {"to": to, "status": response.status_code}})
            return Result.failure("Unexpected WhatsApp API response", "malformed_response")

        messages = data.get("messages")
        first = messages[0] if isinstance(messages, list) and messages else None
        return Result.success(first.get("id") if isinstance(first, dict) else None)

    def send_text(self, phone_number: str, body: str) -> Result[Optional[str]]:
        return self._post_message(phone_number, {"type": "text", "text": {"body": body}})

    def send_buttons(self, phone_number: str, body: str, buttons: list[tuple[str, str]]) -> Result[Optional[str]]:
        """Interactive reply-button message; buttons are (id, title) pairs."""
        return self._post_message(
            phone_number,
            {
                "type": "interactive",
                "interactive": {
                    "type": "button",
                    "body": {"text": body},
                    "action": {
                        "buttons": [
                            {"type": "reply", "reply": {"id": button_id, "title": title}}
                            for button_id, title in buttons
                        ]
                    },
                },
            },
        )

    def send_terms_prompt(self, phone_number: str) -> Result[Optional[str]]:
        body = MSG_TERMS_PROMPT.format(version=settings.terms_version, url=settings.terms_url)
        return self.send_buttons(
            phone_number,
            body,
            [(ACCEPT_TERMS_ID, "✅ Acepto"), (REJECT_TERMS_ID, "❌ Cancelar")],
        )

    def send_match_results(self, phone_number: str, match_count: int, ticket_id) -> Result[Optional[str]]:
        body = MSG_MATCH_RESULTS.format(count=match_count, link=ticket_match_link(ticket_id))
        return self.send_text(phone_number, body)

    def send_no_matches(self, phone_number: str) -> Result[Optional[str]]:
        return self.send_text(phone_number, MSG_NO_MATCHES)

    def send_worker_notification(self, phone_number: str, worker_name: str, category: str) -> Result[Optional[str]]:
        body = MSG_WORKER_NOTIFICATION.format(
            worker_name=worker_name, category=category, locality=settings.worker_locality
        )
        return self.send_text(phone_number, body)
