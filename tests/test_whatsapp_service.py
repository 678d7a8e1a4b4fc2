from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from app.config import settings
from app.services.whatsapp_service import (
    ACCEPT_TERMS_ID,
    MSG_NO_MATCHES,
    REJECT_TERMS_ID,
    WhatsAppService,
    ticket_match_link,
)


@pytest.fixture
def graph_api(mock_env):
    with patch("app.services.whatsapp_service.httpx.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        response = Mock(status_code=200)
        response.json.return_value = {"messages": [{"id": "wamid.ABC"}]}
        mock_client.post.return_value = response
        yield mock_client


def _sent_payload(mock_client) -> dict:
    return mock_client.post.call_args[1]["json"]


class TestTicketMatchLink:
    def test_link(self, mock_env):
        assert ticket_match_link(42) == "https://miservicio.ar/pedidos/match/42"

    def test_trailing_slash(self, mock_env, monkeypatch):
        monkeypatch.setattr(settings, "frontend_url", "https://miservicio.ar/")
        assert ticket_match_link(7) == "https://miservicio.ar/pedidos/match/7"


class TestWhatsAppService:
    def test_not_configured(self, mock_env):
        service = WhatsAppService(access_token="", phone_number_id="")

        result = service.send_text("5492604123456", "Hola")

        assert result.ok is False
        assert result.error_code == "not_configured"

    def test_invalid_phone(self, graph_api):
        result = WhatsAppService().send_text("", "Hola")

        assert result.ok is False
        assert result.error_code == "invalid_phone"
        graph_api.post.assert_not_called()

    def test_send_text_uses_outbound_number(self, graph_api):
        result = WhatsAppService().send_text("5492604123456", "Hola")

        assert result.ok is True
        assert result.value == "wamid.ABC"
        url = graph_api.post.call_args[0][0]
        assert url == "https://graph.facebook.com/v18.0/123456789/messages"
        assert graph_api.post.call_args[1]["headers"]["Authorization"] == "Bearer test-token"
        assert _sent_payload(graph_api) == {
            "messaging_product": "whatsapp",
            "to": "542604123456",
            "type": "text",
            "text": {"body": "Hola"},
        }

    def test_api_error_message(self, graph_api):
        response = Mock(status_code=400)
        response.json.return_value = {"error": {"message": "Recipient phone number not in allowed list"}}
        graph_api.post.return_value = response

        result = WhatsAppService().send_text("5492604123456", "Hola")

        assert result.ok is False
        assert result.error_code == "api_error"
        assert result.error == "Recipient phone number not in allowed list"

    def test_transport_error(self, graph_api):
        graph_api.post.side_effect = httpx.ConnectTimeout("timed out")

        result = WhatsAppService().send_text("5492604123456", "Hola")

        assert result.ok is False
        assert result.error_code == "transport_error"

    def test_non_object_reply_is_failure(self, graph_api):
        response = Mock(status_code=200)
        response.json.return_value = [{"id": "wamid.ABC"}]
        graph_api.post.return_value = response

        result = WhatsAppService().send_text("5492604123456", "Hola")

        assert result.ok is False
        assert result.error_code == "malformed_response"

    def test_reply_without_messages(self, graph_api):
        graph_api.post.return_value.json.return_value = {"messaging_product": "whatsapp"}

        result = WhatsAppService().send_text("5492604123456", "Hola")

        assert result.ok is True
        assert result.value is None

    def test_terms_prompt_buttons(self, graph_api):
        WhatsAppService().send_terms_prompt("5492604123456")

        payload = _sent_payload(graph_api)
        assert payload["type"] == "interactive"
        interactive = payload["interactive"]
        assert interactive["type"] == "button"
        assert "v1.1" in interactive["body"]["text"]
        buttons = interactive["action"]["buttons"]
        assert [b["reply"]["id"] for b in buttons] == [ACCEPT_TERMS_ID, REJECT_TERMS_ID]
        assert [b["reply"]["title"] for b in buttons] == ["✅ Acepto", "❌ Cancelar"]

    def test_match_results_contain_link(self, graph_api):
        WhatsAppService().send_match_results("5492604123456", 3, 42)

        body = _sent_payload(graph_api)["text"]["body"]
        assert "3 profesionales" in body
        assert "https://miservicio.ar/pedidos/match/42" in body

    def test_no_matches(self, graph_api):
        WhatsAppService().send_no_matches("542604123456")

        assert _sent_payload(graph_api)["text"]["body"] == MSG_NO_MATCHES

    def test_worker_notification(self, graph_api):
        WhatsAppService().send_worker_notification("5492604999999", "Juan", "Plomería")

        payload = _sent_payload(graph_api)
        assert payload["to"] == "542604999999"
        assert payload["text"]["body"] == (
            "¡Hola Juan! Tienes un nuevo interesado en tu servicio de Plomería en San Rafael. "
            "Entra a la app para ver los detalles."
        )
