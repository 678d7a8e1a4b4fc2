"""Turn an accumulated WhatsApp dialogue into a structured service request."""

import json
import re
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from app.config import settings
from app.logging_config import get_logger
from app.services.llm import GeminiProvider, LLMError, LLMProvider, OpenAIProvider
from app.services.session_store import ROLE_ASSISTANT, Turn

logger = get_logger("intent_extractor")

TICKET_FIELDS = ("category", "description", "zone", "urgency")

SYSTEM_PROMPT = """Eres el asistente de miservicio.ar. Conversás por WhatsApp con un cliente que necesita un profesional.
Tu tarea es reunir estos datos del pedido:
- category: rubro del servicio (por ejemplo Plomería, Electricidad, Reparación de Electrodomésticos, Limpieza, Climatización).
- description: qué problema tiene, en una o dos oraciones.
- zone: ciudad y provincia, con el formato "Ciudad, Provincia".
- urgency: "baja", "media", "alta" o "urgente".

Respondé ÚNICAMENTE con un JSON con esta forma, sin texto adicional:
{"isComplete": boolean, "extractedData": {"category": string, "description": string, "zone": string, "urgency": string}, "replyToClient": string}

Si falta algún dato, isComplete es false y replyToClient es una pregunta breve y amable en español rioplatense pidiendo lo que falta.
Si están los cuatro datos, isComplete es true.
Si el mensaje no es un pedido de servicio, respondé {"error": "not_a_service"}."""

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class ExtractionError(Exception):
    def __init__(self, message: str, code: str = "extraction_failed"):
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass
class ExtractionResult:
    is_complete: bool
    extracted_data: dict = field(default_factory=dict)
    reply_to_client: Optional[str] = None

    def ticket_data(self) -> dict:
        return {key: self.extracted_data.get(key) for key in TICKET_FIELDS}


_llm_provider: Optional[LLMProvider] = None


def get_llm_provider() -> LLMProvider:
    """Get or create the configured LLM provider instance."""
    global _llm_provider
    if _llm_provider is not None:
        return _llm_provider

    provider_name = settings.llm_provider.strip().lower()
    if provider_name == "gemini":
        if not settings.gemini_api_key:
            raise ExtractionError("GEMINI_API_KEY not configured", "ai_not_configured")
        _llm_provider = GeminiProvider(settings.gemini_api_key, default_model=settings.llm_model or "gemini-1.5-flash")
    elif provider_name == "openai":
        if not settings.openai_api_key:
            raise ExtractionError("OPENAI_API_KEY not configured", "ai_not_configured")
        _llm_provider = OpenAIProvider(settings.openai_api_key, default_model=settings.llm_model or "gpt-4o-mini")
    else:
        raise ExtractionError(f"Unknown LLM provider: {settings.llm_provider}", "ai_not_configured")
    return _llm_provider


def build_messages(turns: Sequence[Turn]) -> list[dict]:
    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    for turn in turns:
        role = "assistant" if turn.role == ROLE_ASSISTANT else "user"
        messages.append({"role": role, "content": turn.text})
    return messages


def _strip_code_fence(output: str) -> str:
    match = _CODE_BLOCK_RE.search(output)
    return match.group(1).strip() if match else output.strip()


def parse_extraction(raw: str) -> ExtractionResult:
    """Parse the model's JSON answer. Raises ExtractionError if it is unusable."""
    if not raw or not raw.strip():
        raise ExtractionError("Empty extractor response", "empty_response")

    try:
        payload = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extractor returned non-JSON payload: {e}", "parse_error") from e

    if not isinstance(payload, dict):
        raise ExtractionError("Extractor payload is not an object", "malformed")
    if payload.get("error"):
        raise ExtractionError(f"Extractor reported error: {payload['error']}", str(payload["error"]))

    is_complete = payload.get("isComplete")
    if not isinstance(is_complete, bool):
        raise ExtractionError("Extractor payload missing boolean isComplete", "malformed")

    extracted = payload.get("extractedData") or {}
    if not isinstance(extracted, dict):
        raise ExtractionError("extractedData is not an object", "malformed")

    reply = payload.get("replyToClient")
    if reply is not None and not isinstance(reply, str):
        reply = str(reply)

    if not is_complete and not (reply and reply.strip()):
        raise ExtractionError("Incomplete extraction without a reply", "malformed")

    return ExtractionResult(is_complete=is_complete, extracted_data=extracted, reply_to_client=reply)


def extract_ticket_intent(turns: Sequence[Turn], provider: Optional[LLMProvider] = None) -> ExtractionResult:
    """Ask the language model whether the dialogue describes a complete request.

    Raises ExtractionError on any failure; the caller treats the turn as a no-op.
    """
    llm = provider or get_llm_provider()
    started = time.monotonic()
    try:
        response = llm.generate(
            build_messages(turns),
            temperature=0.2,
            max_tokens=600,
            timeout_seconds=settings.llm_timeout_seconds,
            json_mode=True,
        )
    except (LLMError, ValueError) as e:
        raise ExtractionError(str(e), "ai_error") from e

    result = parse_extraction(response.content)
    logger.info(
        "Extraction completed",
        extra={
            "context": {
                "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
                "model": response.model,
                "turns": len(turns),
                "is_complete": result.is_complete,
            }
        },
    )
    return result
