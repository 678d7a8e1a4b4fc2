from typing import Any, List, Optional

import httpx

from app.logging_config import get_logger
from app.services.llm.base import LLMError, LLMProvider, LLMResponse

logger = get_logger("llm.gemini")


class GeminiProvider(LLMProvider):
    """Google Gemini generateContent provider."""

    def __init__(self, api_key: str, default_model: str = "gemini-1.5-flash"):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = "https://generativelanguage.googleapis.com/v1beta"

    @staticmethod
    def _to_gemini(messages: List[dict]) -> tuple[Optional[str], list[dict]]:
        # Gemini takes the system prompt separately and calls the assistant "model"
        system_instruction = None
        contents = []
        for msg in messages:
            if msg["role"] == "system":
                system_instruction = msg["content"]
                continue
            role = "model" if msg["role"] == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": msg["content"]}]})
        return system_instruction, contents

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        model = model or self.default_model
        system_instruction, contents = self._to_gemini(messages)

        request_body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if json_mode:
            request_body["generationConfig"]["responseMimeType"] = "application/json"
        if system_instruction:
            request_body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        logger.debug(f"Gemini request: model={model}, contents_count={len(contents)}")
        timeout = timeout_seconds if timeout_seconds is not None else 60.0
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    f"{self.base_url}/models/{model}:generateContent",
                    params={"key": self.api_key},
                    headers={"Content-Type": "application/json"},
                    json=request_body,
                )
        except httpx.HTTPError as e:
            raise LLMError(f"Gemini transport error: {e}") from e

        if response.status_code != 200:
            logger.error(f"Gemini error: {response.text}")
            raise LLMError(f"Gemini API error: {response.status_code} - {response.text}")

        data = response.json()
        try:
            content = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Gemini returned no candidates: {data}") from e

        return LLMResponse(content=content, model=model, usage=data.get("usageMetadata"))
