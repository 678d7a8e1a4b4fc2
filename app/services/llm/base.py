from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Messages use the chat format: [{"role": "system"|"user"|"assistant", "content": str}].
    """

    @abstractmethod
    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.2,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate response from LLM. Raises LLMError on transport or API failure."""
        pass


class LLMError(Exception):
    """Language model call failed (transport, non-200, or empty payload)."""
