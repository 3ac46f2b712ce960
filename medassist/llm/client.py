# medassist/llm/client.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Dict, Optional

from openai import OpenAI

from medassist.config import get_settings

# content is either a plain string or a list of OpenAI-style parts:
#   {"type": "text", "text": "..."}
#   {"type": "image_url", "image_url": {"url": "data:image/png;base64,..."}}
ChatMessage = Dict[str, Any]


class LLMClient(ABC):
    """
    Simple abstraction so we can swap providers if needed.

    Implementations are constructed once per process with a fixed system
    instruction, which they apply to every call.
    """

    system_prompt: Optional[str] = None

    @abstractmethod
    def chat(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        """
        messages: list of {"role": "user"|"assistant", "content": str | parts}
        returns: assistant content as a string
        """
        ...

    def _with_system_prompt(self, messages: List[ChatMessage]) -> List[ChatMessage]:
        if not self.system_prompt:
            return list(messages)
        return [{"role": "system", "content": self.system_prompt}, *messages]


class OpenAILLMClient(LLMClient):
    """
    OpenAI implementation using the official Python client. Works against
    any OpenAI-compatible endpoint via OPENAI_BASE_URL.
    """

    def __init__(
        self,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        if not settings.openai_api_key:
            raise RuntimeError(
                "OPENAI_API_KEY is not set in environment (.env)."
            )

        self.client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=timeout if timeout is not None else settings.llm_timeout_seconds,
            max_retries=settings.llm_max_retries,
        )
        self.system_prompt = system_prompt
        self.default_model = model or settings.llm_model
        self.default_temperature = settings.llm_temperature

    def chat(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> str:
        completion = self.client.chat.completions.create(
            model=model or self.default_model,
            messages=self._with_system_prompt(messages),
            temperature=self.default_temperature if temperature is None else temperature,
        )
        content = completion.choices[0].message.content
        return content or ""
