# medassist/llm/__init__.py
from .client import LLMClient, OpenAILLMClient
from .system_prompt import MEDICAL_ASSISTANT_SYSTEM_PROMPT

__all__ = ["LLMClient", "OpenAILLMClient", "MEDICAL_ASSISTANT_SYSTEM_PROMPT"]
