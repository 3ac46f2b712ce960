# medassist/api/deps.py
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from medassist.chat import ConversationLocks, MedicalResponder
from medassist.config import get_settings
from medassist.db import SessionLocal
from medassist.intake.validation import validate_user_id
from medassist.llm import LLMClient, OpenAILLMClient, MEDICAL_ASSISTANT_SYSTEM_PROMPT
from medassist.services import ConversationTurnController, MedicalRecordStore


@dataclass
class Identity:
    """
    Caller identity as established by the upstream identity provider.
    """

    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


def _clean_header(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_identity(
    authorization: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_first_name: Optional[str] = Header(None),
    x_user_last_name: Optional[str] = Header(None),
) -> Identity:
    """
    The bearer token is the provider's user id, already verified by the
    gateway in front of this service. We only check its shape.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Unauthorized")
    user_id = token.strip()
    if not validate_user_id(user_id):
        raise HTTPException(status_code=401, detail="Unauthorized")

    return Identity(
        user_id=user_id,
        email=_clean_header(x_user_email),
        first_name=_clean_header(x_user_first_name),
        last_name=_clean_header(x_user_last_name),
    )


@lru_cache(maxsize=1)
def get_store() -> MedicalRecordStore:
    settings = get_settings()
    return MedicalRecordStore(
        SessionLocal,
        max_attempts=settings.db_max_attempts,
        retry_delay=settings.db_retry_delay_seconds,
    )


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    return OpenAILLMClient(system_prompt=MEDICAL_ASSISTANT_SYSTEM_PROMPT)


@lru_cache(maxsize=1)
def get_controller() -> ConversationTurnController:
    settings = get_settings()
    return ConversationTurnController(
        store=get_store(),
        responder=MedicalResponder(get_llm_client()),
        locks=ConversationLocks(),
        context_window=settings.chat_context_messages,
    )
