# medassist/services/conversation.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from medassist.chat.locks import ConversationLocks
from medassist.chat.prompt import GenerationResult, MedicalResponder
from medassist.chat.turns import (
    MessageRole,
    TurnMode,
    decide_turn_mode,
    is_blank,
    recent_history,
)
from medassist.errors import InvalidRequestError, NotFoundError, UnauthorizedError
from medassist.intake.safety import find_emergency_keywords
from medassist.intake.schema import ImageBlob, MedicalFormModel
from medassist.intake.validation import validate_user_id, validate_uuid
from medassist.models import utcnow
from medassist.services.store import MedicalRecordStore


logger = logging.getLogger(__name__)


@dataclass
class TurnOutcome:
    conversation_id: str
    mode: TurnMode
    response: str
    degraded: bool = False
    emergency_keywords: Optional[List[str]] = None

    @property
    def emergency_detected(self) -> bool:
        return bool(self.emergency_keywords)


class ConversationTurnController:
    """
    Runs one chat turn:
      - checks the caller owns the conversation
      - decides between initial assessment and an ordinary reply
      - persists the user message before calling the model and the
        assistant reply after it
      - bumps the conversation's updated_at

    Turns on the same conversation are serialized through `locks`.
    """

    def __init__(
        self,
        store: MedicalRecordStore,
        responder: MedicalResponder,
        locks: Optional[ConversationLocks] = None,
        context_window: int = 10,
    ):
        self.store = store
        self.responder = responder
        self.locks = locks or ConversationLocks()
        self.context_window = context_window

    def handle_chat(
        self,
        user_id: str,
        conversation_id: Optional[str],
        message: Optional[str] = None,
        images: Iterable[ImageBlob] = (),
    ) -> TurnOutcome:
        if not validate_user_id(user_id):
            raise UnauthorizedError("Unauthorized")
        if not conversation_id:
            raise InvalidRequestError("Conversation ID is required")
        if not validate_uuid(conversation_id):
            # Malformed ids never reach the database
            raise NotFoundError("Conversation not found or unauthorized")

        images = list(images or [])

        # Strangers are turned away before they can queue on the lock
        self._owned_conversation(user_id, conversation_id)

        with self.locks.hold(conversation_id):
            _, form_row = self._owned_conversation(user_id, conversation_id)
            medical_form = MedicalFormModel.from_row(form_row)

            existing = self.store.list_messages(conversation_id)
            mode = decide_turn_mode(len(existing), message, images)

            if mode == TurnMode.REJECTED:
                raise InvalidRequestError("Message is required")

            if mode == TurnMode.INITIAL_ASSESSMENT:
                logger.info("Generating initial assessment for conversation %s", conversation_id)
                result = self.responder.initial_assessment(medical_form)
                self.store.append_message(
                    conversation_id, MessageRole.ASSISTANT.value, result.text
                )
                outcome = self._outcome(conversation_id, mode, result)
            else:
                outcome = self._ordinary_turn(
                    conversation_id, message, images, medical_form, existing
                )

            self.store.touch_conversation(conversation_id, utcnow())

        logger.info(
            "Chat turn completed for conversation %s (mode=%s, degraded=%s)",
            conversation_id,
            outcome.mode.value,
            outcome.degraded,
        )
        return outcome

    def _owned_conversation(self, user_id: str, conversation_id: str):
        found = self.store.get_conversation_with_form(conversation_id)
        if found is None or found[0].user_id != user_id:
            raise NotFoundError("Conversation not found or unauthorized")
        return found

    def _ordinary_turn(
        self,
        conversation_id: str,
        message: Optional[str],
        images: List[ImageBlob],
        medical_form: Optional[MedicalFormModel],
        existing: list,
    ) -> TurnOutcome:
        text = "" if is_blank(message) else message
        stored_images = [image.model_dump() for image in images]

        self.store.append_message(
            conversation_id,
            MessageRole.USER.value,
            text,
            images=stored_images or None,
        )

        keywords = find_emergency_keywords(text)
        if keywords:
            logger.warning(
                "Emergency keywords in conversation %s: %s",
                conversation_id,
                ", ".join(keywords),
            )

        # Context is what existed before this turn's user message
        history = recent_history(existing, self.context_window)
        logger.info("Generating AI response for user message in conversation %s", conversation_id)
        result = self.responder.generate_response(
            text,
            medical_form,
            images=[image.data for image in images],
            history=history,
        )

        self.store.append_message(
            conversation_id, MessageRole.ASSISTANT.value, result.text
        )
        return self._outcome(conversation_id, TurnMode.ORDINARY_TURN, result, keywords)

    @staticmethod
    def _outcome(
        conversation_id: str,
        mode: TurnMode,
        result: GenerationResult,
        keywords: Optional[List[str]] = None,
    ) -> TurnOutcome:
        return TurnOutcome(
            conversation_id=conversation_id,
            mode=mode,
            response=result.text,
            degraded=result.degraded,
            emergency_keywords=keywords or [],
        )
