# medassist/chat/turns.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class TurnMode(str, Enum):
    INITIAL_ASSESSMENT = "initial_assessment"
    ORDINARY_TURN = "ordinary_turn"
    REJECTED = "rejected"


@dataclass
class HistoryEntry:
    role: str  # "user" or "assistant"
    content: str
    images: List[dict] = field(default_factory=list)


def is_blank(message: Optional[str]) -> bool:
    return message is None or not message.strip()


def decide_turn_mode(
    message_count: int,
    message: Optional[str],
    images: Optional[Sequence] = None,
) -> TurnMode:
    """
    Work out what a chat request means for a conversation that currently
    holds `message_count` messages.

    - no text, nothing stored yet       -> INITIAL_ASSESSMENT (images ignored)
    - text sent                         -> ORDINARY_TURN
    - images only, messages exist       -> ORDINARY_TURN
    - nothing sent, messages exist      -> REJECTED

    The assessment shortcut is gated only on the transcript being empty,
    so it can fire at most once per conversation.
    """
    if is_blank(message):
        if message_count == 0:
            return TurnMode.INITIAL_ASSESSMENT
        if not images:
            return TurnMode.REJECTED
    return TurnMode.ORDINARY_TURN


def recent_history(messages: Sequence, window: int = 10) -> List[HistoryEntry]:
    """
    The last `window` messages, oldest first, reduced to what the prompt
    needs. `messages` must already be in transcript order.
    """
    if window <= 0:
        return []
    return [
        HistoryEntry(
            role=msg.role,
            content=msg.content,
            images=list(msg.images or []),
        )
        for msg in list(messages)[-window:]
    ]
