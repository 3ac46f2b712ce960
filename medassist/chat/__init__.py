# medassist/chat/__init__.py
from .locks import ConversationLocks
from .prompt import FALLBACK_RESPONSE, GenerationResult, MedicalResponder
from .turns import HistoryEntry, MessageRole, TurnMode, decide_turn_mode

__all__ = [
    "ConversationLocks",
    "FALLBACK_RESPONSE",
    "GenerationResult",
    "MedicalResponder",
    "HistoryEntry",
    "MessageRole",
    "TurnMode",
    "decide_turn_mode",
]
