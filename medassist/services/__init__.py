# medassist/services/__init__.py
from .store import MedicalRecordStore, init_db, is_transient_db_error
from .conversation import ConversationTurnController, TurnOutcome

__all__ = [
    "MedicalRecordStore",
    "init_db",
    "is_transient_db_error",
    "ConversationTurnController",
    "TurnOutcome",
]
