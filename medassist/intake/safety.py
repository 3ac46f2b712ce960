# medassist/intake/safety.py
import re
from typing import List

# NOTE: keyword screen only; it flags messages for logging, it does not triage.
EMERGENCY_KEYWORDS = [
    "chest pain",
    "heart attack",
    "stroke",
    "unconscious",
    "bleeding heavily",
    "difficulty breathing",
    "shortness of breath",
    "severe pain",
    "emergency",
    "urgent",
    "life threatening",
    "overdose",
    "poisoning",
    "severe allergic reaction",
    "anaphylaxis",
    "seizure",
    "suicidal",
    "suicide",
    "self harm",
    "self-harm",
]

_EMERGENCY_PATTERNS = [
    re.compile(r"\b" + re.escape(keyword) + r"\b", re.IGNORECASE)
    for keyword in EMERGENCY_KEYWORDS
]


def find_emergency_keywords(text: str) -> List[str]:
    """
    Return the emergency keywords present in `text`, in list order.
    """
    if not text:
        return []
    return [
        keyword
        for keyword, pattern in zip(EMERGENCY_KEYWORDS, _EMERGENCY_PATTERNS)
        if pattern.search(text)
    ]


def detect_emergency_keywords(text: str) -> bool:
    return bool(find_emergency_keywords(text))
