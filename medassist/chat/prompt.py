# medassist/chat/prompt.py
"""
Prompt assembly for the medical assistant.

A request to the model is a single user message whose content is a text
part (patient information, recent conversation, the patient's message)
followed by zero or more inline image parts. The system instruction is
not part of the request; it is bound to the LLM client when it is built.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from medassist.chat.turns import HistoryEntry, MessageRole, is_blank
from medassist.intake.schema import MedicalFormModel
from medassist.llm import LLMClient


logger = logging.getLogger(__name__)


MEDICAL_INFO_START = "=== PATIENT MEDICAL INFORMATION ==="
MEDICAL_INFO_END = "=== END PATIENT INFORMATION ==="
HISTORY_START = "=== RECENT CONVERSATION ==="
HISTORY_END = "=== END RECENT CONVERSATION ==="

DEFAULT_USER_MESSAGE = (
    "Please analyze my medical information and provide personalized health "
    "recommendations and guidance."
)

INITIAL_ASSESSMENT_INSTRUCTION = """Please provide a comprehensive initial health assessment based on the medical information provided. Include:

1. A summary of the patient's current health status
2. Analysis of any concerning symptoms or conditions
3. Personalized recommendations for diet, lifestyle, and health management
4. Important safety considerations and when to seek immediate medical attention
5. Questions the patient should discuss with their healthcare provider

Be thorough and empathetic, focus on actionable advice, and emphasize the importance of professional medical care."""

FALLBACK_RESPONSE = """I'm sorry, I'm having technical difficulties right now and can't answer your question. Please try again in a few moments.

If you have an urgent medical concern in the meantime, please:
- Contact your healthcare provider right away
- Call 911 (or your local emergency number) for emergencies
- Go to your nearest urgent care center or emergency room

Thank you for your patience."""

_DATA_URL_RE = re.compile(
    r"^data:(image/[A-Za-z0-9.+-]+);base64,([A-Za-z0-9+/=\s]+)$",
    re.DOTALL,
)


@dataclass(frozen=True)
class InlineImage:
    mime_type: str
    data: str  # base64 payload without the data: prefix

    def as_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class GenerationResult:
    """
    Text to show and store. `error` is set when the model call failed and
    `text` is the canned fallback.
    """

    text: str
    error: Optional[BaseException] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


def render_medical_context(form: Optional[MedicalFormModel]) -> str:
    if form is None:
        return ""

    lines: List[str] = [
        MEDICAL_INFO_START,
        f"Name: {form.name}",
        f"Age: {form.age} years",
        f"Gender: {form.gender}",
        f"Weight: {form.weight}",
        f"Height: {form.height}",
    ]
    if form.blood_type:
        lines.append(f"Blood Type: {form.blood_type}")

    sections = [
        ("Current Health Issues", form.current_complications),
        ("Chronic Conditions", form.chronic_conditions),
        ("Current Medications", form.medications),
        ("Known Allergies", form.allergies),
    ]
    for title, body in sections:
        if body:
            lines.extend(["", f"{title}:", body])

    meals = [
        ("Breakfast", form.breakfast_details),
        ("Lunch", form.lunch_details),
        ("Dinner", form.dinner_details),
    ]
    diet = [f"{meal}: {details}" for meal, details in meals if details]
    if diet:
        lines.extend(["", "Diet Information:", *diet])

    lines.extend(["", MEDICAL_INFO_END])
    return "\n".join(lines)


def render_history(history: Sequence[HistoryEntry]) -> str:
    if not history:
        return ""

    lines = [HISTORY_START]
    for entry in history:
        speaker = "Patient" if entry.role == MessageRole.USER.value else "Assistant"
        text = entry.content
        if entry.images:
            text = f"{text} [{len(entry.images)} image(s) attached]".strip()
        lines.append(f"{speaker}: {text}")
    lines.append(HISTORY_END)
    return "\n".join(lines)


def parse_image_data_url(value) -> Optional[InlineImage]:
    """
    Split "data:image/png;base64,AAAA" into mime type and payload.
    Anything that isn't a base64 image data URL gives None.
    """
    if not isinstance(value, str):
        return None
    match = _DATA_URL_RE.match(value.strip())
    if not match:
        return None
    return InlineImage(mime_type=match.group(1), data=match.group(2))


def build_prompt_text(
    user_message: Optional[str],
    medical_form: Optional[MedicalFormModel] = None,
    history: Sequence[HistoryEntry] = (),
) -> str:
    blocks = [
        render_medical_context(medical_form),
        render_history(history),
        DEFAULT_USER_MESSAGE if is_blank(user_message) else user_message,
    ]
    return "\n\n".join(block for block in blocks if block)


def build_user_content(text: str, images: Iterable[str] = ()) -> List[dict]:
    """
    Text part first, then one part per well-formed image. Malformed image
    entries are skipped.
    """
    parts: List[dict] = [{"type": "text", "text": text}]
    for raw in images or ():
        image = parse_image_data_url(raw)
        if image is None:
            continue
        parts.append(
            {"type": "image_url", "image_url": {"url": image.as_data_url()}}
        )
    return parts


class MedicalResponder:
    """
    Turns intake data and chat context into a model call, and never lets
    a provider failure escape: any exception becomes FALLBACK_RESPONSE.
    """

    def __init__(self, llm_client: LLMClient, temperature: Optional[float] = None):
        self.llm_client = llm_client
        self.temperature = temperature

    def generate_response(
        self,
        user_message: Optional[str],
        medical_form: Optional[MedicalFormModel] = None,
        images: Iterable[str] = (),
        history: Sequence[HistoryEntry] = (),
    ) -> GenerationResult:
        text = build_prompt_text(user_message, medical_form, history)
        content = build_user_content(text, images)

        logger.info("Generating AI response with %d parts (text + images)", len(content))
        try:
            answer = self.llm_client.chat(
                [{"role": "user", "content": content}],
                temperature=self.temperature,
            )
        except Exception as exc:
            logger.exception("AI provider call failed; returning fallback response")
            return GenerationResult(text=FALLBACK_RESPONSE, error=exc)

        logger.info("AI response generated, length=%d", len(answer))
        return GenerationResult(text=answer)

    def initial_assessment(self, medical_form: Optional[MedicalFormModel]) -> GenerationResult:
        return self.generate_response(INITIAL_ASSESSMENT_INSTRUCTION, medical_form)
