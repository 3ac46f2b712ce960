# medassist/intake/validation.py
"""
Input validation and sanitization for intake forms, uploads and identifiers.

Everything here is pure: no I/O, no exceptions for bad input.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, NamedTuple, Optional


MAX_INPUT_LENGTH = 10_000
MAX_MEDICAL_TEXT_LENGTH = 5_000
MAX_FILENAME_LENGTH = 255

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
# Tab, LF and CR are kept so multi-line medical notes survive
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)
_USER_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,255}")
_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


@dataclass
class ValidationResult:
    is_valid: bool
    errors: Dict[str, str] = field(default_factory=dict)


class ImageCheck(NamedTuple):
    valid: bool
    error: Optional[str] = None


@dataclass
class UploadedFile:
    """
    What we know about an uploaded file before trusting it.
    """
    name: Optional[str]
    size: int
    type: Optional[str]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return not str(value).strip()


def parse_age(value: Any) -> Optional[int]:
    """
    Parse the leading integer of `value` ("34", " 34 years", 34).
    Returns None when there is no leading integer.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if value is None:
        return None
    match = _LEADING_INT_RE.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def validate_personal_info(data: Mapping[str, Any]) -> ValidationResult:
    errors: Dict[str, str] = {}

    if _is_blank(data.get("name")):
        errors["name"] = "Name is required"

    age_raw = data.get("age")
    if _is_blank(age_raw):
        errors["age"] = "Age is required"
    else:
        age = parse_age(age_raw)
        if age is None or age < 0 or age > 150:
            errors["age"] = "Please enter a valid age between 0 and 150"

    if _is_blank(data.get("gender")):
        errors["gender"] = "Gender is required"

    if _is_blank(data.get("weight")):
        errors["weight"] = "Weight is required"

    if _is_blank(data.get("height")):
        errors["height"] = "Height is required"

    return ValidationResult(is_valid=not errors, errors=errors)


def sanitize_input(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return _ANGLE_BRACKETS_RE.sub("", value.strip())[:MAX_INPUT_LENGTH]


def sanitize_medical_text(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    text = value.strip()[:MAX_MEDICAL_TEXT_LENGTH]
    return _CONTROL_CHARS_RE.sub("", text)


def validate_image_file(file: Optional[UploadedFile], max_size_mb: int = 10) -> ImageCheck:
    if file is None:
        return ImageCheck(False, "No file provided")

    if file.type not in ALLOWED_IMAGE_TYPES:
        return ImageCheck(False, "Only JPEG, PNG, and WebP images are allowed")

    if file.size > max_size_mb * 1024 * 1024:
        return ImageCheck(False, f"File size must be less than {max_size_mb}MB")

    if not file.name or len(file.name) > MAX_FILENAME_LENGTH:
        return ImageCheck(False, "Invalid filename")

    return ImageCheck(True)


def validate_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.fullmatch(value))


def validate_user_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_USER_ID_RE.fullmatch(value))


def validate_email(value: Any) -> bool:
    return isinstance(value, str) and bool(_EMAIL_RE.fullmatch(value))
