# medassist/intake/measurements.py
"""
Derived metrics from the free-text weight/height fields of a medical form.

Weight and height are stored exactly as the patient typed them
("70 kg", "154lbs", "5'8\"", "1.73 m"), so anything numeric has to be
parsed out here first.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


KG_PER_LB = 0.453592
CM_PER_INCH = 2.54


class Unit(str, Enum):
    KG = "kg"
    LB = "lb"
    CM = "cm"
    M = "m"
    FT_IN = "ft_in"
    IN = "in"


@dataclass(frozen=True)
class Measurement:
    value: float
    unit: Unit

    def to_kg(self) -> float:
        if self.unit == Unit.KG:
            return self.value
        if self.unit == Unit.LB:
            return self.value * KG_PER_LB
        raise ValueError(f"{self.unit.value} is not a weight unit")

    def to_cm(self) -> float:
        if self.unit == Unit.CM:
            return self.value
        if self.unit == Unit.M:
            return self.value * 100
        if self.unit in (Unit.FT_IN, Unit.IN):
            # FT_IN values are normalised to total inches
            return self.value * CM_PER_INCH
        raise ValueError(f"{self.unit.value} is not a height unit")


_NUMBER_RE = re.compile(r"(\d+(?:[.,]\d+)?)")
_LB_RE = re.compile(r"\b(lbs?|pounds?)\b|\d\s*lbs?\b", re.IGNORECASE)
_FEET_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:'|’|ft\b|feet\b|foot\b)", re.IGNORECASE)
_INCHES_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:\"|”|''|in\b|inch(?:es)?\b)", re.IGNORECASE)
_METRE_RE = re.compile(r"\d\s*(?:m|meters?|metres?)\b", re.IGNORECASE)


def _first_number(text: str) -> Optional[float]:
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


def parse_weight(text: Optional[str]) -> Optional[Measurement]:
    """
    "70 kg" -> Measurement(70.0, KG); "154 lbs" -> Measurement(154.0, LB).
    A bare number is taken to be kilograms.
    """
    if not text:
        return None
    value = _first_number(text)
    if value is None:
        return None
    if _LB_RE.search(text):
        return Measurement(value, Unit.LB)
    return Measurement(value, Unit.KG)


def parse_height(text: Optional[str]) -> Optional[Measurement]:
    """
    Recognises cm (default for a bare number), metres, feet+inches
    (5'8", 5 ft 8 in) and inches alone. Feet/inches come back as total
    inches under Unit.FT_IN.
    """
    if not text:
        return None

    feet_match = _FEET_RE.search(text)
    if feet_match:
        feet = float(feet_match.group(1))
        rest = text[feet_match.end():]
        inches_match = _INCHES_RE.search(rest) or _NUMBER_RE.search(rest)
        inches = float(inches_match.group(1).replace(",", ".")) if inches_match else 0.0
        return Measurement(feet * 12 + inches, Unit.FT_IN)

    inches_match = _INCHES_RE.search(text)
    if inches_match:
        return Measurement(float(inches_match.group(1)), Unit.IN)

    value = _first_number(text)
    if value is None:
        return None
    if _METRE_RE.search(text) and not re.search(r"cm\b", text, re.IGNORECASE):
        return Measurement(value, Unit.M)
    return Measurement(value, Unit.CM)


def calculate_bmi(weight: Optional[str], height: Optional[str]) -> Optional[float]:
    """
    BMI rounded to one decimal place, or None if either field can't be
    parsed into a positive quantity.
    """
    weight_m = parse_weight(weight)
    height_m = parse_height(height)
    if weight_m is None or height_m is None:
        return None

    weight_kg = weight_m.to_kg()
    height_metres = height_m.to_cm() / 100
    if weight_kg <= 0 or height_metres <= 0:
        return None

    return round(weight_kg / (height_metres * height_metres), 1)


def bmi_category(bmi: Optional[float]) -> Optional[str]:
    if not bmi:
        return None
    if bmi < 18.5:
        return "Underweight"
    if bmi < 25:
        return "Normal weight"
    if bmi < 30:
        return "Overweight"
    return "Obese"
