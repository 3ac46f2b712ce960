# medassist/intake/__init__.py
from .schema import MedicalFormModel, ImageBlob
from .measurements import Measurement, Unit, calculate_bmi, bmi_category

__all__ = [
    "MedicalFormModel",
    "ImageBlob",
    "Measurement",
    "Unit",
    "calculate_bmi",
    "bmi_category",
]
