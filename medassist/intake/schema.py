# medassist/intake/schema.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageBlob(BaseModel):
    """
    An image inlined as a base64 data URL, the way uploads come back
    from /upload and the way they are stored on forms and messages.
    """

    name: Optional[str] = None
    data: str
    size: Optional[int] = None
    type: Optional[str] = None


class MedicalFormModel(BaseModel):
    """
    The intake record as the prompt assembler sees it.

    Built from the ORM row (from_attributes) so the assembler never
    touches a database session.
    """

    name: str
    age: int
    gender: str
    weight: str
    height: str
    blood_type: Optional[str] = None
    current_complications: Optional[str] = None
    chronic_conditions: Optional[str] = None
    medications: Optional[str] = None
    allergies: Optional[str] = None
    breakfast_details: Optional[str] = None
    lunch_details: Optional[str] = None
    dinner_details: Optional[str] = None
    uploaded_images: List[ImageBlob] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    @classmethod
    def from_row(cls, row) -> Optional["MedicalFormModel"]:
        if row is None:
            return None
        data = {
            key: getattr(row, key, None)
            for key in cls.model_fields
        }
        data["uploaded_images"] = data.get("uploaded_images") or []
        return cls.model_validate(data)
