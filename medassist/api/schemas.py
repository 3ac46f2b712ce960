# medassist/api/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from medassist.intake.schema import ImageBlob


class CamelModel(BaseModel):
    """
    JSON bodies use camelCase (conversationId, bloodType, ...).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------

class FormSubmission(CamelModel):
    # Everything is optional here so missing fields come back as a 400
    # with per-field messages instead of a schema error.
    name: Optional[str] = None
    age: Optional[Union[int, str]] = None
    gender: Optional[str] = None
    weight: Optional[str] = None
    height: Optional[str] = None
    blood_type: Optional[str] = None
    current_complications: Optional[str] = None
    breakfast_details: Optional[str] = None
    lunch_details: Optional[str] = None
    dinner_details: Optional[str] = None
    medications: Optional[str] = None
    allergies: Optional[str] = None
    chronic_conditions: Optional[str] = None
    uploaded_images: Optional[List[ImageBlob]] = None

    model_config = ConfigDict(coerce_numbers_to_str=True)


class CreateConversationRequest(CamelModel):
    form_id: Optional[str] = None


class ChatRequest(CamelModel):
    conversation_id: Optional[str] = None
    message: Optional[str] = None
    # Either bare data URLs or the records returned by /upload
    images: List[Union[ImageBlob, str]] = []


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------

class FormCreatedResponse(CamelModel):
    success: bool = True
    form_id: str
    message: str = "Medical form submitted successfully"


class ConversationCreatedResponse(CamelModel):
    success: bool = True
    conversation_id: str
    message: str = "Conversation created successfully"


class FormSummary(CamelModel):
    id: str
    name: str
    age: int


class HealthMetrics(CamelModel):
    bmi: Optional[float] = None
    bmi_category: Optional[str] = None


class MedicalFormOut(CamelModel):
    id: str
    user_id: str
    name: str
    age: int
    gender: str
    weight: str
    height: str
    blood_type: Optional[str] = None
    current_complications: Optional[str] = None
    breakfast_details: Optional[str] = None
    lunch_details: Optional[str] = None
    dinner_details: Optional[str] = None
    medications: Optional[str] = None
    allergies: Optional[str] = None
    chronic_conditions: Optional[str] = None
    uploaded_images: Optional[List[ImageBlob]] = None
    created_at: datetime
    updated_at: datetime
    metrics: HealthMetrics = HealthMetrics()


class ConversationSummary(CamelModel):
    id: str
    user_id: str
    form_id: str
    title: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    medical_form: Optional[FormSummary] = None


class ConversationListResponse(CamelModel):
    conversations: List[ConversationSummary]


class ConversationDetail(CamelModel):
    id: str
    user_id: str
    form_id: str
    title: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    medical_form: Optional[MedicalFormOut] = None


class MessageOut(CamelModel):
    id: int
    conversation_id: str
    role: str
    content: str
    images: Optional[List[ImageBlob]] = None
    created_at: datetime


class ConversationDetailResponse(CamelModel):
    conversation: ConversationDetail
    messages: List[MessageOut]


class ChatResponse(CamelModel):
    success: bool = True
    response: str
    conversation_id: str
    emergency_detected: bool = False


class UploadResponse(CamelModel):
    success: bool = True
    files: List[ImageBlob]
    message: str = "Files uploaded successfully"
