# medassist/api/routes.py
from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from medassist.chat.prompt import parse_image_data_url
from medassist.config import get_settings
from medassist.errors import InvalidRequestError, MedAssistError, NotFoundError
from medassist.intake.measurements import bmi_category, calculate_bmi
from medassist.intake.schema import ImageBlob
from medassist.intake.validation import (
    UploadedFile,
    parse_age,
    sanitize_input,
    sanitize_medical_text,
    validate_email,
    validate_image_file,
    validate_personal_info,
    validate_uuid,
)
from medassist.services import ConversationTurnController, MedicalRecordStore
from .deps import Identity, get_controller, get_identity, get_store
from .schemas import (
    ChatRequest,
    ChatResponse,
    ConversationCreatedResponse,
    ConversationDetail,
    ConversationDetailResponse,
    ConversationListResponse,
    ConversationSummary,
    CreateConversationRequest,
    FormCreatedResponse,
    FormSubmission,
    FormSummary,
    HealthMetrics,
    MedicalFormOut,
    MessageOut,
    UploadResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_SHORT_TEXT_FIELDS = ("name", "gender", "weight", "height", "blood_type")

_FREE_TEXT_FIELDS = (
    "current_complications",
    "breakfast_details",
    "lunch_details",
    "dinner_details",
    "medications",
    "allergies",
    "chronic_conditions",
)


@contextmanager
def _unexpected_errors(operation: str, **context) -> Iterator[None]:
    """
    Log anything we didn't classify and answer with a bare 500.
    """
    try:
        yield
    except (MedAssistError, HTTPException):
        raise
    except Exception:
        logger.exception("Error in %s %s", operation, context or "")
        raise HTTPException(status_code=500, detail="Internal server error")


def _optional_text(value: Optional[str]) -> Optional[str]:
    cleaned = sanitize_medical_text(value)
    return cleaned or None


def _form_out(form) -> MedicalFormOut:
    out = MedicalFormOut.model_validate(form)
    bmi = calculate_bmi(form.weight, form.height)
    out.metrics = HealthMetrics(bmi=bmi, bmi_category=bmi_category(bmi))
    return out


_CONVERSATION_COLUMNS = ("id", "user_id", "form_id", "title", "created_at", "updated_at")


def _conversation_fields(conversation) -> dict:
    # Column values only; relationships are not loaded once the session is gone
    return {name: getattr(conversation, name) for name in _CONVERSATION_COLUMNS}


def _as_image_blob(image) -> ImageBlob:
    if isinstance(image, ImageBlob):
        return image
    parsed = parse_image_data_url(image)
    return ImageBlob(data=image, type=parsed.mime_type if parsed else None)


@router.post("/forms", response_model=FormCreatedResponse)
def create_form(
    payload: FormSubmission,
    identity: Identity = Depends(get_identity),
    store: MedicalRecordStore = Depends(get_store),
) -> FormCreatedResponse:
    """
    Store a medical intake form, creating the user row on first use.
    """
    submitted = payload.model_dump()
    for key in _SHORT_TEXT_FIELDS:
        submitted[key] = sanitize_input(submitted[key])

    result = validate_personal_info(submitted)
    if not result.is_valid:
        raise InvalidRequestError("Missing required fields", errors=result.errors)

    name = submitted["name"]
    fields = {
        "name": name,
        "age": parse_age(payload.age),
        "gender": submitted["gender"],
        "weight": submitted["weight"],
        "height": submitted["height"],
        "blood_type": submitted["blood_type"] or None,
        "uploaded_images": [
            image.model_dump() for image in payload.uploaded_images or []
        ] or None,
    }
    for key in _FREE_TEXT_FIELDS:
        fields[key] = _optional_text(getattr(payload, key))

    name_parts = name.split()
    with _unexpected_errors("create_form", user_id=identity.user_id):
        store.ensure_user(
            identity.user_id,
            email=identity.email if validate_email(identity.email) else None,
            first_name=identity.first_name or (name_parts[0] if name_parts else None),
            last_name=identity.last_name or (" ".join(name_parts[1:]) or None),
        )
        form = store.create_form(identity.user_id, fields)

    logger.info("Medical form %s created for user %s", form.id, identity.user_id)
    return FormCreatedResponse(form_id=form.id)


@router.post("/conversations", response_model=ConversationCreatedResponse)
def create_conversation(
    payload: CreateConversationRequest,
    identity: Identity = Depends(get_identity),
    store: MedicalRecordStore = Depends(get_store),
) -> ConversationCreatedResponse:
    if not payload.form_id:
        raise InvalidRequestError("Form ID is required")
    if not validate_uuid(payload.form_id):
        raise NotFoundError("Form not found or unauthorized")

    with _unexpected_errors("create_conversation", form_id=payload.form_id):
        conversation = store.create_conversation(identity.user_id, payload.form_id)

    logger.info("Conversation %s created from form %s", conversation.id, payload.form_id)
    return ConversationCreatedResponse(conversation_id=conversation.id)


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    identity: Identity = Depends(get_identity),
    store: MedicalRecordStore = Depends(get_store),
) -> ConversationListResponse:
    with _unexpected_errors("list_conversations", user_id=identity.user_id):
        rows = store.list_conversations(identity.user_id)

    conversations: List[ConversationSummary] = []
    for conversation, form in rows:
        conversations.append(
            ConversationSummary(
                **_conversation_fields(conversation),
                medical_form=FormSummary.model_validate(form) if form else None,
            )
        )

    logger.info("Fetched %d conversations for user %s", len(conversations), identity.user_id)
    return ConversationListResponse(conversations=conversations)


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailResponse)
def get_conversation(
    conversation_id: str,
    identity: Identity = Depends(get_identity),
    store: MedicalRecordStore = Depends(get_store),
) -> ConversationDetailResponse:
    if not validate_uuid(conversation_id):
        raise NotFoundError("Conversation not found or unauthorized")

    with _unexpected_errors("get_conversation", conversation_id=conversation_id):
        found = store.get_conversation_with_form(conversation_id)
        if found is None or found[0].user_id != identity.user_id:
            raise NotFoundError("Conversation not found or unauthorized")
        conversation, form = found
        messages = store.list_messages(conversation_id)

    detail = ConversationDetail(
        **_conversation_fields(conversation),
        medical_form=_form_out(form) if form else None,
    )
    return ConversationDetailResponse(
        conversation=detail,
        messages=[MessageOut.model_validate(m) for m in messages],
    )


@router.post("/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    identity: Identity = Depends(get_identity),
    controller: ConversationTurnController = Depends(get_controller),
) -> ChatResponse:
    """
    One conversation turn: an initial assessment on an empty conversation,
    otherwise the user's message plus the assistant's reply.
    """
    message = sanitize_input(payload.message) if payload.message is not None else None
    images = [_as_image_blob(image) for image in payload.images]

    with _unexpected_errors("chat", conversation_id=payload.conversation_id):
        outcome = controller.handle_chat(
            identity.user_id,
            payload.conversation_id,
            message=message,
            images=images,
        )

    return ChatResponse(
        response=outcome.response,
        conversation_id=outcome.conversation_id,
        emergency_detected=outcome.emergency_detected,
    )


@router.post("/upload", response_model=UploadResponse)
def upload(
    files: Optional[List[UploadFile]] = File(None),
    identity: Identity = Depends(get_identity),
) -> UploadResponse:
    """
    Inline uploaded images as base64 data URLs; nothing is written to disk.
    """
    if not files:
        raise InvalidRequestError("No files provided")

    max_size_mb = get_settings().max_upload_mb
    # One byte past the limit is enough to reject an oversize file
    read_limit = max_size_mb * 1024 * 1024 + 1
    uploaded: List[ImageBlob] = []
    with _unexpected_errors("upload", user_id=identity.user_id):
        for upload_file in files:
            content = upload_file.file.read(read_limit)
            check = validate_image_file(
                UploadedFile(
                    name=upload_file.filename,
                    size=len(content),
                    type=upload_file.content_type,
                ),
                max_size_mb=max_size_mb,
            )
            if not check.valid:
                raise InvalidRequestError(f"{upload_file.filename or 'file'}: {check.error}")

            encoded = base64.b64encode(content).decode("ascii")
            uploaded.append(
                ImageBlob(
                    name=upload_file.filename,
                    size=len(content),
                    type=upload_file.content_type,
                    data=f"data:{upload_file.content_type};base64,{encoded}",
                )
            )

    logger.info("Uploaded %d files for user %s", len(uploaded), identity.user_id)
    return UploadResponse(files=uploaded)
