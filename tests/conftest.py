from __future__ import annotations

import os
from typing import Callable

# Settings are read when medassist.db is first imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["DB_RETRY_DELAY_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient

from fakes import FakeLLMClient
from medassist import models  # noqa: F401  (registers tables on Base.metadata)
from medassist.api.deps import get_controller, get_store
from medassist.chat import MedicalResponder
from medassist.db import Base, build_engine, build_session_factory
from medassist.services import ConversationTurnController, MedicalRecordStore


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> MedicalRecordStore:
    return MedicalRecordStore(session_factory, retry_delay=0)


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def controller(store, fake_llm) -> ConversationTurnController:
    return ConversationTurnController(store, MedicalResponder(fake_llm))


@pytest.fixture
def client(store, controller):
    from medassist.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_controller] = lambda: controller
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    def _make(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {user_id}"}

    return _make


@pytest.fixture
def form_fields() -> dict:
    return {
        "name": "Alex Morgan",
        "age": 34,
        "gender": "Male",
        "weight": "80kg",
        "height": "180cm",
        "blood_type": "O+",
        "current_complications": "Occasional headaches",
        "medications": "Ibuprofen as needed",
        "breakfast_details": "Oatmeal and coffee",
    }


@pytest.fixture
def conversation(store, form_fields):
    """
    A conversation owned by user-a with no messages yet.
    """
    store.ensure_user("user-a", email="a@example.com")
    form = store.create_form("user-a", form_fields)
    return store.create_conversation("user-a", form.id)
