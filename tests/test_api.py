from __future__ import annotations

import pytest

from medassist.chat import FALLBACK_RESPONSE
from medassist.config import get_settings
from medassist.errors import StorageUnavailableError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

FORM = {
    "name": "Alex",
    "age": 34,
    "gender": "Male",
    "weight": "80kg",
    "height": "180cm",
}


def _create_form(client, headers, **overrides) -> str:
    body = dict(FORM, **overrides)
    response = client.post("/api/forms", headers=headers, json=body)
    assert response.status_code == 200, response.text
    return response.json()["formId"]


def _create_conversation(client, headers, form_id: str) -> str:
    response = client.post("/api/conversations", headers=headers, json={"formId": form_id})
    assert response.status_code == 200, response.text
    return response.json()["conversationId"]


def _messages(client, headers, conversation_id: str) -> list:
    response = client.get(f"/api/conversations/{conversation_id}", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()["messages"]


def test_intake_to_chat_scenario(client, auth_headers, fake_llm):
    headers = auth_headers("user-a")
    form_id = _create_form(client, headers)
    conversation_id = _create_conversation(client, headers, form_id)

    first = client.post("/api/chat", headers=headers, json={"conversationId": conversation_id})
    assert first.status_code == 200
    assert first.json()["success"] is True
    assert first.json()["response"] == fake_llm.reply
    assert first.json()["conversationId"] == conversation_id
    assert len(_messages(client, headers, conversation_id)) == 1

    second = client.post(
        "/api/chat",
        headers=headers,
        json={"conversationId": conversation_id, "message": "I have a headache"},
    )
    assert second.status_code == 200
    messages = _messages(client, headers, conversation_id)
    assert len(messages) == 3
    assert [m["role"] for m in messages[-2:]] == ["user", "assistant"]
    assert messages[1]["content"] == "I have a headache"


def test_second_empty_chat_is_rejected(client, auth_headers):
    headers = auth_headers("user-a")
    conversation_id = _create_conversation(client, headers, _create_form(client, headers))

    assert client.post("/api/chat", headers=headers, json={"conversationId": conversation_id}).status_code == 200
    again = client.post("/api/chat", headers=headers, json={"conversationId": conversation_id, "message": ""})
    assert again.status_code == 400
    assert again.json()["detail"] == "Message is required"
    assert len(_messages(client, headers, conversation_id)) == 1


def test_chat_requires_conversation_id(client, auth_headers):
    response = client.post("/api/chat", headers=auth_headers("user-a"), json={"message": "hi"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Conversation ID is required"


def test_provider_failure_returns_fallback_with_success(client, auth_headers, fake_llm):
    headers = auth_headers("user-a")
    conversation_id = _create_conversation(client, headers, _create_form(client, headers))
    fake_llm.error = RuntimeError("model overloaded")

    response = client.post(
        "/api/chat", headers=headers, json={"conversationId": conversation_id, "message": "Hello"}
    )
    assert response.status_code == 200
    assert response.json()["response"] == FALLBACK_RESPONSE
    assert "emergency" in response.json()["response"]
    assert _messages(client, headers, conversation_id)[-1]["content"] == FALLBACK_RESPONSE


def test_conversations_are_isolated_per_user(client, auth_headers):
    owner = auth_headers("user-a")
    intruder = auth_headers("user-b")
    form_id = _create_form(client, owner)
    conversation_id = _create_conversation(client, owner, form_id)
    missing_id = "00000000-0000-4000-8000-000000000000"

    for target in (conversation_id, missing_id):
        assert client.get(f"/api/conversations/{target}", headers=intruder).status_code == 404
        chat = client.post("/api/chat", headers=intruder, json={"conversationId": target, "message": "hi"})
        assert chat.status_code == 404
        assert chat.json()["detail"] == "Conversation not found or unauthorized"

    stolen = client.post("/api/conversations", headers=intruder, json={"formId": form_id})
    assert stolen.status_code == 404
    assert client.get("/api/conversations", headers=intruder).json() == {"conversations": []}


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer "}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer a b"}])
def test_missing_identity_is_unauthorized(client, headers):
    assert client.get("/api/conversations", headers=headers).status_code == 401
    assert client.post("/api/forms", headers=headers, json=FORM).status_code == 401


def test_form_validation_errors(client, auth_headers):
    response = client.post("/api/forms", headers=auth_headers("user-a"), json={"name": "Alex", "age": 400})
    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Missing required fields"
    assert set(body["errors"]) == {"age", "gender", "weight", "height"}


def test_malformed_body_is_bad_request(client, auth_headers):
    response = client.post(
        "/api/chat",
        headers={**auth_headers("user-a"), "Content-Type": "application/json"},
        content="{not json",
    )
    assert response.status_code == 400


def test_create_conversation_requires_form_id(client, auth_headers):
    response = client.post("/api/conversations", headers=auth_headers("user-a"), json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Form ID is required"


def test_form_creates_user_lazily_from_identity_headers(client, auth_headers, store):
    headers = {
        **auth_headers("user-c"),
        "X-User-Email": "casey@example.com",
    }
    _create_form(client, headers, name="Casey Jordan Lee")
    user = store.ensure_user("user-c")
    assert user.email == "casey@example.com"
    assert user.first_name == "Casey"
    assert user.last_name == "Jordan Lee"


def test_list_conversations_with_form_summary(client, auth_headers):
    headers = auth_headers("user-a")
    form_id = _create_form(client, headers)
    older = _create_conversation(client, headers, form_id)
    newer = _create_conversation(client, headers, form_id)

    listed = client.get("/api/conversations", headers=headers).json()["conversations"]
    assert [c["id"] for c in listed] == [newer, older]
    assert listed[0]["medicalForm"] == {"id": form_id, "name": "Alex", "age": 34}
    assert listed[0]["title"] == "Health Consultation - Alex"

    client.post("/api/chat", headers=headers, json={"conversationId": older, "message": "Hi"})
    listed = client.get("/api/conversations", headers=headers).json()["conversations"]
    assert [c["id"] for c in listed] == [older, newer]


def test_conversation_detail_includes_form_and_metrics(client, auth_headers):
    headers = auth_headers("user-a")
    form_id = _create_form(client, headers, bloodType="B+", allergies="Peanuts")
    conversation_id = _create_conversation(client, headers, form_id)

    body = client.get(f"/api/conversations/{conversation_id}", headers=headers).json()
    form = body["conversation"]["medicalForm"]
    assert form["id"] == form_id
    assert form["bloodType"] == "B+"
    assert form["allergies"] == "Peanuts"
    assert form["metrics"] == {"bmi": 24.7, "bmiCategory": "Normal weight"}
    assert body["messages"] == []


def test_chat_flags_emergency_keywords(client, auth_headers):
    headers = auth_headers("user-a")
    conversation_id = _create_conversation(client, headers, _create_form(client, headers))
    response = client.post(
        "/api/chat",
        headers=headers,
        json={"conversationId": conversation_id, "message": "I have chest pain"},
    )
    assert response.json()["emergencyDetected"] is True


def test_chat_accepts_uploaded_images(client, auth_headers, fake_llm):
    headers = auth_headers("user-a")
    conversation_id = _create_conversation(client, headers, _create_form(client, headers))
    uploaded = client.post(
        "/api/upload",
        headers=headers,
        files=[("files", ("rash.png", PNG_BYTES, "image/png"))],
    ).json()["files"]

    response = client.post(
        "/api/chat",
        headers=headers,
        json={"conversationId": conversation_id, "message": "What is this?", "images": uploaded},
    )
    assert response.status_code == 200
    assert fake_llm.last_image_urls == [uploaded[0]["data"]]
    assert _messages(client, headers, conversation_id)[0]["images"][0]["name"] == "rash.png"


def test_upload_inlines_images_as_data_urls(client, auth_headers):
    response = client.post(
        "/api/upload",
        headers=auth_headers("user-a"),
        files=[("files", ("scan.png", PNG_BYTES, "image/png"))],
    )
    assert response.status_code == 200
    files = response.json()["files"]
    assert files[0]["name"] == "scan.png"
    assert files[0]["size"] == len(PNG_BYTES)
    assert files[0]["type"] == "image/png"
    assert files[0]["data"].startswith("data:image/png;base64,iVBORw0KGgo")


def test_upload_rejects_missing_and_unsupported_files(client, auth_headers):
    headers = auth_headers("user-a")
    assert client.post("/api/upload", headers=headers).status_code == 400

    response = client.post(
        "/api/upload",
        headers=headers,
        files=[("files", ("notes.txt", b"hello", "text/plain"))],
    )
    assert response.status_code == 400
    assert "Only JPEG, PNG, and WebP images are allowed" in response.json()["detail"]


def test_upload_rejects_files_over_the_size_limit(client, auth_headers, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_mb", 1)
    oversize = PNG_BYTES + b"\x00" * (1024 * 1024)

    response = client.post(
        "/api/upload",
        headers=auth_headers("user-a"),
        files=[("files", ("huge.png", oversize, "image/png"))],
    )
    assert response.status_code == 400
    assert "File size must be less than 1MB" in response.json()["detail"]


def test_storage_outage_maps_to_503(client, auth_headers, store, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StorageUnavailableError("Database connection failed. Please try again.")

    monkeypatch.setattr(store, "list_conversations", unavailable)
    response = client.get("/api/conversations", headers=auth_headers("user-a"))
    assert response.status_code == 503
    assert response.json()["detail"] == "Database connection failed. Please try again."


def test_unexpected_errors_map_to_generic_500(client, auth_headers, store, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(store, "list_conversations", broken)
    response = client.get("/api/conversations", headers=auth_headers("user-a"))
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


def test_root(client):
    assert client.get("/").json() == {"message": "MedAssist API is running"}
