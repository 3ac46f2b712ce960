from __future__ import annotations

import pytest
from sqlalchemy import exc as sa_exc

from medassist.errors import NotFoundError, StorageUnavailableError
from medassist.services.store import MedicalRecordStore, is_transient_db_error


class FlakySessionFactory:
    """
    Raises `error` for the first `failures` sessions, then behaves.
    """

    def __init__(self, inner, failures: int, error: Exception):
        self.inner = inner
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise self.error
        return self.inner()


def _connection_refused() -> sa_exc.OperationalError:
    return sa_exc.OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_append_and_list_messages_in_insertion_order(store, conversation):
    store.append_message(conversation.id, "assistant", "first")
    store.append_message(conversation.id, "user", "second", images=[{"data": "data:image/png;base64,AA=="}])
    store.append_message(conversation.id, "assistant", "third")

    messages = store.list_messages(conversation.id)
    assert [m.content for m in messages] == ["first", "second", "third"]
    assert messages[1].images == [{"data": "data:image/png;base64,AA=="}]
    assert messages[0].images is None

    # Reading again never reorders or drops anything
    assert [m.id for m in store.list_messages(conversation.id)] == [m.id for m in messages]


def test_role_is_restricted_to_user_and_assistant(store, conversation):
    with pytest.raises(sa_exc.IntegrityError):
        store.append_message(conversation.id, "system", "nope")


def test_ensure_user_is_idempotent(store):
    first = store.ensure_user("user-b", email="b@example.com", first_name="Bea")
    again = store.ensure_user("user-b", email="other@example.com")
    assert first.id == again.id == "user-b"
    assert again.email == "b@example.com"


def test_create_conversation_derives_title_and_checks_owner(store, form_fields):
    store.ensure_user("user-a")
    store.ensure_user("user-b")
    form = store.create_form("user-a", form_fields)

    conversation = store.create_conversation("user-a", form.id)
    assert conversation.title == "Health Consultation - Alex Morgan"
    assert conversation.form_id == form.id

    with pytest.raises(NotFoundError):
        store.create_conversation("user-b", form.id)
    with pytest.raises(NotFoundError):
        store.create_conversation("user-a", "00000000-0000-4000-8000-000000000000")


def test_get_conversation_with_form_joins_form(store, conversation):
    found = store.get_conversation_with_form(conversation.id)
    assert found is not None
    conv, form = found
    assert conv.id == conversation.id
    assert form.name == "Alex Morgan"
    assert store.get_conversation_with_form("00000000-0000-4000-8000-000000000000") is None


def test_list_conversations_newest_updated_first(store, form_fields):
    store.ensure_user("user-a")
    form = store.create_form("user-a", form_fields)
    older = store.create_conversation("user-a", form.id)
    newer = store.create_conversation("user-a", form.id)

    assert [c.id for c, _ in store.list_conversations("user-a")] == [newer.id, older.id]

    store.touch_conversation(older.id)
    rows = store.list_conversations("user-a")
    assert [c.id for c, _ in rows] == [older.id, newer.id]
    assert rows[0][1].id == form.id
    assert store.list_conversations("someone-else") == []


def test_transient_errors_are_retried_with_linear_backoff(session_factory, conversation):
    delays = []
    flaky = FlakySessionFactory(session_factory, failures=2, error=_connection_refused())
    store = MedicalRecordStore(flaky, max_attempts=3, retry_delay=1.0, sleep=delays.append)

    assert store.list_messages(conversation.id) == []
    assert flaky.calls == 3
    assert delays == [1.0, 2.0]


def test_exhausted_retries_raise_storage_unavailable(session_factory):
    delays = []
    flaky = FlakySessionFactory(session_factory, failures=10, error=_connection_refused())
    store = MedicalRecordStore(flaky, max_attempts=3, retry_delay=0.5, sleep=delays.append)

    with pytest.raises(StorageUnavailableError) as excinfo:
        store.list_conversations("user-a")
    assert excinfo.value.status_code == 503
    assert flaky.calls == 3
    assert delays == [0.5, 1.0]


def test_non_transient_errors_are_not_retried(session_factory):
    delays = []
    error = sa_exc.IntegrityError("INSERT", {}, Exception("duplicate key value"))
    flaky = FlakySessionFactory(session_factory, failures=1, error=error)
    store = MedicalRecordStore(flaky, sleep=delays.append)

    with pytest.raises(sa_exc.IntegrityError):
        store.list_conversations("user-a")
    assert flaky.calls == 1
    assert delays == []


@pytest.mark.parametrize(
    "error, expected",
    [
        (_connection_refused(), True),
        (sa_exc.OperationalError("SELECT 1", {}, Exception("canceling statement due to statement timeout")), True),
        (sa_exc.OperationalError("SELECT 1", {}, Exception("no such table: users")), False),
        (sa_exc.TimeoutError("QueuePool limit reached"), True),
        (ConnectionRefusedError(), True),
        (sa_exc.IntegrityError("INSERT", {}, Exception("violates foreign key")), False),
        (ValueError("bad"), False),
    ],
)
def test_is_transient_db_error(error, expected):
    assert is_transient_db_error(error) is expected
