# medassist/services/store.py
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, TypeVar

from sqlalchemy import exc as sa_exc
from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from medassist.db import Base
from medassist.errors import NotFoundError, StorageUnavailableError
from medassist.models import Conversation, MedicalForm, Message, User, utcnow


logger = logging.getLogger(__name__)

T = TypeVar("T")

FORM_FIELDS = (
    "name",
    "age",
    "gender",
    "weight",
    "height",
    "blood_type",
    "current_complications",
    "breakfast_details",
    "lunch_details",
    "dinner_details",
    "medications",
    "allergies",
    "chronic_conditions",
    "uploaded_images",
)

# Lower-cased fragments of driver messages that mean "couldn't talk to
# the server", as opposed to "the server rejected the statement".
_TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "connection refused",
    "could not connect",
    "connection reset",
    "connection is closed",
    "server closed the connection",
    "terminating connection",
    "network is unreachable",
    "database is locked",
    "fetch failed",
)


def is_transient_db_error(error: BaseException) -> bool:
    if isinstance(error, (sa_exc.TimeoutError, sa_exc.DisconnectionError)):
        return True
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    if isinstance(error, sa_exc.DBAPIError):
        if error.connection_invalidated:
            return True
        if isinstance(error, sa_exc.OperationalError):
            message = str(error.orig or error).lower()
            return any(marker in message for marker in _TRANSIENT_MARKERS)
    return False


@contextmanager
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine) -> None:
    """
    Create all tables. Call this once at startup.
    """
    Base.metadata.create_all(bind=bind)


class MedicalRecordStore:
    """
    Persistence for users, medical forms, conversations and messages.

    Every public method is one transaction. Connectivity failures are
    retried with linear backoff; anything else propagates untouched.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Retry plumbing
    # ------------------------------------------------------------------

    def _run(self, operation: str, work: Callable[[Session], T]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                with db_session(self.session_factory) as session:
                    return work(session)
            except Exception as error:
                if not is_transient_db_error(error):
                    raise
                logger.warning(
                    "Database operation %s failed (attempt %d/%d): %s",
                    operation,
                    attempt,
                    self.max_attempts,
                    error,
                )
                if attempt == self.max_attempts:
                    raise StorageUnavailableError(
                        "Database connection failed. Please try again."
                    ) from error
                self._sleep(self.retry_delay * attempt)
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Users and forms
    # ------------------------------------------------------------------

    def ensure_user(
        self,
        user_id: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Return the user row for `user_id`, creating it on first sight.
        An existing row is returned as-is; profile data is not refreshed.
        """

        def work(session: Session) -> User:
            user = session.get(User, user_id)
            if user is not None:
                return user
            user = User(
                id=user_id,
                email=email,
                first_name=first_name,
                last_name=last_name,
            )
            session.add(user)
            session.flush()
            logger.info("Created user record %s", user_id)
            return user

        try:
            return self._run("ensure_user", work)
        except sa_exc.IntegrityError:
            # Another request created the row between our read and insert
            existing = self._run("ensure_user", lambda session: session.get(User, user_id))
            if existing is None:
                raise
            return existing

    def create_form(self, user_id: str, fields: Mapping[str, Any]) -> MedicalForm:
        values: Dict[str, Any] = {key: fields.get(key) for key in FORM_FIELDS}

        def work(session: Session) -> MedicalForm:
            now = utcnow()
            form = MedicalForm(user_id=user_id, created_at=now, updated_at=now, **values)
            session.add(form)
            session.flush()  # to get form.id
            return form

        return self._run("create_form", work)

    def get_form(self, form_id: str) -> Optional[MedicalForm]:
        return self._run("get_form", lambda session: session.get(MedicalForm, form_id))

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(self, user_id: str, form_id: str) -> Conversation:
        """
        Open a conversation on one of the caller's forms. A form that is
        missing and a form owned by someone else look the same.
        """

        def work(session: Session) -> Conversation:
            form = session.get(MedicalForm, form_id)
            if form is None or form.user_id != user_id:
                raise NotFoundError("Form not found or unauthorized")

            now = utcnow()
            conversation = Conversation(
                user_id=user_id,
                form_id=form_id,
                title=f"Health Consultation - {form.name}",
                created_at=now,
                updated_at=now,
            )
            session.add(conversation)
            session.flush()
            return conversation

        return self._run("create_conversation", work)

    def list_conversations(
        self, user_id: str
    ) -> List[Tuple[Conversation, Optional[MedicalForm]]]:
        def work(session: Session):
            stmt = (
                select(Conversation, MedicalForm)
                .outerjoin(MedicalForm, Conversation.form_id == MedicalForm.id)
                .where(Conversation.user_id == user_id)
                .order_by(Conversation.updated_at.desc(), Conversation.created_at.desc())
            )
            return [(row[0], row[1]) for row in session.execute(stmt).all()]

        return self._run("list_conversations", work)

    def get_conversation_with_form(
        self, conversation_id: str
    ) -> Optional[Tuple[Conversation, Optional[MedicalForm]]]:
        def work(session: Session):
            stmt = (
                select(Conversation, MedicalForm)
                .outerjoin(MedicalForm, Conversation.form_id == MedicalForm.id)
                .where(Conversation.id == conversation_id)
                .limit(1)
            )
            row = session.execute(stmt).first()
            if row is None:
                return None
            return row[0], row[1]

        return self._run("get_conversation_with_form", work)

    def touch_conversation(self, conversation_id: str, now: Optional[datetime] = None) -> None:
        def work(session: Session) -> None:
            session.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(updated_at=now or utcnow())
            )

        self._run("touch_conversation", work)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def list_messages(self, conversation_id: str) -> List[Message]:
        def work(session: Session) -> List[Message]:
            stmt = (
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
            )
            return list(session.scalars(stmt))

        return self._run("list_messages", work)

    def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        images: Optional[List[dict]] = None,
    ) -> Message:
        def work(session: Session) -> Message:
            message = Message(
                conversation_id=conversation_id,
                role=role,
                content=content,
                images=images or None,
                created_at=utcnow(),
            )
            session.add(message)
            session.flush()
            return message

        return self._run("append_message", work)
