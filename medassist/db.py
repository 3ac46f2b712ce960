# medassist/db.py
from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from medassist.config import get_settings


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for `database_url`.

    SQLite connections are shared across the request thread pool, and an
    in-memory database has to live on a single connection to be visible
    to every session.
    """
    kwargs = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(database_url, **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    # Store methods hand ORM rows back after the transaction closes
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


settings = get_settings()

engine = build_engine(settings.database_url)

SessionLocal = build_session_factory(engine)


class Base(DeclarativeBase):
    """
    Base class for ORM models.
    """
    pass


# JSONB on Postgres, plain JSON on everything else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
