from __future__ import annotations

from threading import Lock

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from golden_keys.config import get_settings

Base = declarative_base()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, future=True)

_engine_lock = Lock()
_engine: Engine | None = None


def create_engine_for_url(url: str) -> Engine:
    engine_kwargs: dict[str, object] = {"future": True}
    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url in {"sqlite://", "sqlite:///:memory:"}:
            engine_kwargs["poolclass"] = StaticPool
    return create_engine(url, **engine_kwargs)


def get_engine() -> Engine:
    """Return the process-wide engine, binding ``SessionLocal`` on first use."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = create_engine_for_url(get_settings().database_url)
            SessionLocal.configure(bind=_engine)
        return _engine


def dispose_engine() -> None:
    global _engine
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
            _engine = None
