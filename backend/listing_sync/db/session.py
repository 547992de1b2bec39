from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from listing_sync.core.config import get_settings


class _DatabaseState:
    """Engine and session factory, built on first use from the current settings."""

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self.factory: sessionmaker | None = None

    def build_engine(self) -> Engine:
        settings = get_settings()
        dsn = settings.postgres_dsn
        options: dict = {"pool_pre_ping": True}
        if dsn.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
            if settings.app_env.lower() == "test":
                options["poolclass"] = NullPool
        return create_engine(dsn, **options)

    def session_factory(self) -> sessionmaker:
        if self.factory is None:
            if self.engine is None:
                self.engine = self.build_engine()
            self.factory = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, class_=Session)
        return self.factory

    def clear(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.factory = None


_state = _DatabaseState()


def reset_engine_state() -> None:
    _state.clear()


def bind_session_factory_for_tests(factory: sessionmaker) -> None:
    _state.clear()
    _state.factory = factory
    _state.engine = factory.kw.get("bind")


@contextmanager
def session_scope() -> Iterator[Session]:
    """Worker-side session: rolled back on error, always closed."""
    db = _state.session_factory()()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_db() -> Generator[Session]:
    with session_scope() as db:
        yield db
