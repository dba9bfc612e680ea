"""Engine and session factory construction."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from settings import get_settings

from .models import Base


def create_db_engine(database_url: str | None = None, *, echo: bool | None = None) -> Engine:
    """
    Build a SQLAlchemy engine from settings.

    In-memory SQLite gets a single shared connection so the scheduler thread
    and the inline dispatch thread see the same database.
    """
    settings = get_settings()
    url = database_url or settings.database_url
    kwargs: dict = {"echo": settings.database_echo if echo is None else echo, "future": True}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    return create_engine(url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def init_db(engine: Engine) -> None:
    """Create all tables. Deployments with migrations should skip this."""
    Base.metadata.create_all(engine)
