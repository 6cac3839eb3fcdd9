import uuid
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    # No dashes: route and bus ids are embedded in dash-separated schedule ids.
    return uuid.uuid4().hex


class Database:
    """Store handle: owns the engine and hands out sessions.

    Constructed explicitly (app lifespan, start_api, tests) instead of at import
    time, so nothing connects until ``connect()`` is called.
    """

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine_kwargs = engine_kwargs
        self.engine: Engine | None = None
        self._sessionmaker: sessionmaker | None = None

    def connect(self) -> "Database":
        if self.engine is not None:
            return self
        kwargs = dict(self.engine_kwargs)
        if self.url.startswith("sqlite"):
            # For SQLite, check_same_thread=False is required for multithreaded web servers
            kwargs.setdefault("connect_args", {"check_same_thread": False})
        else:
            kwargs.setdefault("pool_pre_ping", True)
        self.engine = create_engine(self.url, **kwargs)
        self._sessionmaker = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        return self

    def disconnect(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self._sessionmaker = None

    def session(self) -> Session:
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected")
        return self._sessionmaker()

    def create_all(self) -> None:
        import app.models  # noqa: F401  registers every table on Base.metadata
        Base.metadata.create_all(bind=self.engine)


def get_db(request: Request) -> Iterator[Session]:
    """Database session dependency."""
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
