from __future__ import annotations

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from interviewer.core.config import get_settings


class Base(DeclarativeBase):
    pass


settings = get_settings()
_engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_all() -> None:
    # Ensure models are loaded so metadata is populated
    import interviewer.domain.models  # noqa: F401
    Base.metadata.create_all(bind=_engine)
