import os

# Settings are cached on first import, so the environment must be in place first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_AUDIENCE"] = "authenticated"
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["OPENAI_API_KEY"] = ""
os.environ["AUTO_CREATE_SCHEMA"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from interviewer.core.security import create_access_token
from interviewer.domain.models import CreditPackage
from interviewer.infrastructure.db import Base, get_db
from interviewer.main import app


@pytest.fixture
def engine(tmp_path):
    # A file database so that worker threads share it.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def packages(db):
    db.add_all(
        [
            CreditPackage(id="starter", name="Starter Pack", description="Trial", credits=100, price_cents=999),
            CreditPackage(id="professional", name="Professional Pack", credits=150, price_cents=2499),
            CreditPackage(id="legacy", name="Legacy Pack", credits=10, price_cents=100, is_active=False),
        ]
    )
    db.commit()


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _make(user_id: str = "user-1", email: str | None = "user@example.com") -> dict:
        token = create_access_token(subject=user_id, email=email)
        return {"Authorization": f"Bearer {token}"}

    return _make
