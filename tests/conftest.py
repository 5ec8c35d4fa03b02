import os
from typing import Generator
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# keep the app's own engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from bistro.db import Base, create_store_engine, get_db
from bistro.main import app
from bistro import models
from bistro.auth import TokenClaims, issue_token
from bistro.payment import MockPaymentGateway, get_payment_gateway


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_store_engine("sqlite://", poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def gateway():
    return MockPaymentGateway()


@pytest.fixture(scope="function")
def client(db_session, gateway):
    # Override dependencies to use the same session and a fake processor
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    def _make(email: str, role: str = "user") -> models.User:
        user = models.User(name=email.split("@")[0], email=email, role=role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make


@pytest.fixture
def auth_header():
    def _header(email: str) -> dict:
        return {"Authorization": f"Bearer {issue_token(TokenClaims(email=email))}"}
    return _header


@pytest.fixture
def admin_header(make_user, auth_header):
    make_user("boss@bistro.com", role="admin")
    return auth_header("boss@bistro.com")
