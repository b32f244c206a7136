"""
Test configuration and fixtures
"""
import base64
import os
from io import BytesIO
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["TEMPLATE_ALLOWED_HOSTS"] = '["example.com"]'

from app.main import app
from app.core.security import create_access_token, get_password_hash
from app.db import models, session
from app.db.models import Base
from app.services.lifecycle import ReportLifecycle, SessionContext
from app.services.record_store import RecordStore

test_engine = create_engine(
    "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Fresh schema for every test"""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def store(db: Session) -> RecordStore:
    return RecordStore(db)


@pytest.fixture
def lifecycle(store: RecordStore) -> ReportLifecycle:
    return ReportLifecycle(store)


def make_user(store: RecordStore, email: str, role: models.UserRole, **fields) -> models.User:
    return store.create_user(
        email=email,
        hashed_password=get_password_hash("secret123"),
        role=role.value,
        **fields,
    )


@pytest.fixture
def trainee(store: RecordStore) -> models.User:
    return make_user(
        store, "anna@example.com", models.UserRole.TRAINEE,
        full_name="Anna Schmidt", first_name="Anna", last_name="Schmidt", company="Muster GmbH",
    )


@pytest.fixture
def trainer(store: RecordStore) -> models.User:
    return make_user(
        store, "max@example.com", models.UserRole.TRAINER,
        full_name="Max Mustermann", first_name="Max", last_name="Mustermann",
    )


@pytest.fixture
def trainee_ctx(trainee: models.User) -> SessionContext:
    return SessionContext(user=trainee)


@pytest.fixture
def trainer_ctx(trainer: models.User) -> SessionContext:
    return SessionContext(user=trainer)


def png_data_url(width: int = 60, height: int = 20) -> str:
    buffer = BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def form_pdf(*field_names: str) -> bytes:
    """A one-page PDF with an empty AcroForm text field per name."""
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    for i, name in enumerate(field_names):
        c.drawString(50, 800 - i * 30, name)
        c.acroForm.textfield(name=name, x=200, y=790 - i * 30, width=300, height=20)
    c.save()
    return buffer.getvalue()


def auth_headers(user: models.User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Test client sharing the test session"""
    def override_get_db():
        yield db

    app.dependency_overrides[session.get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def trainee_headers(trainee: models.User) -> dict:
    return auth_headers(trainee)


@pytest.fixture
def trainer_headers(trainer: models.User) -> dict:
    return auth_headers(trainer)
