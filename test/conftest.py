"""
Shared fixtures: in-memory SQLite database, local attachment storage under
tmp_path, and users of each role with bearer headers.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_TO_FILE"] = "false"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

import pytest
from faker import Faker
from fastapi.testclient import TestClient

import config
from app import app
from database.connection import Database
from database.models import UserRole, ComplaintCategory, ComplaintStatus
from services.auth_service import AuthService
from storage.local_storage import LocalStorage

fake = Faker()

PASSWORD = "password123"


@pytest.fixture
def db():
    config.db = Database("sqlite://")
    config.db.create_tables()
    session = config.db.SessionLocal()
    try:
        yield session
    finally:
        session.close()
        config.db.drop_tables()
        config.db.engine.dispose()
        config.db = None


@pytest.fixture
def storage(tmp_path):
    config.storage = LocalStorage(tmp_path / "uploads")
    yield config.storage
    config.storage = None


@pytest.fixture
def client(db, storage):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make_user(role=UserRole.STUDENT, **overrides):
        fields = {
            "name": fake.name(),
            "email": fake.unique.email(),
            "password": PASSWORD,
            "role": role,
            "student_id": fake.bothify("STU-#####") if role == UserRole.STUDENT else None,
            "department": fake.job()[:100],
        }
        fields.update(overrides)
        return AuthService.create_user(db, **fields)
    return _make_user


@pytest.fixture
def student(make_user):
    return make_user(UserRole.STUDENT)


@pytest.fixture
def other_student(make_user):
    return make_user(UserRole.STUDENT)


@pytest.fixture
def staff(make_user):
    return make_user(UserRole.STAFF)


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


def auth_headers(user):
    access_token, _ = AuthService.create_tokens(user)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def category(db):
    item = ComplaintCategory(name="Facility Issues", description="Classrooms and labs", is_active=True)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture
def statuses(db):
    items = [
        ComplaintStatus(name="Pending", description="Awaiting review", color="#f1c40f"),
        ComplaintStatus(name="In Progress", description="Being handled", color="#9b59b6"),
        ComplaintStatus(name="Resolved", description="Done", color="#2ecc71"),
    ]
    db.add_all(items)
    db.commit()
    for item in items:
        db.refresh(item)
    return {item.name: item for item in items}


@pytest.fixture
def file_complaint(client, category, statuses):
    """POST a complaint as ``user`` and return the response payload."""
    def _file_complaint(user, files=None, **fields):
        data = {
            "category_id": str(category.id),
            "subject": fields.pop("subject", fake.sentence(nb_words=5)),
            "description": fields.pop("description", fake.paragraph()),
        }
        data.update({k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in fields.items()})
        response = client.post("/api/complaints", data=data, files=files, headers=auth_headers(user))
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _file_complaint
