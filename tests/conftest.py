"""
ECDE MIS - Test Configuration and Fixtures
"""
import os
from datetime import date

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Set testing environment
os.environ['ENV'] = 'test'
os.environ['DATABASE_URL'] = 'sqlite:///./test_ecdemis.db'
os.environ['JWT_SECRET'] = 'test-jwt-secret-for-testing-only'
os.environ['CLOUDINARY_CLOUD_NAME'] = 'test-cloud'
os.environ['CLOUDINARY_API_KEY'] = 'test-key'
os.environ['CLOUDINARY_API_SECRET'] = 'test-secret'

from ecdemis.core.db import build_engine, create_tables, get_db
from ecdemis.core.security import create_token
from ecdemis.main import app
from ecdemis.models import Institution, Profile, UserRole
from ecdemis.services.dataclasses import Program
from ecdemis.services.registration import RegistrationService
from ecdemis.services.storage import get_storage, validate_upload

fake = Faker()

TODAY = date(2024, 6, 15)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeStorage:
    """In-memory BlobStorage"""

    def __init__(self):
        self.files = {}

    def upload(self, path, content, content_type):
        validate_upload(content, content_type)
        self.files[path] = (content, content_type)
        return path

    def get_public_url(self, path):
        return f"https://files.test/{path}"


@pytest.fixture
def engine(tmp_path):
    """File-backed so sessions on other threads see the same database"""
    engine = build_engine(f"sqlite:///{tmp_path / 'ecdemis.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    # Attribute access after commit must not reopen a transaction (and its write lock)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@pytest.fixture
def db(session_factory):
    """Create a fresh database session for each test"""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def make_institution(db):
    def _make(unique_code=None, name=None, id=None, **fields):
        institution = Institution(
            id=id,
            name=name or f"{fake.last_name()} ECDE Centre",
            unique_code=unique_code,
            county="Busia",
            **fields,
        )
        db.add(institution)
        db.commit()
        return institution
    return _make


@pytest.fixture
def register(db, storage):
    """Register a person through the real service and commit"""
    def _register(institution_id, program=Program.ECDE, today=TODAY, **fields):
        values = {
            "first_name": fake.first_name(),
            "last_name": fake.last_name(),
            "gender": "female",
            "dob": date(2020, 1, 1),
        }
        values.update(fields)
        record = RegistrationService(db, storage=storage, today=today).register(
            institution_id=institution_id, program=program, **values
        )
        db.commit()
        return record
    return _register


@pytest.fixture
def client(session_factory, storage):
    """Create test client with database and storage overrides"""
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(db):
    """Create a profile with roles and return bearer headers for it"""
    def _headers(institution_id=None, roles=("data_clerk",)):
        user_id = fake.uuid4()
        db.add(Profile(id=user_id, full_name=fake.name(), institution_id=institution_id))
        for role in roles:
            db.add(UserRole(user_id=user_id, role=role))
        db.commit()
        return {'Authorization': f'Bearer {create_token(user_id)}'}
    return _headers
