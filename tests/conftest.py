import base64
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OBJECTARIUM_API_KEY"] = "test-api-key"
os.environ["SENDER_SECRET"] = "test-sender-secret"
os.environ["BLOB_BACKEND"] = "database"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from objectarium import gateway
from objectarium.auth import sign_sender
from objectarium.db import SessionLocal
from objectarium.main import app
from objectarium.models import Base
from objectarium.schemas import InstantiateMsg
from objectarium.storage import DatabaseBlobStore

# one in-memory database shared by the test session and the app threads
engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
SessionLocal.configure(bind=engine)


@pytest.fixture
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(tables):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blobs():
    return DatabaseBlobStore()


@pytest.fixture
def make_bucket(db):
    def _make(name="foo", **kwargs):
        gateway.instantiate(db, InstantiateMsg(bucket=name, **kwargs))
        return name
    return _make


@pytest.fixture
def client(tables):
    return TestClient(app)


def sender_headers(sender):
    return {
        "X-Api-Key": "test-api-key",
        "X-Sender": sender,
        "X-Sender-Signature": sign_sender(sender),
    }


API_HEADERS = {"X-Api-Key": "test-api-key"}


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
