import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.config import Settings, get_settings
from app.db import Base, get_session_factory
from app.mailer import get_mailer
from app.main import app


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.succeed = True

    def send(self, to_email, subject, html_body):
        self.sent.append({"to": to_email, "subject": subject, "html": html_body})
        return self.succeed


@pytest.fixture
def settings():
    return Settings(_env_file=None, DATABASE_URL="sqlite://", ENVIRONMENT="test", APP_NAME="k-H")


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(settings, session_factory, mailer):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def payload():
    return {
        "email": "a@b.com",
        "password": "Secret123!",
        "firstName": "A",
        "role": "buyer",
        "termsAccepted": True,
    }
