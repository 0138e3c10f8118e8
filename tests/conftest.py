# =============================================================================
# tests/conftest.py
# =============================================================================
# Environment is set before any bookmarket import because settings are read
# once at import time.
# =============================================================================

import datetime as dt
import io
import os
import re
import tempfile

_TMP = tempfile.mkdtemp(prefix="bookmarket-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'app.db')}"
os.environ["MEDIA_ROOT"] = os.path.join(_TMP, "media")
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ["ADMIN_PASSWORD"] = "test-admin-key"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookmarket.db import get_db
from bookmarket.deps import get_mailer
from bookmarket.main import app
from bookmarket.models.base import Base
from bookmarket.models.listing import Listing
from bookmarket.models.location import UserLocation
from bookmarket.models.user import User
from bookmarket.utils.cache import TTLCache
from bookmarket.utils.security import create_jwt, hash_secret

OTP_RE = re.compile(r"Your OTP: (\d{6})")


# =============================================================================
# Database
# =============================================================================

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
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


# =============================================================================
# App client
# =============================================================================

class Outbox(list):
    def __call__(self, to, subject, body):
        self.append({"to": to, "subject": subject, "body": body})
        return True

    def last_code(self, to=None):
        for mail in reversed(self):
            if to is None or mail["to"] == to:
                return OTP_RE.search(mail["body"]).group(1)
        raise AssertionError("no OTP mail sent")


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def client(session_factory, outbox):
    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: outbox
    app.state.cache = TTLCache()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def server_error_client(client):
    # same overrides as `client`, but 500s come back as responses
    return TestClient(app, raise_server_exceptions=False)


# =============================================================================
# Data helpers
# =============================================================================

def make_user(db, name="Reader", email=None, password="secret1", verified=True, phone=None):
    u = User(
        name=name,
        email=email or f"{name.lower().replace(' ', '')}@example.com",
        password_hash=hash_secret(password),
        phone=phone,
        is_email_verified=verified,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def set_location(db, user, lat, lon, at=None):
    loc = UserLocation(user_id=user.id, latitude=lat, longitude=lon)
    if at is not None:
        loc.created_at = at
    db.add(loc)
    db.commit()
    return loc


def make_listing(db, owner, title="Book", price=100, sold=False, created_at=None, images=None):
    it = Listing(
        user_id=owner.id,
        title=title,
        description="Good condition",
        category="Fiction",
        price=price,
        is_sold=sold,
        created_at=created_at or dt.datetime(2024, 1, 1),
    )
    it.images = images or []
    db.add(it)
    db.commit()
    db.refresh(it)
    return it


def auth(user):
    return {"Authorization": f"Bearer {create_jwt({'sub': str(user.id), 'email': user.email})}"}


def image_bytes(fmt="PNG", size=(64, 48), color=(200, 30, 30)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png():
    return image_bytes()
