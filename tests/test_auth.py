import datetime as dt

import pytest
from sqlalchemy import select

from bookmarket.models.user import User, UserVerification, VerificationKind
from bookmarket.utils.security import decode_jwt

from conftest import make_user


def _signup(client, email="reader@example.com", password="pass1234", name="Reader"):
    return client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})


def _verified(client, outbox, email="reader@example.com", password="pass1234"):
    _signup(client, email=email, password=password)
    code = outbox.last_code(email)
    client.post("/api/auth/verify-email", json={"email": email, "code": code})


# ---------- signup / verify ----------

def test_signup_sends_otp(client, outbox, db):
    r = _signup(client)

    assert r.status_code == 200, r.text
    assert len(outbox) == 1
    assert outbox[0]["to"] == "reader@example.com"
    u = db.execute(select(User).where(User.email == "reader@example.com")).scalar_one()
    assert u.is_email_verified is False
    assert u.password_hash != "pass1234"


def test_signup_normalises_email_and_rejects_duplicates(client):
    assert _signup(client, email="Reader@Example.com ").status_code == 200
    r = _signup(client, email="reader@example.com")
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already exists."


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "a@example.com", "password": "pass1234"},
        {"name": "A", "password": "pass1234"},
        {"name": "A", "email": "not-an-email", "password": "pass1234"},
        {"name": "A", "email": "a@example.com", "password": "abc"},
        {"name": "A", "email": "a@example.com", "password": "x" * 73},
    ],
)
def test_signup_validation(client, payload):
    assert client.post("/api/auth/signup", json=payload).status_code == 400


def test_verify_email_and_login(client, outbox):
    _signup(client)
    code = outbox.last_code()

    r = client.post("/api/auth/verify-email", json={"email": "reader@example.com", "code": code})
    assert r.status_code == 200

    r = client.post("/api/auth/login", json={"email": "reader@example.com", "password": "pass1234"})
    assert r.status_code == 200
    claims = decode_jwt(r.json()["token"])
    assert claims["email"] == "reader@example.com"
    assert claims["sub"].isdigit()
    assert "exp" in claims


def test_login_before_verification_is_rejected(client):
    _signup(client)
    r = client.post("/api/auth/login", json={"email": "reader@example.com", "password": "pass1234"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Email not verified."


def test_login_with_wrong_password(client, outbox):
    _verified(client, outbox)
    r = client.post("/api/auth/login", json={"email": "reader@example.com", "password": "nope"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid credentials."


def test_wrong_code_is_rejected(client, outbox):
    _signup(client)
    code = outbox.last_code()
    wrong = "000000" if code != "000000" else "111111"
    r = client.post("/api/auth/verify-email", json={"email": "reader@example.com", "code": wrong})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid OTP."


def test_code_must_be_six_digits(client):
    _signup(client)
    r = client.post("/api/auth/verify-email", json={"email": "reader@example.com", "code": "12ab"})
    assert r.status_code == 400


def test_resend_invalidates_previous_code(client, outbox):
    _signup(client)
    first = outbox.last_code()
    assert client.post("/api/auth/resend-otp", json={"email": "reader@example.com"}).status_code == 200
    second = outbox.last_code()

    if first != second:
        r = client.post("/api/auth/verify-email", json={"email": "reader@example.com", "code": first})
        assert r.status_code == 400
    r = client.post("/api/auth/verify-email", json={"email": "reader@example.com", "code": second})
    assert r.status_code == 200


def test_resend_for_verified_user_is_rejected(client, outbox):
    _verified(client, outbox)
    r = client.post("/api/auth/resend-otp", json={"email": "reader@example.com"})
    assert r.status_code == 400


def test_expired_code_is_rejected(client, outbox, db):
    _signup(client)
    code = outbox.last_code()
    v = db.execute(select(UserVerification)).scalar_one()
    v.expires_at = dt.datetime(2000, 1, 1)
    db.commit()

    r = client.post("/api/auth/verify-email", json={"email": "reader@example.com", "code": code})
    assert r.status_code == 400
    assert r.json()["detail"] == "Expired OTP."


# ---------- password reset ----------

def test_password_reset_flow(client, outbox):
    _verified(client, outbox)
    assert client.post("/api/auth/forgot-password", json={"email": "reader@example.com"}).status_code == 200
    code = outbox.last_code()

    r = client.post("/api/auth/verify-reset-otp", json={"email": "reader@example.com", "code": code})
    assert r.status_code == 200
    r = client.post("/api/auth/reset-password", json={"email": "reader@example.com", "new_password": "newpass99"})
    assert r.status_code == 200, r.text

    old = client.post("/api/auth/login", json={"email": "reader@example.com", "password": "pass1234"})
    new = client.post("/api/auth/login", json={"email": "reader@example.com", "password": "newpass99"})
    assert old.status_code == 400
    assert new.status_code == 200


def test_reset_without_verified_otp_is_rejected(client, outbox):
    _verified(client, outbox)
    client.post("/api/auth/forgot-password", json={"email": "reader@example.com"})
    r = client.post("/api/auth/reset-password", json={"email": "reader@example.com", "new_password": "newpass99"})
    assert r.status_code == 400
    assert r.json()["detail"] == "OTP not verified."


def test_verified_reset_otp_works_once(client, outbox):
    _verified(client, outbox)
    client.post("/api/auth/forgot-password", json={"email": "reader@example.com"})
    client.post("/api/auth/verify-reset-otp", json={"email": "reader@example.com", "code": outbox.last_code()})

    first = client.post("/api/auth/reset-password", json={"email": "reader@example.com", "new_password": "newpass99"})
    second = client.post("/api/auth/reset-password", json={"email": "reader@example.com", "new_password": "other999"})
    assert first.status_code == 200
    assert second.status_code == 400


def test_reset_password_minimum_length(client, outbox):
    _verified(client, outbox)
    client.post("/api/auth/forgot-password", json={"email": "reader@example.com"})
    client.post("/api/auth/verify-reset-otp", json={"email": "reader@example.com", "code": outbox.last_code()})
    r = client.post("/api/auth/reset-password", json={"email": "reader@example.com", "new_password": "12345"})
    assert r.status_code == 400


def test_forgot_password_unknown_email(client):
    assert client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"}).status_code == 400


def test_otp_stored_hashed(client, outbox, db):
    _signup(client)
    code = outbox.last_code()
    v = db.execute(select(UserVerification)).scalar_one()
    assert v.kind == VerificationKind.EMAIL
    assert v.code_hash != code


# ---------- profile / bearer ----------

def test_public_profile(client, db):
    u = make_user(db, "Profile Person", phone="12345")
    r = client.get(f"/api/auth/profile/{u.id}")
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "Profile Person"
    assert "password_hash" not in r.json()["user"]


def test_profile_unknown_user(client):
    assert client.get("/api/auth/profile/9999").status_code == 404


def test_garbage_token_is_401(client):
    r = client.get("/api/chat/unread-count", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
