from __future__ import annotations

import datetime as dt
import re
import secrets
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..logs import get_logger
from ..models.base import utcnow
from ..models.user import User, UserVerification, VerificationKind
from ..utils.security import create_jwt, hash_secret, check_secret

log = get_logger(__name__)

Mailer = Callable[[str, str, str], object]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_SUBJECTS = {
    VerificationKind.EMAIL: "Bookmarket email verification",
    VerificationKind.PASSWORD_RESET: "Bookmarket password reset",
}


def _norm_email(email: str | None) -> str:
    return (email or "").strip().lower()


def get_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == _norm_email(email))).scalar_one_or_none()


def get_user(db: Session, user_id: int) -> User:
    u = db.get(User, user_id)
    if not u:
        raise LookupError("User not found")
    return u


def _otp_body(user: User, code: str, kind: VerificationKind) -> str:
    if kind == VerificationKind.EMAIL:
        intro = "Welcome to Bookmarket. Please verify your email using the OTP below."
    else:
        intro = "We received a request to reset your password. Use the OTP below to continue."
    return (
        f"Hello {user.name},\n\n{intro}\n\n"
        f"Your OTP: {code}\n\n"
        f"This OTP is valid for {settings.OTP_TTL_MIN} minutes."
    )


def issue_otp(db: Session, user: User, kind: VerificationKind, mailer: Mailer) -> UserVerification:
    # previous unused codes of the same kind stop working
    db.execute(
        update(UserVerification)
        .where(
            UserVerification.user_id == user.id,
            UserVerification.kind == kind,
            UserVerification.is_used.is_(False),
        )
        .values(is_used=True)
    )
    code = f"{secrets.randbelow(900000) + 100000}"
    v = UserVerification(
        user_id=user.id,
        code_hash=hash_secret(code),
        kind=kind,
        expires_at=utcnow() + dt.timedelta(minutes=settings.OTP_TTL_MIN),
        is_used=False,
    )
    db.add(v)
    db.commit()
    db.refresh(v)

    log.info("otp issued user_id=%s kind=%s", user.id, kind.value)
    mailer(user.email, _SUBJECTS[kind], _otp_body(user, code, kind))
    return v


def _check_code_format(code: str | None) -> str:
    code = (code or "").strip()
    if not code:
        raise ValueError("OTP code is required.")
    if len(code) != 6 or not code.isdigit():
        raise ValueError("OTP code must be 6 digits.")
    return code


def _consume_otp(db: Session, user: User, code: str, kind: VerificationKind) -> UserVerification:
    candidates = db.execute(
        select(UserVerification)
        .where(
            UserVerification.user_id == user.id,
            UserVerification.kind == kind,
            UserVerification.is_used.is_(False),
        )
        .order_by(UserVerification.created_at.desc(), UserVerification.id.desc())
    ).scalars().all()

    match = next((v for v in candidates if check_secret(code, v.code_hash)), None)
    if not match:
        log.info("otp rejected user_id=%s kind=%s", user.id, kind.value)
        raise ValueError("Invalid OTP.")
    if match.expires_at <= utcnow():
        raise ValueError("Expired OTP.")
    match.is_used = True
    match.verified_at = utcnow()
    return match


def _check_password(password: str | None, min_len: int) -> str:
    password = password or ""
    if not password.strip():
        raise ValueError("Password is required.")
    if len(password) < min_len:
        raise ValueError(f"Password must be at least {min_len} characters.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password is too long.")
    return password


# ---------- signup / verification ----------

def signup(db: Session, payload: dict, mailer: Mailer) -> User:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("Name is required.")
    email = _norm_email(payload.get("email"))
    if not email:
        raise ValueError("Email is required.")
    if not _EMAIL_RE.match(email):
        raise ValueError("Email is not valid.")
    password = _check_password(payload.get("password"), 4)

    if get_by_email(db, email):
        raise ValueError("Email already exists.")

    u = User(
        name=name,
        email=email,
        password_hash=hash_secret(password),
        phone=(payload.get("phone") or "").strip() or None,
        is_email_verified=False,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    log.info("user created user_id=%s", u.id)

    issue_otp(db, u, VerificationKind.EMAIL, mailer)
    return u


def resend_otp(db: Session, email: str, mailer: Mailer) -> None:
    if not _norm_email(email):
        raise ValueError("Email is required.")
    u = get_by_email(db, email)
    if not u:
        raise ValueError("Email not found.")
    if u.is_email_verified:
        raise ValueError("Email already verified.")
    issue_otp(db, u, VerificationKind.EMAIL, mailer)


def verify_email(db: Session, email: str, code: str) -> User:
    if not _norm_email(email):
        raise ValueError("Email is required.")
    code = _check_code_format(code)
    u = get_by_email(db, email)
    if not u:
        raise ValueError("Invalid email.")
    if u.is_email_verified:
        raise ValueError("Already verified.")

    _consume_otp(db, u, code, VerificationKind.EMAIL)
    u.is_email_verified = True
    db.commit()
    log.info("email verified user_id=%s", u.id)
    return u


def login(db: Session, email: str, password: str) -> str:
    u = get_by_email(db, email)
    if not u or not check_secret(password or "", u.password_hash):
        log.warning("failed login email=%s", _norm_email(email))
        raise ValueError("Invalid credentials.")
    if not u.is_email_verified:
        log.warning("unverified login user_id=%s", u.id)
        raise ValueError("Email not verified.")
    log.info("login ok user_id=%s", u.id)
    return create_jwt({"sub": str(u.id), "email": u.email})


# ---------- password reset ----------

def forgot_password(db: Session, email: str, mailer: Mailer) -> None:
    u = get_by_email(db, email)
    if not u:
        raise ValueError("Email not found.")
    issue_otp(db, u, VerificationKind.PASSWORD_RESET, mailer)


def verify_reset_otp(db: Session, email: str, code: str) -> None:
    if not _norm_email(email):
        raise ValueError("Email is required.")
    code = _check_code_format(code)
    u = get_by_email(db, email)
    if not u:
        raise ValueError("Invalid email.")
    _consume_otp(db, u, code, VerificationKind.PASSWORD_RESET)
    db.commit()


def reset_password(db: Session, email: str, new_password: str) -> None:
    if not _norm_email(email):
        raise ValueError("Email is required.")
    if not (new_password or "").strip():
        raise ValueError("New password is required.")
    password = _check_password(new_password, 6)
    u = get_by_email(db, email)
    if not u:
        raise ValueError("Invalid email.")

    v = db.execute(
        select(UserVerification)
        .where(
            UserVerification.user_id == u.id,
            UserVerification.kind == VerificationKind.PASSWORD_RESET,
            UserVerification.verified_at.is_not(None),
            UserVerification.redeemed.is_(False),
        )
        .order_by(UserVerification.verified_at.desc(), UserVerification.id.desc())
        .limit(1)
    ).scalar_one_or_none()
    if not v:
        raise ValueError("OTP not verified.")
    if v.verified_at + dt.timedelta(minutes=settings.OTP_TTL_MIN) <= utcnow():
        raise ValueError("OTP verification expired. Request a new code.")

    u.password_hash = hash_secret(password)
    v.redeemed = True
    db.commit()
    log.info("password reset user_id=%s", u.id)
