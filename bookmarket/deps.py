# bookmarket/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .db import get_db
from .models.user import User
from .services import notify
from .utils.cache import TTLCache
from .utils.security import decode_jwt

_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ------------------ JWT bearer ------------------

def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: Session = Depends(get_db),
) -> User:
    if creds is None or not creds.credentials:
        raise _unauthorized("Not authenticated")

    data = decode_jwt(creds.credentials)
    sub = (data or {}).get("sub")
    if not sub or not str(sub).isdigit():
        raise _unauthorized("Invalid or expired token")

    user = db.get(User, int(sub))
    if not user:
        raise _unauthorized("User no longer exists")
    return user


# ------------------ Shared services ------------------

def get_cache(request: Request) -> TTLCache:
    return request.app.state.cache


def get_mailer():
    return notify.send_email
