# bookmarket/routers/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_mailer
from ..services import users

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup")
def signup(payload: dict, db: Session = Depends(get_db), mailer=Depends(get_mailer)):
    u = users.signup(db, payload, mailer)
    return {
        "ok": True,
        "user_id": u.id,
        "message": "User created. Please check your email for the verification OTP.",
    }


@router.post("/resend-otp")
def resend_otp(payload: dict, db: Session = Depends(get_db), mailer=Depends(get_mailer)):
    users.resend_otp(db, payload.get("email"), mailer)
    return {"ok": True, "message": "OTP resent successfully."}


@router.post("/verify-email")
def verify_email(payload: dict, db: Session = Depends(get_db)):
    users.verify_email(db, payload.get("email"), payload.get("code"))
    return {"ok": True, "message": "Email verified successfully."}


@router.post("/login")
def login(payload: dict, db: Session = Depends(get_db)):
    token = users.login(db, payload.get("email"), payload.get("password"))
    return {"ok": True, "token": token}


@router.post("/forgot-password")
def forgot_password(payload: dict, db: Session = Depends(get_db), mailer=Depends(get_mailer)):
    users.forgot_password(db, payload.get("email"), mailer)
    return {"ok": True, "message": "Password reset OTP sent."}


@router.post("/verify-reset-otp")
def verify_reset_otp(payload: dict, db: Session = Depends(get_db)):
    users.verify_reset_otp(db, payload.get("email"), payload.get("code"))
    return {"ok": True, "message": "OTP verified. You can now reset your password."}


@router.post("/reset-password")
def reset_password(payload: dict, db: Session = Depends(get_db)):
    users.reset_password(db, payload.get("email"), payload.get("new_password"))
    return {"ok": True, "message": "Password reset successfully."}


@router.get("/profile/{user_id}")
def profile(user_id: int, db: Session = Depends(get_db)):
    u = users.get_user(db, user_id)
    return {"ok": True, "user": u.to_public()}
