# bookmarket/routers/location.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_user
from ..errors import Forbidden
from ..models.user import User
from ..services import locations

router = APIRouter(prefix="/api/location", tags=["location"])


def _coord(payload: dict, key: str) -> float:
    raw = payload.get(key)
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"{key} is required.")
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number.")


@router.post("/sync")
def sync(payload: dict, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    user_id = payload.get("user_id", me.id)
    if str(user_id) != str(me.id):
        raise Forbidden("You can only sync your own location.")

    loc = locations.sync_location(db, me.id, _coord(payload, "latitude"), _coord(payload, "longitude"))
    return {"ok": True, "message": "Location synced successfully.", "location": loc.to_dict()}


@router.get("/{user_id}/history")
def history(user_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = locations.location_history(db, user_id)
    if not rows:
        raise LookupError("No location history found for this user.")
    return {"ok": True, "items": [r.to_dict() for r in rows]}
