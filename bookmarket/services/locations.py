from __future__ import annotations

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from ..logs import get_logger
from ..models.location import UserLocation
from ..models.user import User

log = get_logger(__name__)


def sync_location(db: Session, user_id: int, latitude: float, longitude: float) -> UserLocation:
    if not db.get(User, user_id):
        raise LookupError("User not found")
    if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
        raise ValueError("Latitude must be within [-90, 90] and longitude within [-180, 180].")

    loc = UserLocation(user_id=user_id, latitude=latitude, longitude=longitude)
    db.add(loc)
    db.commit()
    db.refresh(loc)
    log.info("location synced user_id=%s", user_id)
    return loc


def latest_location(db: Session, user_id: int) -> UserLocation | None:
    return db.execute(
        select(UserLocation)
        .where(UserLocation.user_id == user_id)
        .order_by(UserLocation.created_at.desc(), UserLocation.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def location_history(db: Session, user_id: int) -> list[UserLocation]:
    return db.execute(
        select(UserLocation)
        .where(UserLocation.user_id == user_id)
        .order_by(UserLocation.created_at.desc(), UserLocation.id.desc())
    ).scalars().all()


def latest_locations(db: Session) -> dict[int, tuple[float, float]]:
    """Newest (lat, lon) per user, for every user that ever synced a location."""
    rn = func.row_number().over(
        partition_by=UserLocation.user_id,
        order_by=(UserLocation.created_at.desc(), UserLocation.id.desc()),
    ).label("rn")
    ranked = select(
        UserLocation.user_id, UserLocation.latitude, UserLocation.longitude, rn
    ).subquery()
    rows = db.execute(
        select(ranked.c.user_id, ranked.c.latitude, ranked.c.longitude).where(ranked.c.rn == 1)
    ).all()
    return {r.user_id: (r.latitude, r.longitude) for r in rows}
