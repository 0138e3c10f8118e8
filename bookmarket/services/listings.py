from __future__ import annotations

import datetime as dt
from decimal import Decimal, InvalidOperation

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import Forbidden
from ..logs import get_logger
from ..models.listing import Listing
from ..models.user import User
from . import images as image_store
from .locations import latest_location

log = get_logger(__name__)

BOOST_DAYS = 30
BOOST_MIN_KM = 1
BOOST_MAX_KM = 500


def _clean(value) -> str | None:
    return (value or "").strip() or None


def _price(raw) -> Decimal:
    try:
        price = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValueError("Selling price must be a number.")
    if not price.is_finite() or price <= 0 or price > settings.MAX_PRICE:
        raise ValueError(f"Selling price must be greater than 0 and at most {settings.MAX_PRICE:,}.")
    return price.quantize(Decimal("0.01"))


def _check_image_count(n: int) -> None:
    if n < 1 or n > settings.MAX_LISTING_IMAGES:
        raise ValueError(f"You must upload between 1 and {settings.MAX_LISTING_IMAGES} images.")


def get_listing(db: Session, listing_id: int) -> Listing:
    it = db.get(Listing, listing_id)
    if not it:
        raise LookupError("Listing not found")
    return it


def _owned(db: Session, listing_id: int, user_id: int) -> Listing:
    it = get_listing(db, listing_id)
    if it.user_id != user_id:
        raise Forbidden("You can only change your own listings.")
    return it


# ---------- create / edit ----------

def create_listing(db: Session, owner_id: int, payload: dict, files: list[tuple[str, bytes]]) -> Listing:
    if not db.get(User, owner_id):
        raise LookupError("User not found")
    if latest_location(db, owner_id) is None:
        raise ValueError("User location not found. Please update your location first.")

    title = _clean(payload.get("title"))
    category = _clean(payload.get("category"))
    description = _clean(payload.get("description"))
    if not title:
        raise ValueError("Title is required.")
    if not category:
        raise ValueError("Category is required.")
    if not description:
        raise ValueError("Description is required.")
    price = _price(payload.get("price"))
    _check_image_count(len(files))

    paths = image_store.save_images(files)

    it = Listing(
        user_id=owner_id,
        title=title,
        author_or_publication=_clean(payload.get("author_or_publication")),
        description=description,
        category=category,
        subcategory=_clean(payload.get("subcategory")),
        price=price,
        is_sold=False,
        is_boosted=False,
        views=0,
    )
    it.images = paths
    db.add(it)
    try:
        db.commit()
    except Exception:
        db.rollback()
        image_store.delete_images(paths)
        raise
    db.refresh(it)
    log.info("listing created id=%s owner=%s images=%s", it.id, owner_id, len(paths))
    return it


def edit_listing(
    db: Session,
    listing_id: int,
    user_id: int,
    payload: dict,
    existing_images: list[str] | None,
    new_files: list[tuple[str, bytes]],
) -> Listing:
    """
    existing_images=None keeps every stored image. A list keeps only the
    stored paths it names (unknown paths are ignored) and deletes the rest.
    """
    it = _owned(db, listing_id, user_id)

    price = None
    if payload.get("price") not in (None, ""):
        price = _price(payload.get("price"))

    stored = it.images
    if existing_images:
        wanted = set(existing_images)
        keep = [p for p in stored if p in wanted]
    else:
        keep = list(stored)
    removed = [p for p in stored if p not in keep]

    _check_image_count(len(keep) + len(new_files))
    added = image_store.save_images(new_files) if new_files else []

    for field in ("title", "author_or_publication", "category", "description", "subcategory"):
        value = _clean(payload.get(field))
        if value:
            setattr(it, field, value)
    if price is not None:
        it.price = price
    it.images = keep + added

    try:
        db.commit()
    except Exception:
        db.rollback()
        image_store.delete_images(added)
        raise
    db.refresh(it)

    image_store.delete_images(removed)
    log.info("listing edited id=%s kept=%s added=%s removed=%s", it.id, len(keep), len(added), len(removed))
    return it


# ---------- state changes ----------

def set_sold(db: Session, listing_id: int, user_id: int, sold: bool) -> Listing:
    it = _owned(db, listing_id, user_id)
    if it.is_sold == sold:
        raise ValueError(
            "This listing is already marked as sold." if sold else "This listing is already marked as unsold."
        )
    it.is_sold = sold
    db.commit()
    db.refresh(it)
    log.info("listing id=%s sold=%s", it.id, sold)
    return it


def boost_listing(db: Session, listing_id: int, user_id: int, distance_km: int) -> Listing:
    if distance_km < BOOST_MIN_KM or distance_km > BOOST_MAX_KM:
        raise ValueError(f"Boosting distance must be between {BOOST_MIN_KM} and {BOOST_MAX_KM} km.")
    it = _owned(db, listing_id, user_id)
    if it.is_sold:
        raise ValueError("Cannot boost a sold listing.")
    it.is_boosted = True
    it.boost_distance_km = distance_km
    it.boost_until = dt.date.today() + dt.timedelta(days=BOOST_DAYS)
    db.commit()
    db.refresh(it)
    log.info("listing boosted id=%s km=%s until=%s", it.id, distance_km, it.boost_until)
    return it


def delete_listing(db: Session, listing_id: int, user_id: int) -> int:
    it = _owned(db, listing_id, user_id)
    paths = it.images
    db.delete(it)
    db.commit()
    deleted = image_store.delete_images(paths)
    log.info("listing deleted id=%s images_removed=%s/%s", listing_id, deleted, len(paths))
    return deleted


def register_view(db: Session, listing_id: int, viewer_id: int) -> tuple[bool, int]:
    """
    Count one view unless the viewer owns the listing.
    Returns (counted, current view count).
    """
    res = db.execute(
        update(Listing)
        .where(Listing.id == listing_id, Listing.user_id != viewer_id)
        .values(views=Listing.views + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    views = db.execute(select(Listing.views).where(Listing.id == listing_id)).scalar_one_or_none()
    if views is None:
        raise LookupError("Listing not found")
    return res.rowcount > 0, views


def user_listings(db: Session, user_id: int) -> list[Listing]:
    return db.execute(
        select(Listing)
        .where(Listing.user_id == user_id, Listing.is_sold.is_(False))
        .order_by(Listing.created_at.desc(), Listing.id.desc())
    ).scalars().all()
