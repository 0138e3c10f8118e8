# bookmarket/routers/listings.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_cache, get_current_user
from ..errors import Forbidden
from ..models.user import User
from ..services import listings, nearby
from ..utils.cache import TTLCache

router = APIRouter(prefix="/api/listings", tags=["listings"])


def _read_files(files: Optional[List[UploadFile]]) -> list[tuple[str, bytes]]:
    out = []
    for f in files or []:
        # browsers send an empty part when no file was picked
        if not f.filename:
            continue
        out.append((f.filename, f.file.read()))
    return out


# ---------- search ----------

@router.get("/nearby/{user_id}")
def nearby_listings(
    user_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    me: User = Depends(get_current_user),
    cache: TTLCache = Depends(get_cache),
    db: Session = Depends(get_db),
):
    return nearby.nearby_listings(db, cache, user_id, page, page_size)


@router.get("/user/{user_id}")
def user_listings(user_id: int, db: Session = Depends(get_db)):
    rows = listings.user_listings(db, user_id)
    return {"ok": True, "items": [it.to_dict() for it in rows]}


# ---------- create / edit ----------

@router.post("")
def create_listing(
    title: Optional[str] = Form(None),
    author_or_publication: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    subcategory: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    user_id: Optional[int] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    me: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if user_id is not None and user_id != me.id:
        raise Forbidden("You can only create listings for yourself.")

    payload = {
        "title": title,
        "author_or_publication": author_or_publication,
        "category": category,
        "subcategory": subcategory,
        "description": description,
        "price": price,
    }
    it = listings.create_listing(db, me.id, payload, _read_files(images))
    return {"ok": True, "id": it.id, "listing": it.to_dict()}


@router.put("/{listing_id}")
def edit_listing(
    listing_id: int,
    title: Optional[str] = Form(None),
    author_or_publication: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    subcategory: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    existing_images: Optional[List[str]] = Form(None),
    new_images: Optional[List[UploadFile]] = File(None),
    me: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payload = {
        "title": title,
        "author_or_publication": author_or_publication,
        "category": category,
        "subcategory": subcategory,
        "description": description,
        "price": price,
    }
    it = listings.edit_listing(db, listing_id, me.id, payload, existing_images, _read_files(new_images))
    return {"ok": True, "message": "Listing updated successfully.", "listing": it.to_dict()}


# ---------- state ----------

@router.patch("/{listing_id}/sold")
def mark_sold(listing_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    listings.set_sold(db, listing_id, me.id, True)
    return {"ok": True, "message": "Listing marked as sold."}


@router.patch("/{listing_id}/unsold")
def mark_unsold(listing_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    listings.set_sold(db, listing_id, me.id, False)
    return {"ok": True, "message": "Listing marked as unsold."}


@router.put("/{listing_id}/boost")
def boost(listing_id: int, payload: dict, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    raw = payload.get("distance_km")
    try:
        distance_km = int(raw)
    except (TypeError, ValueError):
        raise ValueError("distance_km must be a whole number of kilometres.")
    it = listings.boost_listing(db, listing_id, me.id, distance_km)
    return {
        "ok": True,
        "message": f"Listing boosted for {listings.BOOST_DAYS} days.",
        "boost_distance_km": it.boost_distance_km,
        "boost_until": it.boost_until.isoformat(),
    }


@router.delete("/{listing_id}")
def delete_listing(listing_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    removed = listings.delete_listing(db, listing_id, me.id)
    return {"ok": True, "message": "Listing deleted successfully.", "images_removed": removed}


@router.post("/{listing_id}/view")
def register_view(listing_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    counted, views = listings.register_view(db, listing_id, me.id)
    return {
        "ok": True,
        "counted": counted,
        "views": views,
        "message": "View counted" if counted else "Owner view not counted",
    }
