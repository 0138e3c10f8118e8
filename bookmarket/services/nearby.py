"""
Nearby listings.

Distance to a listing depends on who is asking, so the database cannot sort by
it. Instead unsold listings are scanned newest-first in batches, each one gets
a distance from its owner's last known location, and only the nearest
`needed` candidates are kept between batches.

Once the scan limit is hit on a large table the result is the nearest among
the scanned listings, not the true global nearest.
"""
from __future__ import annotations

import math
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from ..config import settings
from ..logs import get_logger
from ..models.listing import Listing
from ..utils.cache import TTLCache
from ..utils.geo import haversine_km, format_distance
from .locations import latest_location, latest_locations

log = get_logger(__name__)

LOCATIONS_CACHE_KEY = "all_user_locations"

Candidate = tuple[Any, Optional[float]]


def candidates_needed(page: int, page_size: int) -> int:
    # extra pages of buffer, batches arrive by age and not by distance
    return page * page_size + page_size * 3


def distance_key(candidate: Candidate) -> float:
    distance = candidate[1]
    return math.inf if distance is None else distance


def collect_nearest(
    origin: tuple[float, float],
    locations: dict[int, tuple[float, float]],
    fetch_batch: Callable[[int, int], Sequence[Any]],
    needed: int,
    batch_size: int = 500,
    scan_limit: int = 10_000,
) -> list[Candidate]:
    """
    Return up to `needed` (listing, distance_km) pairs sorted nearest first.

    `fetch_batch(offset, limit)` yields unsold listings newest first; each
    item needs a `user_id`. Listings whose owner has no known location get
    a distance of None and sort after every known distance.
    """
    lat, lon = origin
    kept: list[Candidate] = []
    offset = 0
    processed = 0

    while len(kept) < needed and processed < scan_limit:
        batch = fetch_batch(offset, batch_size)
        if not batch:
            break

        for listing in batch:
            owner_loc = locations.get(listing.user_id)
            distance = haversine_km(lat, lon, owner_loc[0], owner_loc[1]) if owner_loc else None
            kept.append((listing, distance))
            processed += 1

        offset += len(batch)

        if len(kept) >= needed * 2:
            kept.sort(key=distance_key)
            del kept[needed:]

    kept.sort(key=distance_key)
    log.debug("nearby scan processed=%s kept=%s", processed, len(kept))
    return kept


def paginate(items: Sequence[Any], page: int, page_size: int) -> list[Any]:
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size > 0 else 0


# ---------- database glue ----------

def _unsold_batch(db: Session) -> Callable[[int, int], Sequence[Listing]]:
    def fetch(offset: int, limit: int) -> Sequence[Listing]:
        return db.execute(
            select(Listing)
            .options(selectinload(Listing.owner))
            .where(Listing.is_sold.is_(False))
            .order_by(Listing.created_at.desc(), Listing.id.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
    return fetch


def count_unsold(db: Session) -> int:
    return db.execute(
        select(func.count()).select_from(Listing).where(Listing.is_sold.is_(False))
    ).scalar_one()


def cached_locations(db: Session, cache: TTLCache) -> dict[int, tuple[float, float]]:
    return cache.get_or_create(
        LOCATIONS_CACHE_KEY,
        settings.LOCATION_CACHE_TTL_SEC,
        lambda: latest_locations(db),
    )


def _listing_out(listing: Listing, distance: float | None) -> dict:
    out = listing.to_dict()
    owner = listing.owner
    out["owner_name"] = owner.name if owner else None
    out["owner_phone"] = owner.phone if owner else None
    out["distance_km"] = round(distance, 3) if distance is not None else None
    out["distance"] = format_distance(distance)
    return out


def nearby_listings(db: Session, cache: TTLCache, user_id: int, page: int, page_size: int) -> dict:
    me = latest_location(db, user_id)
    if me is None:
        log.warning("nearby requested without location user_id=%s", user_id)
        raise ValueError("User location not found.")

    locations = cached_locations(db, cache)
    log.info("nearby user_id=%s page=%s page_size=%s locations=%s", user_id, page, page_size, len(locations))

    candidates = collect_nearest(
        (me.latitude, me.longitude),
        locations,
        _unsold_batch(db),
        candidates_needed(page, page_size),
        batch_size=settings.NEARBY_BATCH_SIZE,
        scan_limit=settings.NEARBY_SCAN_LIMIT,
    )
    page_items = paginate(candidates, page, page_size)
    total = count_unsold(db)

    return {
        "ok": True,
        "page": page,
        "page_size": page_size,
        "total_count": total,
        "total_pages": total_pages(total, page_size),
        "listings": [_listing_out(l, d) for l, d in page_items],
    }
