from __future__ import annotations

import json

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime, Numeric, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from .base import Base, utcnow


class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    author_or_publication = Column(String(200), nullable=True)
    description = Column(String(4000), nullable=False)
    category = Column(String(100), nullable=False)
    subcategory = Column(String(100), nullable=True)
    price = Column(Numeric(18, 2), nullable=False)

    is_sold = Column(Boolean, default=False, nullable=False)
    is_boosted = Column(Boolean, default=False, nullable=False)
    boost_distance_km = Column(Integer, nullable=True)
    boost_until = Column(Date, nullable=True)
    views = Column(Integer, default=0, nullable=False)

    # JSON array of paths relative to MEDIA_ROOT, order preserved
    image_paths = Column(Text, nullable=False, default="[]")

    created_at = Column(DateTime, default=utcnow, nullable=False)

    owner = relationship("User", backref="listings")

    __table_args__ = (
        Index("ix_listings_sold_created", "is_sold", "created_at"),
    )

    @property
    def images(self) -> list[str]:
        if not self.image_paths:
            return []
        try:
            data = json.loads(self.image_paths)
        except ValueError:
            return []
        return [str(p) for p in data] if isinstance(data, list) else []

    @images.setter
    def images(self, paths: list[str]) -> None:
        self.image_paths = json.dumps(list(paths))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "author_or_publication": self.author_or_publication,
            "description": self.description,
            "category": self.category,
            "subcategory": self.subcategory,
            "price": float(self.price) if self.price is not None else None,
            "is_sold": self.is_sold,
            "is_boosted": self.is_boosted,
            "boost_distance_km": self.boost_distance_km,
            "boost_until": self.boost_until.isoformat() if self.boost_until else None,
            "views": self.views,
            "images": self.images,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
