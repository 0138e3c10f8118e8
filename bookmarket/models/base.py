from __future__ import annotations

import datetime as dt

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> dt.datetime:
    # naive UTC, stored the same way on sqlite and postgres
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)
