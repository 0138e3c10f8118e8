# bookmarket/realtime.py
import asyncio
import json
from collections import defaultdict
from typing import AsyncIterator

from .logs import get_logger

log = get_logger(__name__)

QUEUE_SIZE = 100


def format_event(event: str, payload: dict) -> str:
    data = json.dumps(payload, ensure_ascii=False)
    # SSE wire format: event: <name>\ndata: <json>\n\n
    return f"event: {event}\ndata: {data}\n\n"


class _Hub:
    """Per-user fan-out of chat events to open SSE streams."""

    def __init__(self) -> None:
        self._subs: "dict[int, set[asyncio.Queue[str]]]" = defaultdict(set)

    async def publish(self, user_id: int, event: str, payload: dict) -> None:
        msg = format_event(event, payload)
        for q in list(self._subs.get(user_id, ())):
            try:
                q.put_nowait(msg)
            except asyncio.QueueFull:
                log.warning("sse queue full, dropping %s for user_id=%s", event, user_id)

    async def subscribe(self, user_id: int, keepalive: float = 15.0) -> AsyncIterator[str]:
        q: "asyncio.Queue[str]" = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subs[user_id].add(q)
        try:
            while True:
                try:
                    yield await asyncio.wait_for(q.get(), timeout=keepalive)
                except asyncio.TimeoutError:
                    yield ": ping\n\n"
        finally:
            subs = self._subs.get(user_id)
            if subs is not None:
                subs.discard(q)
                if not subs:
                    self._subs.pop(user_id, None)

    def subscribers(self, user_id: int) -> int:
        return len(self._subs.get(user_id, ()))


hub = _Hub()
