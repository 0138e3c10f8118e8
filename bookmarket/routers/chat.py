# bookmarket/routers/chat.py
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_user
from ..models.user import User
from ..realtime import hub
from ..services import chat

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _user_id(payload: dict, key: str) -> int:
    raw = payload.get(key)
    if isinstance(raw, bool) or not str(raw or "").isdigit():
        raise ValueError(f"{key} is required.")
    return int(raw)


# ---------- messages ----------

@router.post("/messages")
def send_message(
    payload: dict,
    background_tasks: BackgroundTasks,
    me: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    m = chat.send_message(db, me.id, _user_id(payload, "receiver_id"), payload.get("text"))
    background_tasks.add_task(hub.publish, m.receiver_id, "message", m.to_dict(m.receiver_id))
    return {"ok": True, "message": m.to_dict(me.id)}


@router.get("/conversations")
def conversations(me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"ok": True, "items": chat.conversations(db, me.id)}


@router.get("/messages/{other_id}")
def messages(
    other_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    me: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"ok": True, **chat.messages(db, me.id, other_id, page, page_size)}


@router.post("/messages/{other_id}/read")
def mark_read(
    other_id: int,
    background_tasks: BackgroundTasks,
    me: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = chat.mark_as_read(db, me.id, other_id)
    if count:
        background_tasks.add_task(hub.publish, other_id, "read", {"reader_id": me.id, "count": count})
    return {"ok": True, "marked": count}


@router.get("/unread-count")
def unread_count(me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"ok": True, "unread_count": chat.unread_count(db, me.id)}


# ---------- soft delete ----------

@router.delete("/messages/item/{message_id}")
def delete_message(message_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    chat.delete_message(db, me.id, message_id)
    return {"ok": True, "message": "Message deleted."}


@router.delete("/conversations/{other_id}")
def delete_conversation(other_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    count = chat.delete_conversation(db, me.id, other_id)
    return {"ok": True, "deleted": count}


# ---------- blocking ----------

@router.post("/blocks")
def block(payload: dict, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    b = chat.block_user(db, me.id, _user_id(payload, "user_id"), payload.get("reason"))
    return {"ok": True, "message": "User blocked.", "blocked_id": b.blocked_id}


@router.delete("/blocks/{user_id}")
def unblock(user_id: int, me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    chat.unblock_user(db, me.id, user_id)
    return {"ok": True, "message": "User unblocked."}


@router.get("/blocks")
def blocks(me: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"ok": True, "items": chat.blocked_users(db, me.id)}


# ---------- Real-time stream (SSE) ----------

@router.get("/stream")
def stream(me: User = Depends(get_current_user)):
    user_id = me.id

    async def gen():
        async for msg in hub.subscribe(user_id):
            yield msg

    return StreamingResponse(gen(), media_type="text/event-stream")
