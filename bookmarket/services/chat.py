from __future__ import annotations

from sqlalchemy import select, update, and_, or_, func
from sqlalchemy.orm import Session

from ..errors import Forbidden
from ..logs import get_logger
from ..models.base import utcnow
from ..models.chat import ChatMessage, UserBlock
from ..models.user import User

log = get_logger(__name__)

MAX_MESSAGE_LEN = 5000


def _user(db: Session, user_id: int) -> User:
    u = db.get(User, user_id)
    if not u:
        raise LookupError("User not found")
    return u


def _block(db: Session, blocker_id: int, blocked_id: int) -> UserBlock | None:
    return db.execute(
        select(UserBlock).where(UserBlock.blocker_id == blocker_id, UserBlock.blocked_id == blocked_id)
    ).scalar_one_or_none()


def _visible_to(me: int):
    # messages the user has not hidden on their own side
    return or_(
        and_(ChatMessage.sender_id == me, ChatMessage.deleted_by_sender.is_(False)),
        and_(ChatMessage.receiver_id == me, ChatMessage.deleted_by_receiver.is_(False)),
    )


def _between(a: int, b: int):
    return or_(
        and_(ChatMessage.sender_id == a, ChatMessage.receiver_id == b),
        and_(ChatMessage.sender_id == b, ChatMessage.receiver_id == a),
    )


# ---------- messages ----------

def send_message(db: Session, sender_id: int, receiver_id: int, text: str) -> ChatMessage:
    text = (text or "").strip()
    if not text:
        raise ValueError("Message text is required.")
    if len(text) > MAX_MESSAGE_LEN:
        raise ValueError(f"Message must be at most {MAX_MESSAGE_LEN} characters.")
    if sender_id == receiver_id:
        raise ValueError("You cannot message yourself.")
    _user(db, receiver_id)

    if _block(db, receiver_id, sender_id):
        log.info("message rejected, sender blocked sender=%s receiver=%s", sender_id, receiver_id)
        raise Forbidden("You cannot send messages to this user. You have been blocked.")
    if _block(db, sender_id, receiver_id):
        raise Forbidden("You have blocked this user. Unblock them to send messages.")

    m = ChatMessage(sender_id=sender_id, receiver_id=receiver_id, body=text)
    db.add(m)
    db.commit()
    db.refresh(m)
    log.info("message sent id=%s sender=%s receiver=%s", m.id, sender_id, receiver_id)
    return m


def conversations(db: Session, me: int) -> list[dict]:
    """One entry per counterpart, most recent conversation first."""
    rows = db.execute(
        select(ChatMessage)
        .where(or_(ChatMessage.sender_id == me, ChatMessage.receiver_id == me), _visible_to(me))
        .order_by(ChatMessage.sent_at.desc(), ChatMessage.id.desc())
    ).scalars().all()

    latest: dict[int, ChatMessage] = {}
    unread: dict[int, int] = {}
    for m in rows:
        other = m.receiver_id if m.sender_id == me else m.sender_id
        latest.setdefault(other, m)
        if m.receiver_id == me and not m.is_read:
            unread[other] = unread.get(other, 0) + 1

    if not latest:
        return []

    names = dict(db.execute(select(User.id, User.name).where(User.id.in_(latest.keys()))).all())
    blocked_by_me = set(db.execute(
        select(UserBlock.blocked_id).where(UserBlock.blocker_id == me)
    ).scalars().all())
    blocked_me = set(db.execute(
        select(UserBlock.blocker_id).where(UserBlock.blocked_id == me)
    ).scalars().all())

    out = []
    for other, m in latest.items():
        out.append({
            "user_id": other,
            "user_name": names.get(other),
            "last_message": m.body,
            "last_message_at": m.sent_at.isoformat() if m.sent_at else None,
            "last_message_is_mine": m.sender_id == me,
            "unread_count": unread.get(other, 0),
            "is_blocked": other in blocked_by_me,
            "has_blocked_me": other in blocked_me,
        })
    return out


def messages(db: Session, me: int, other_id: int, page: int = 1, page_size: int = 50) -> dict:
    """Page 1 holds the newest messages; each page is returned oldest first."""
    _user(db, other_id)
    cond = and_(_between(me, other_id), _visible_to(me))

    total = db.execute(select(func.count()).select_from(ChatMessage).where(cond)).scalar_one()
    rows = db.execute(
        select(ChatMessage)
        .where(cond)
        .order_by(ChatMessage.sent_at.desc(), ChatMessage.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).scalars().all()
    rows = list(reversed(rows))

    return {
        "page": page,
        "page_size": page_size,
        "total_count": total,
        "has_more": page * page_size < total,
        "items": [m.to_dict(me) for m in rows],
    }


def mark_as_read(db: Session, me: int, other_id: int) -> int:
    res = db.execute(
        update(ChatMessage)
        .where(
            ChatMessage.sender_id == other_id,
            ChatMessage.receiver_id == me,
            ChatMessage.is_read.is_(False),
        )
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount


def unread_count(db: Session, me: int) -> int:
    return db.execute(
        select(func.count()).select_from(ChatMessage).where(
            ChatMessage.receiver_id == me,
            ChatMessage.is_read.is_(False),
            ChatMessage.deleted_by_receiver.is_(False),
        )
    ).scalar_one()


# ---------- soft delete ----------

def delete_message(db: Session, me: int, message_id: int) -> ChatMessage:
    m = db.get(ChatMessage, message_id)
    if not m:
        raise LookupError("Message not found")
    now = utcnow()
    if m.sender_id == me:
        m.deleted_by_sender, m.deleted_by_sender_at = True, now
    elif m.receiver_id == me:
        m.deleted_by_receiver, m.deleted_by_receiver_at = True, now
    else:
        raise Forbidden("You are not a participant of this message.")
    db.commit()
    return m


def delete_conversation(db: Session, me: int, other_id: int) -> int:
    _user(db, other_id)
    now = utcnow()
    sent = db.execute(
        update(ChatMessage)
        .where(
            ChatMessage.sender_id == me,
            ChatMessage.receiver_id == other_id,
            ChatMessage.deleted_by_sender.is_(False),
        )
        .values(deleted_by_sender=True, deleted_by_sender_at=now)
        .execution_options(synchronize_session=False)
    )
    received = db.execute(
        update(ChatMessage)
        .where(
            ChatMessage.sender_id == other_id,
            ChatMessage.receiver_id == me,
            ChatMessage.deleted_by_receiver.is_(False),
        )
        .values(deleted_by_receiver=True, deleted_by_receiver_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    count = sent.rowcount + received.rowcount
    log.info("conversation hidden me=%s other=%s messages=%s", me, other_id, count)
    return count


# ---------- blocking ----------

def block_user(db: Session, me: int, target_id: int, reason: str | None = None) -> UserBlock:
    if me == target_id:
        raise ValueError("You cannot block yourself.")
    _user(db, target_id)
    if _block(db, me, target_id):
        raise ValueError("User is already blocked.")
    b = UserBlock(blocker_id=me, blocked_id=target_id, reason=(reason or "").strip() or None)
    db.add(b)
    db.commit()
    db.refresh(b)
    log.info("user blocked blocker=%s blocked=%s", me, target_id)
    return b


def unblock_user(db: Session, me: int, target_id: int) -> None:
    b = _block(db, me, target_id)
    if not b:
        raise LookupError("User is not blocked.")
    db.delete(b)
    db.commit()
    log.info("user unblocked blocker=%s blocked=%s", me, target_id)


def blocked_users(db: Session, me: int) -> list[dict]:
    rows = db.execute(
        select(UserBlock, User)
        .join(User, User.id == UserBlock.blocked_id)
        .where(UserBlock.blocker_id == me)
        .order_by(UserBlock.blocked_at.desc())
    ).all()
    return [
        {
            "user_id": u.id,
            "user_name": u.name,
            "blocked_at": b.blocked_at.isoformat() if b.blocked_at else None,
            "reason": b.reason,
        }
        for b, u in rows
    ]
