import pytest

from conftest import auth, make_user


@pytest.fixture
def alice(db):
    return make_user(db, "Alice")


@pytest.fixture
def bob(db):
    return make_user(db, "Bob")


def _send(client, sender, receiver, text="hi"):
    return client.post("/api/chat/messages", json={"receiver_id": receiver.id, "text": text}, headers=auth(sender))


# ---------- send ----------

def test_send_message(client, alice, bob):
    r = _send(client, alice, bob, "  Is the book still available?  ")
    assert r.status_code == 200, r.text
    m = r.json()["message"]
    assert m["text"] == "Is the book still available?"
    assert m["is_mine"] is True
    assert m["is_read"] is False


@pytest.mark.parametrize("text", ["", "   ", "x" * 5001])
def test_send_rejects_bad_text(client, alice, bob, text):
    assert _send(client, alice, bob, text).status_code == 400


def test_longest_message_is_accepted(client, alice, bob):
    assert _send(client, alice, bob, "x" * 5000).status_code == 200


def test_cannot_message_self(client, alice):
    assert _send(client, alice, alice).status_code == 400


def test_unknown_receiver_is_404(client, alice):
    r = client.post("/api/chat/messages", json={"receiver_id": 9999, "text": "hi"}, headers=auth(alice))
    assert r.status_code == 404


# ---------- blocking ----------

def test_blocked_sender_is_rejected(client, alice, bob):
    client.post("/api/chat/blocks", json={"user_id": alice.id, "reason": "spam"}, headers=auth(bob))

    r = _send(client, alice, bob)

    assert r.status_code == 403
    assert "have been blocked" in r.json()["detail"]


def test_blocker_cannot_send_either(client, alice, bob):
    client.post("/api/chat/blocks", json={"user_id": bob.id}, headers=auth(alice))

    r = _send(client, alice, bob)

    assert r.status_code == 403
    assert "You have blocked this user" in r.json()["detail"]


def test_block_rules(client, alice, bob):
    assert client.post("/api/chat/blocks", json={"user_id": alice.id}, headers=auth(alice)).status_code == 400
    assert client.post("/api/chat/blocks", json={"user_id": 9999}, headers=auth(alice)).status_code == 404
    assert client.post("/api/chat/blocks", json={"user_id": bob.id}, headers=auth(alice)).status_code == 200
    assert client.post("/api/chat/blocks", json={"user_id": bob.id}, headers=auth(alice)).status_code == 400


def test_block_list_and_unblock(client, alice, bob):
    client.post("/api/chat/blocks", json={"user_id": bob.id, "reason": "rude"}, headers=auth(alice))

    items = client.get("/api/chat/blocks", headers=auth(alice)).json()["items"]
    assert [(i["user_id"], i["user_name"], i["reason"]) for i in items] == [(bob.id, "Bob", "rude")]

    assert client.delete(f"/api/chat/blocks/{bob.id}", headers=auth(alice)).status_code == 200
    assert client.delete(f"/api/chat/blocks/{bob.id}", headers=auth(alice)).status_code == 404
    assert _send(client, alice, bob).status_code == 200


# ---------- history / conversations ----------

def test_history_pages_newest_first_oldest_within_page(client, alice, bob):
    for i in range(5):
        _send(client, alice if i % 2 == 0 else bob, bob if i % 2 == 0 else alice, f"m{i}")

    page1 = client.get(f"/api/chat/messages/{bob.id}?page=1&page_size=2", headers=auth(alice)).json()
    page3 = client.get(f"/api/chat/messages/{bob.id}?page=3&page_size=2", headers=auth(alice)).json()

    assert [m["text"] for m in page1["items"]] == ["m3", "m4"]
    assert page1["total_count"] == 5
    assert page1["has_more"] is True
    assert [m["text"] for m in page3["items"]] == ["m0"]
    assert page3["has_more"] is False


def test_conversations_summary(client, db, alice, bob):
    carol = make_user(db, "Carol")
    _send(client, bob, alice, "first from bob")
    _send(client, carol, alice, "hello from carol")
    _send(client, bob, alice, "second from bob")

    items = client.get("/api/chat/conversations", headers=auth(alice)).json()["items"]

    assert [c["user_name"] for c in items] == ["Bob", "Carol"]
    assert items[0]["last_message"] == "second from bob"
    assert items[0]["unread_count"] == 2
    assert items[0]["last_message_is_mine"] is False
    assert items[1]["unread_count"] == 1


def test_conversations_carry_block_flags(client, alice, bob):
    _send(client, bob, alice, "hello")
    client.post("/api/chat/blocks", json={"user_id": alice.id}, headers=auth(bob))

    item = client.get("/api/chat/conversations", headers=auth(alice)).json()["items"][0]

    assert item["is_blocked"] is False
    assert item["has_blocked_me"] is True


def test_mark_as_read_and_unread_count(client, alice, bob):
    _send(client, bob, alice, "one")
    _send(client, bob, alice, "two")
    _send(client, alice, bob, "mine")

    assert client.get("/api/chat/unread-count", headers=auth(alice)).json()["unread_count"] == 2
    r = client.post(f"/api/chat/messages/{bob.id}/read", headers=auth(alice))
    assert r.json()["marked"] == 2
    assert client.get("/api/chat/unread-count", headers=auth(alice)).json()["unread_count"] == 0
    assert client.get("/api/chat/unread-count", headers=auth(bob)).json()["unread_count"] == 1


# ---------- soft delete ----------

def test_delete_message_hides_it_for_one_side_only(client, alice, bob):
    mid = _send(client, alice, bob, "oops").json()["message"]["id"]

    assert client.delete(f"/api/chat/messages/item/{mid}", headers=auth(alice)).status_code == 200

    mine = client.get(f"/api/chat/messages/{bob.id}", headers=auth(alice)).json()["items"]
    theirs = client.get(f"/api/chat/messages/{alice.id}", headers=auth(bob)).json()["items"]
    assert mine == []
    assert [m["text"] for m in theirs] == ["oops"]


def test_delete_message_by_stranger_is_forbidden(client, db, alice, bob):
    mallory = make_user(db, "Mallory")
    mid = _send(client, alice, bob).json()["message"]["id"]
    r = client.delete(f"/api/chat/messages/item/{mid}", headers=auth(mallory))
    assert r.status_code == 403
    assert r.json()["ok"] is False
    assert client.delete("/api/chat/messages/item/9999", headers=auth(alice)).status_code == 404


def test_delete_conversation(client, alice, bob):
    _send(client, alice, bob, "a")
    _send(client, bob, alice, "b")

    r = client.delete(f"/api/chat/conversations/{bob.id}", headers=auth(alice))

    assert r.json()["deleted"] == 2
    assert client.get("/api/chat/conversations", headers=auth(alice)).json()["items"] == []
    assert len(client.get("/api/chat/conversations", headers=auth(bob)).json()["items"]) == 1
    assert client.get("/api/chat/unread-count", headers=auth(alice)).json()["unread_count"] == 0

    # new messages show up again after a delete
    _send(client, bob, alice, "c")
    items = client.get(f"/api/chat/messages/{bob.id}", headers=auth(alice)).json()["items"]
    assert [m["text"] for m in items] == ["c"]


def test_chat_requires_token(client):
    assert client.get("/api/chat/conversations").status_code == 401
