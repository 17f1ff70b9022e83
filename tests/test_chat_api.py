"""
Tests for the chat, sticker and websocket endpoints.
"""

import asyncio
from pathlib import Path

import pytest
from fastapi import WebSocketDisconnect
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.api.v1.endpoints.websocket_chat import websocket_endpoint
from app.config import settings
from app.core.exceptions import TransportError
from app.core.security import create_access_token
from app.crud.message import crud_message
from app.crud.sticker import crud_sticker
from app.services.realtime import realtime_hub


def post_text(client, headers, sender, receiver, content):
    return client.post(
        "/api/v1/chat/messages",
        json={"receiver_id": receiver, "content": content},
        headers=headers(sender),
    )


class TestAuth:
    def test_missing_token_is_401(self, client):
        response = client.get("/api/v1/chat/conversations")
        assert response.status_code == 401

    def test_garbage_token_is_401(self, client):
        response = client.get(
            "/api/v1/chat/conversations",
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    def test_token_without_subject_is_401(self, client):
        token = create_access_token({"role": "creator"})
        response = client.get(
            "/api/v1/chat/unread-count",
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401


class TestMessages:
    def test_send_then_fetch(self, client, headers):
        response = post_text(client, headers, "u1", "u2", "Hello")
        assert response.status_code == 201
        sent = response.json()
        assert sent["sender_id"] == "u1"
        assert sent["is_read"] is False

        response = client.get("/api/v1/chat/conversations/u1/messages", headers=headers("u2"))
        assert response.status_code == 200
        body = response.json()
        assert [m["id"] for m in body["messages"]] == [sent["id"]]
        assert body["has_more"] is False

    def test_self_message_is_400(self, client, headers):
        response = post_text(client, headers, "u1", "u1", "me")
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_empty_text_is_400(self, client, headers):
        response = post_text(client, headers, "u1", "u2", "   ")
        assert response.status_code == 400

    def test_unknown_content_type_is_422(self, client, headers):
        response = client.post(
            "/api/v1/chat/messages",
            json={"receiver_id": "u2", "content": "x", "content_type": "video"},
            headers=headers("u1"),
        )
        assert response.status_code == 422

    def test_rate_limited_is_429_with_retry_after(self, client, headers, limiter):
        for i in range(5):
            assert post_text(client, headers, "u1", "u2", f"m{i}").status_code == 201

        response = post_text(client, headers, "u1", "u2", "m5")

        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "rate_limited"
        assert body["detail"]
        assert int(response.headers["Retry-After"]) >= 1

        check = client.get("/api/v1/chat/conversations/u2/rate-limit", headers=headers("u1"))
        assert check.json()["allowed"] is False

    def test_rate_limit_check_allows_fresh_pair(self, client, headers):
        response = client.get("/api/v1/chat/conversations/u2/rate-limit", headers=headers("u1"))
        assert response.status_code == 200
        assert response.json() == {"allowed": True, "reason": None, "retry_after": None}

    def test_mark_read_and_unread_count(self, client, headers):
        post_text(client, headers, "u1", "u2", "one")
        post_text(client, headers, "u1", "u2", "two")

        assert client.get("/api/v1/chat/unread-count", headers=headers("u2")).json() == {"unread_count": 2}

        response = client.post("/api/v1/chat/conversations/u1/mark-read", headers=headers("u2"))
        assert response.status_code == 200
        assert response.json()["read_count"] == 2

        again = client.post("/api/v1/chat/conversations/u1/mark-read", headers=headers("u2"))
        assert again.json()["read_count"] == 0
        assert client.get("/api/v1/chat/unread-count", headers=headers("u2")).json() == {"unread_count": 0}

    def test_history_paging(self, client, headers):
        ids = [post_text(client, headers, "u1", "u2", f"m{i}").json()["id"] for i in range(4)]

        page = client.get(
            "/api/v1/chat/conversations/u2/messages",
            params={"limit": 2},
            headers=headers("u1"),
        ).json()
        assert [m["id"] for m in page["messages"]] == ids[2:]
        assert page["has_more"] is True

        older = client.get(
            "/api/v1/chat/conversations/u2/messages",
            params={"limit": 2, "before_id": ids[2]},
            headers=headers("u1"),
        ).json()
        assert [m["id"] for m in older["messages"]] == ids[:2]
        assert older["has_more"] is False


class TestConversationsEndpoint:
    def test_inbox_rows_and_total(self, client, headers, profiles):
        post_text(client, headers, "u2", "u1", "hi ana")
        post_text(client, headers, "u3", "u1", "hello")

        response = client.get("/api/v1/chat/conversations", headers=headers("u1"))

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert body["total_unread"] == 2
        assert body["conversations"][0]["partner_id"] == "u3"
        assert body["conversations"][1]["partner_name"] == "Ben Ito"


class TestDatabaseFailures:
    def test_conversation_list_query_failure_is_503(self, client, headers, monkeypatch):
        def broken(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(Session, "execute", broken)

        response = client.get("/api/v1/chat/conversations", headers=headers("u1"))

        assert response.status_code == 503
        assert response.json()["code"] == "transport_error"

    def test_history_query_failure_is_503(self, client, headers, monkeypatch):
        def broken(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(Session, "scalars", broken)

        response = client.get("/api/v1/chat/conversations/u2/messages", headers=headers("u1"))

        assert response.status_code == 503
        assert response.json() == {
            "detail": "Could not load conversation",
            "code": "transport_error",
        }

    def test_unwrapped_database_error_is_503(self, client, headers, monkeypatch):
        def broken(db, *, user_id):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(crud_message, "get_latest_per_partner", broken)

        response = client.get("/api/v1/chat/conversations", headers=headers("u1"))

        assert response.status_code == 503
        assert response.json()["code"] == "transport_error"


class TestImages:
    def test_image_upload_sends_message(self, client, headers, png_bytes):
        response = client.post(
            "/api/v1/chat/messages/image",
            data={"receiver_id": "u2"},
            files={"file": ("still.png", png_bytes, "image/png")},
            headers=headers("u1"),
        )

        assert response.status_code == 201
        message = response.json()
        assert message["content_type"] == "image"
        assert message["content"] == "[image]"
        assert message["media_url"].startswith("https://cdn.test/uploads/chat/images/")
        assert message["media_url"].endswith(".png")

    def test_bad_upload_creates_no_message(self, client, headers):
        response = client.post(
            "/api/v1/chat/messages/image",
            data={"receiver_id": "u2"},
            files={"file": ("script.png", b"#!/bin/sh\necho hi", "image/png")},
            headers=headers("u1"),
        )

        assert response.status_code == 502
        assert response.json()["code"] == "upload_error"
        history = client.get("/api/v1/chat/conversations/u2/messages", headers=headers("u1")).json()
        assert history["messages"] == []

    def test_disallowed_extension_is_rejected(self, client, headers):
        response = client.post(
            "/api/v1/chat/messages/image",
            data={"receiver_id": "u2"},
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=headers("u1"),
        )
        assert response.status_code == 502


class TestStickers:
    def upload(self, client, headers, owner, png_bytes, name="clapper"):
        return client.post(
            "/api/v1/stickers",
            data={"name": name},
            files={"file": ("clapper.png", png_bytes, "image/png")},
            headers=headers(owner),
        )

    def test_create_list_delete(self, client, headers, png_bytes):
        created = self.upload(client, headers, "u1", png_bytes)
        assert created.status_code == 201
        sticker = created.json()
        assert sticker["owner_id"] == "u1"
        assert sticker["image_url"].startswith("https://cdn.test/uploads/chat/stickers/")

        listing = client.get("/api/v1/stickers", headers=headers("u1")).json()
        assert listing["total"] == 1

        assert client.get("/api/v1/stickers", headers=headers("u2")).json()["total"] == 0

        deleted = client.delete(f"/api/v1/stickers/{sticker['id']}", headers=headers("u1"))
        assert deleted.status_code == 204
        assert client.get("/api/v1/stickers", headers=headers("u1")).json()["total"] == 0

    def test_failed_insert_removes_upload(self, client, headers, png_bytes, monkeypatch):
        folder = Path(settings.UPLOAD_DIR) / "chat" / "stickers"
        before = set(folder.iterdir()) if folder.exists() else set()

        def broken_create(*args, **kwargs):
            raise TransportError("db down")

        monkeypatch.setattr(crud_sticker, "create_sticker", broken_create)
        response = self.upload(client, headers, "u1", png_bytes)

        assert response.status_code == 503
        assert set(folder.iterdir()) == before

    def test_cannot_delete_someone_elses_sticker(self, client, headers, png_bytes):
        sticker = self.upload(client, headers, "u1", png_bytes).json()

        response = client.delete(f"/api/v1/stickers/{sticker['id']}", headers=headers("u2"))

        assert response.status_code == 403

    def test_delete_missing_sticker_is_404(self, client, headers):
        response = client.delete("/api/v1/stickers/999", headers=headers("u1"))
        assert response.status_code == 404

    def test_send_sticker_keeps_copy_after_delete(self, client, headers, png_bytes):
        sticker = self.upload(client, headers, "u1", png_bytes).json()

        response = client.post(
            f"/api/v1/chat/messages/sticker/{sticker['id']}",
            json={"receiver_id": "u2"},
            headers=headers("u1"),
        )
        assert response.status_code == 201
        message = response.json()
        assert message["content"] == "[sticker] clapper"
        assert message["media_url"] == sticker["image_url"]

        client.delete(f"/api/v1/stickers/{sticker['id']}", headers=headers("u1"))

        history = client.get("/api/v1/chat/conversations/u1/messages", headers=headers("u2")).json()
        assert history["messages"][0]["media_url"] == sticker["image_url"]

    def test_cannot_send_someone_elses_sticker(self, client, headers, png_bytes):
        sticker = self.upload(client, headers, "u1", png_bytes).json()

        response = client.post(
            f"/api/v1/chat/messages/sticker/{sticker['id']}",
            json={"receiver_id": "u1"},
            headers=headers("u2"),
        )

        assert response.status_code == 403


class TestWebSocket:
    def test_requires_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/v1/ws/chat"):
                pass

    def test_rejects_invalid_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/v1/ws/chat?token=bogus"):
                pass

    def test_ping_pong_and_bad_json(self, client):
        token = create_access_token({"sub": "u1"})
        with client.websocket_connect(f"/api/v1/ws/chat?token={token}&partner_id=u2") as ws:
            hello = ws.receive_json()
            assert hello["type"] == "connection"
            assert hello["user_id"] == "u1"

            ws.send_text('{"type": "ping"}')
            assert ws.receive_json() == {"type": "pong"}

            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"

    def test_new_message_and_read_receipt_are_pushed(self, client, headers):
        token = create_access_token({"sub": "u1"})
        with client.websocket_connect(f"/api/v1/ws/chat?token={token}&partner_id=u2") as ws:
            assert ws.receive_json()["type"] == "connection"

            sent = post_text(client, headers, "u1", "u2", "live hello").json()

            event = ws.receive_json()
            assert event["type"] == "new_message"
            assert event["message"]["id"] == sent["id"]
            assert event["message"]["content"] == "live hello"

            client.post("/api/v1/chat/conversations/u1/mark-read", headers=headers("u2"))

            receipt = ws.receive_json()
            assert receipt == {"type": "read_receipt", "reader_id": "u2", "sender_id": "u1", "read_count": 1}


class StubSocket:
    """Just enough of a WebSocket to drive the endpoint without a server."""

    def __init__(self, send_error=None, incoming=None):
        self.send_error = send_error
        self.incoming = list(incoming or [])
        self.sent = []

    async def accept(self):
        pass

    async def close(self, code=1000, reason=None):
        pass

    async def send_json(self, payload):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(payload)

    async def receive_text(self):
        if self.incoming:
            return self.incoming.pop(0)
        if self.send_error is not None:
            await asyncio.Event().wait()
        raise WebSocketDisconnect(code=1000)


class TestWebSocketLifecycle:
    @pytest.mark.asyncio
    async def test_failed_writer_ends_the_connection(self):
        token = create_access_token({"sub": "u1"})
        socket = StubSocket(send_error=RuntimeError("connection reset"))

        await asyncio.wait_for(websocket_endpoint(socket, token=token, partner_id="u2"), timeout=1)

        assert realtime_hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_client_disconnect_unsubscribes(self):
        token = create_access_token({"sub": "u1"})
        socket = StubSocket(incoming=['{"type": "ping"}'])

        await asyncio.wait_for(websocket_endpoint(socket, token=token, partner_id="u2"), timeout=1)

        assert realtime_hub.subscriber_count == 0
        assert socket.sent[0]["type"] == "connection"
