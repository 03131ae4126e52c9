"""Tests for MessageRouter dispatch and error reporting."""

import logging
from unittest.mock import AsyncMock, patch

from tavern.logic.enums import SessionErrorCode
from tavern.tests.mocks import MockConnection


async def _connect(message_router, manager) -> MockConnection:
    conn = MockConnection()
    await message_router.handle_connect(conn)
    assert manager.connection_count >= 1
    return conn


class TestMessageRouter:
    async def test_create_room_routed(self, message_router, manager):
        conn = await _connect(message_router, manager)
        await message_router.handle_message(conn, {"type": "createRoom", "nickname": "Alice"})
        created = conn.last_message()
        assert created["type"] == "roomCreated"
        assert manager.room_count == 1

    async def test_invalid_message_reports_error(self, message_router, manager):
        conn = await _connect(message_router, manager)
        await message_router.handle_message(conn, {"type": "bogus"})
        error = conn.last_message()
        assert error["type"] == "error"
        assert error["code"] == SessionErrorCode.INVALID_MESSAGE

    async def test_ping_answered_with_pong(self, message_router, manager):
        conn = await _connect(message_router, manager)
        await message_router.handle_message(conn, {"type": "ping"})
        assert conn.sent_messages == [{"type": "pong"}]

    async def test_action_before_joining_is_invalid_user_state(self, message_router, manager):
        conn = await _connect(message_router, manager)
        await message_router.handle_message(conn, {"type": "chatMessage", "message": "hi"})
        assert conn.last_message()["code"] == SessionErrorCode.INVALID_USER_STATE

    async def test_unexpected_exception_becomes_action_failed(self, message_router, manager, caplog):
        conn = await _connect(message_router, manager)
        with (
            patch.object(manager, "chat", AsyncMock(side_effect=RuntimeError("kaboom"))),
            caplog.at_level(logging.ERROR),
        ):
            await message_router.handle_message(conn, {"type": "chatMessage", "message": "hi"})

        error = conn.last_message()
        assert error["code"] == SessionErrorCode.ACTION_FAILED
        assert not conn.is_closed
        records = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert records[0].msg["event"] == "unexpected error while handling message"
        assert records[0].msg["message_type"] == "chatMessage"

    async def test_disconnect_delegates_to_manager(self, message_router, manager):
        conn = await _connect(message_router, manager)
        await message_router.handle_message(conn, {"type": "createRoom", "nickname": "Alice"})
        user_id = conn.last_message()["userId"]

        await message_router.handle_disconnect(conn)
        assert manager.connection_count == 0
        assert manager.is_grace_pending(user_id)
        manager.cancel_all_grace_timers()
