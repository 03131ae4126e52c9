"""Disconnect, the grace window and removal after it expires."""

import asyncio

from tavern.logic.enums import UserStatus
from tavern.session.manager import SessionManager
from tavern.tests.helpers.session import TEST_GRACE_SECONDS, seat_table
from tavern.tests.mocks import MockConnection

# comfortably past the grace window
_PAST_GRACE = TEST_GRACE_SECONDS * 4


class TestDisconnect:
    async def test_disconnect_marks_offline_and_broadcasts(self, manager):
        table = await seat_table(manager)
        bob = table.guests[0]
        await manager.handle_disconnect(bob.connection)

        user = manager.get_user(bob.user_id)
        assert user.status == UserStatus.OFFLINE
        assert manager.is_grace_pending(bob.user_id)
        update = table.host.connection.last_message()
        assert update["type"] == "userListUpdate"
        assert update["users"][1]["isOnline"] is False
        # still seated during the grace window
        assert manager.get_room(table.room_id).member_count == 2
        manager.cancel_all_grace_timers()

    async def test_disconnect_without_user_is_noop(self, manager, mock_connection):
        manager.register_connection(mock_connection)
        await manager.handle_disconnect(mock_connection)
        assert manager.connection_count == 0
        assert manager.user_count == 0

    async def test_reconnect_within_grace_keeps_seat(self, manager):
        table = await seat_table(manager, ("Bob", "Carol"))
        bob = table.guests[0]
        await manager.handle_disconnect(bob.connection)

        new_conn = MockConnection()
        manager.register_connection(new_conn)
        await manager.reconnect_to_room(new_conn, table.room_id, bob.user_id, "Bob")
        await asyncio.sleep(_PAST_GRACE)

        room = manager.get_room(table.room_id)
        assert [s.nickname for s in room.seat_list()] == ["Alice", "Bob", "Carol"]
        assert manager.get_user(bob.user_id).is_online


class TestGraceExpiry:
    async def test_guest_removed_after_grace(self, manager):
        table = await seat_table(manager, ("Bob", "Carol"))
        bob = table.guests[0]
        await manager.handle_disconnect(bob.connection)
        table.clear()

        await asyncio.sleep(_PAST_GRACE)
        assert manager.get_user(bob.user_id) is None
        room = manager.get_room(table.room_id)
        assert [s.nickname for s in room.seat_list()] == ["Alice", "Carol"]
        assert [s.number for s in room.seat_list()] == [1, 2]

        update = table.host.connection.last_message()
        assert update["notice"] == "Bob left the room"
        assert table.host.connection.messages_of_type("hostChanged") == []

    async def test_host_disconnect_scenario(self):
        """Host drops and stays away past the window: Bob becomes host at seat 1."""
        manager = SessionManager(grace_seconds=0.05)
        table = await seat_table(manager, ("Bob", "Carol"))
        bob, carol = table.guests
        await manager.handle_disconnect(table.host.connection)
        table.clear()

        await asyncio.sleep(0.2)
        room = manager.get_room(table.room_id)
        assert room.host_id == bob.user_id
        seats = room.seat_list()
        assert (seats[0].id, seats[0].number, seats[0].is_host) == (bob.user_id, 1, True)
        assert (seats[1].id, seats[1].number) == (carol.user_id, 2)

        types = [m["type"] for m in carol.connection.sent_messages]
        assert types == ["userListUpdate", "hostChanged"]
        changed = carol.connection.last_message()
        assert changed["newHostId"] == bob.user_id
        assert changed["newHostNickname"] == "Bob"

    async def test_last_member_leaving_destroys_room(self, manager):
        table = await seat_table(manager, guests=())
        await manager.handle_disconnect(table.host.connection)
        await asyncio.sleep(_PAST_GRACE)
        assert manager.get_room(table.room_id) is None
        assert manager.room_count == 0
        assert manager.user_count == 0

    async def test_expiry_rechecks_online_status(self, manager):
        """A reconnect that races the timer wins even if the callback runs."""
        table = await seat_table(manager)
        bob = table.guests[0]
        await manager.handle_disconnect(bob.connection)

        new_conn = MockConnection()
        manager.register_connection(new_conn)
        await manager.reconnect_to_room(new_conn, table.room_id, bob.user_id, "Bob")
        await manager._handle_grace_expiry(bob.user_id)

        assert manager.get_room(table.room_id).member_count == 2

    async def test_departed_turn_holder_passes_turn(self, manager):
        table = await seat_table(manager, ("Bob", "Carol"))
        bob, carol = table.guests
        await manager.start_number_bomb(table.host.connection, target=50)
        game = manager.get_room(table.room_id).game
        game.current_player_id = bob.user_id
        await manager.handle_disconnect(bob.connection)
        table.clear()

        await asyncio.sleep(_PAST_GRACE)
        assert game.current_player_id == carol.user_id
        update = table.host.connection.last_message()
        assert update["game"]["state"]["currentPlayerId"] == carol.user_id

    async def test_shutdown_cancels_timers(self, manager):
        table = await seat_table(manager)
        await manager.handle_disconnect(table.guests[0].connection)
        manager.cancel_all_grace_timers()
        await asyncio.sleep(_PAST_GRACE)
        assert manager.get_room(table.room_id).member_count == 2
