from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from tavern.logic.enums import SessionErrorCode
from tavern.messaging.types import (
    AddVirtualPlayerMessage,
    ChatMessage,
    CreateRoomMessage,
    DrawTianjiuCardMessage,
    ErrorMessage,
    FinishTianjiuRoundMessage,
    HandleTianjiuCardEffectMessage,
    JoinRoomMessage,
    NumberBombGuessMessage,
    PingMessage,
    ReconnectToRoomMessage,
    RemoveVirtualPlayerMessage,
    StartNumberBombMessage,
    StartTianjiuPokerMessage,
    UseReservedCardMessage,
    parse_client_message,
    to_wire,
)

if TYPE_CHECKING:
    from tavern.messaging.protocol import ConnectionProtocol
    from tavern.messaging.types import ClientMessage
    from tavern.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes incoming messages to the session manager.

    This class contains pure business logic and can be tested
    without real WebSocket connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", error=str(e))
            await self._send_error(connection, SessionErrorCode.INVALID_MESSAGE, str(e))
            return

        try:
            await self._dispatch(connection, message)
        except Exception:
            logger.exception("unexpected error while handling message", message_type=message.type.value)
            await self._send_error(connection, SessionErrorCode.ACTION_FAILED, "Something went wrong, try again")

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:  # noqa: C901, PLR0912
        sm = self._session_manager
        if isinstance(message, CreateRoomMessage):
            await sm.create_room(connection, message.nickname, host_mode=message.host_mode)
        elif isinstance(message, JoinRoomMessage):
            await sm.join_room(connection, message.room_id, message.nickname)
        elif isinstance(message, ReconnectToRoomMessage):
            await sm.reconnect_to_room(connection, message.room_id, message.user_id, message.nickname)
        elif isinstance(message, ChatMessage):
            await sm.chat(connection, message.message)
        elif isinstance(message, StartNumberBombMessage):
            await sm.start_number_bomb(connection)
        elif isinstance(message, NumberBombGuessMessage):
            await sm.number_bomb_guess(connection, message.number)
        elif isinstance(message, StartTianjiuPokerMessage):
            await sm.start_tianjiu(connection)
        elif isinstance(message, DrawTianjiuCardMessage):
            await sm.draw_card(connection)
        elif isinstance(message, HandleTianjiuCardEffectMessage):
            await sm.handle_card_effect(connection, message.action, message.data)
        elif isinstance(message, UseReservedCardMessage):
            await sm.use_reserved_card(connection, message.target_user_id, message.player_id)
        elif isinstance(message, FinishTianjiuRoundMessage):
            await sm.finish_round(connection)
        elif isinstance(message, AddVirtualPlayerMessage):
            await sm.add_virtual_player(connection, message.nickname)
        elif isinstance(message, RemoveVirtualPlayerMessage):
            await sm.remove_virtual_player(connection, message.player_id)
        elif isinstance(message, PingMessage):
            await sm.handle_ping(connection)

    @staticmethod
    async def _send_error(connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
        await connection.send_message(to_wire(ErrorMessage(code=code, message=message)))

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.handle_disconnect(connection)
