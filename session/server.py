from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, Optional

import websockets

from engine.match import LobbyError, MatchCoordinator
from engine.models import Phase

from .models import ClientSession, HostConfig, PeerConnection
from .protocol import (
    ErrorPayload,
    JoinRequest,
    LobbyUpdate,
    LogicalClock,
    Message,
    MessageType,
    StateUpdate,
    decode_message,
    encode_message,
)

LOGGER = logging.getLogger("rank_host")

LOBBY_INTENTS = (MessageType.PLAYER_READY, MessageType.UPDATE_NAME)
GAME_INTENTS = (
    MessageType.TURN_READY,
    MessageType.TOKEN_ACTION,
    MessageType.PROCEED_TURN,
    MessageType.NEXT_GAME_READY,
)

# HostServer is the only writer: peers send intents, the host applies them to
# its MatchCoordinator one at a time and broadcasts the resulting snapshot.


class HostServer:
    def __init__(self, config: HostConfig, rng: Optional[random.Random] = None) -> None:
        self.config = config
        self.match = MatchCoordinator(rng or random.Random(config.seed))
        self.clock = LogicalClock()
        self.sessions: Dict[str, ClientSession] = {}
        self.lock = asyncio.Lock()
        if config.host_name:
            self.match.join(config.host_id, config.host_name, is_host=True)

    async def start(self) -> None:
        async with websockets.serve(self._handle_connection, self.config.host, self.config.port):
            LOGGER.info("Host listening on %s:%s", self.config.host, self.config.port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: PeerConnection) -> None:
        # First message must be JOIN_REQUEST so the connection gets an identity.
        hello = await self._read_message(websocket)
        if hello is None or hello.type != MessageType.JOIN_REQUEST:
            await self._send_error(websocket, code="BAD_JOIN", msg="Expected JOIN_REQUEST")
            await websocket.close()
            return
        join: JoinRequest = hello.payload  # type: ignore[assignment]
        player_id = join.player_id

        session = ClientSession(player_id=player_id, websocket=websocket)
        try:
            async with self.lock:
                # Check and register under one lock.
                if player_id in self.sessions or (self.config.host_name and player_id == self.config.host_id):
                    raise LobbyError("PEER_ID_TAKEN", "Player id already connected")
                self.clock.tick()
                entry = self.match.join(player_id, join.player_name)
                self.sessions[player_id] = session
        except LobbyError as exc:
            LOGGER.warning("Rejected join for %s: %s", player_id, exc.code)
            await self._send_error(websocket, code=exc.code, msg=exc.msg)
            await websocket.close()
            return

        LOGGER.info("Player %s joined as %s", player_id, entry.name)

        await self._broadcast_lobby()
        if self.match.state is not None:
            # Resuming peers get the running match straight away.
            await self._send(websocket, self._state_message())

        try:
            async for raw in websocket:
                message = decode_message(raw)
                if message is None:
                    LOGGER.debug("Dropped malformed frame from %s", player_id)
                    continue
                await self._dispatch(session, message)
        except websockets.ConnectionClosed:
            pass
        finally:
            if self.sessions.get(player_id) is session:
                self.sessions.pop(player_id, None)
                async with self.lock:
                    self.match.set_connected(player_id, False)
        LOGGER.info("Player %s disconnected", player_id)
        await self._broadcast_lobby()

    async def _dispatch(self, session: ClientSession, message: Message) -> None:
        claimed = message.player_id
        if claimed is not None and claimed != session.player_id:
            LOGGER.warning(
                "Dropped %s from %s claiming to be %s",
                message.type.value,
                session.player_id,
                claimed,
            )
            return
        await self._apply(session.player_id, message, reply_to=session.websocket)

    async def submit_local(self, message: Message) -> None:
        """Apply an intent from the host's own seat through the same stamped path."""
        if not self.config.host_name:
            raise RuntimeError("Host is not seated")
        claimed = message.player_id
        if claimed is not None and claimed != self.config.host_id:
            LOGGER.warning("Dropped local %s naming %s", message.type.value, claimed)
            return
        await self._apply(self.config.host_id, message)

    async def start_match(self) -> bool:
        async with self.lock:
            state = self.match.start_match()
        if state is None:
            LOGGER.info("Match not started: lobby not ready")
            return False
        LOGGER.info("Match started with %s players", len(state.players))
        await self._broadcast_lobby()
        await self._broadcast_state()
        return True

    async def _apply(
        self,
        player_id: str,
        message: Message,
        reply_to: Optional[PeerConnection] = None,
    ) -> None:
        if message.type not in LOBBY_INTENTS and message.type not in GAME_INTENTS:
            LOGGER.debug("Ignored %s from %s", message.type.value, player_id)
            if reply_to is not None:
                await self._send_error(reply_to, code="UNKNOWN_TYPE", msg="Unsupported message type")
            return

        error: Optional[ErrorPayload] = None
        started = False
        async with self.lock:
            stamped = self.clock.stamp(message)
            payload = stamped.payload
            before = self.match.state.phase if self.match.state else None
            try:
                if stamped.type == MessageType.PLAYER_READY:
                    self.match.set_lobby_ready(player_id, payload.is_ready)  # type: ignore[union-attr]
                    if self.config.auto_start and self.match.can_start():
                        started = self.match.start_match() is not None
                elif stamped.type == MessageType.UPDATE_NAME:
                    self.match.rename(player_id, payload.new_name)  # type: ignore[union-attr]
                elif stamped.type == MessageType.TURN_READY:
                    self.match.turn_ready(player_id)
                elif stamped.type == MessageType.TOKEN_ACTION:
                    self.match.token_action(player_id, payload.token_number, stamped.timestamp)  # type: ignore[union-attr]
                elif stamped.type == MessageType.PROCEED_TURN:
                    self.match.proceed_turn(player_id)
                elif stamped.type == MessageType.NEXT_GAME_READY:
                    self.match.next_game_ready(player_id)
            except LobbyError as exc:
                error = ErrorPayload(exc.code, exc.msg)
            except ValueError as exc:
                error = ErrorPayload("INVALID_ACTION", str(exc))
            after = self.match.state.phase if self.match.state else None

        if error is not None:
            LOGGER.warning("Rejected %s from %s: %s", message.type.value, player_id, error.msg)
            if reply_to is not None:
                await self._send_error(reply_to, code=error.code, msg=error.msg)

        if before != after and after is not None:
            LOGGER.info(
                "Phase %s -> %s (turn %s)",
                before.value if before else "-",
                after.value,
                self.match.state.turn,  # type: ignore[union-attr]
            )
            if after == Phase.END_GAME:
                result = self.match.showdown()
                if result is not None:
                    LOGGER.info("Game over: %s", "win" if result.is_win else "loss")

        if message.type in LOBBY_INTENTS:
            await self._broadcast_lobby()
            if started:
                LOGGER.info("Match auto-started")
                await self._broadcast_state()
        else:
            await self._broadcast_state()

    async def _broadcast_lobby(self) -> None:
        async with self.lock:
            payload = LobbyUpdate(tuple(self.match.lobby))
        await self._broadcast(Message(MessageType.LOBBY_UPDATE, payload, timestamp=self.clock.value))

    async def _broadcast_state(self) -> None:
        async with self.lock:
            if self.match.state is None:
                return
            message = self._state_message()
        await self._broadcast(message)

    def _state_message(self) -> Message:
        return Message(MessageType.STATE_UPDATE, StateUpdate(self.match.state), timestamp=self.clock.value)  # type: ignore[arg-type]

    async def _broadcast(self, message: Message) -> None:
        async with self.lock:
            targets = list(self.sessions.values())
        if not targets:
            return
        raw = encode_message(message)
        results = await asyncio.gather(
            *(session.websocket.send(raw) for session in targets),
            return_exceptions=True,
        )
        for session, result in zip(targets, results):
            if isinstance(result, Exception):
                LOGGER.warning("Send to %s failed: %s", session.player_id, result)

    async def _send(self, websocket: PeerConnection, message: Message) -> None:
        try:
            await websocket.send(encode_message(message))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: PeerConnection, code: str, msg: str) -> None:
        await self._send(websocket, Message(MessageType.ERROR, ErrorPayload(code, msg)))

    async def _read_message(self, websocket: PeerConnection) -> Optional[Message]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=self.config.join_timeout_s)
        except Exception:
            return None
        return decode_message(raw)
