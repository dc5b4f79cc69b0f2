from __future__ import annotations

import argparse
import asyncio
import logging
import time
import uuid
from typing import Awaitable, Callable, List, Optional, Tuple

import websockets

from engine.flow import phase_text, should_show_proceed_button
from engine.models import GameState, LobbyPlayer

from .models import PeerConnection, ReconnectPolicy
from .protocol import (
    ErrorPayload,
    JoinRequest,
    Message,
    MessageType,
    NextGameReady,
    PlayerReady,
    ProceedTurn,
    TokenSelect,
    TurnReady,
    UpdateName,
    create_message,
    decode_message,
    encode_message,
)

LOGGER = logging.getLogger("rank_client")

Connector = Callable[[str], Awaitable[PeerConnection]]
Listener = Callable[["ClientMirror"], None]


class JoinRejected(Exception):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg


class PeerIdUnavailable(JoinRejected):
    """The host already has a live connection for this player id."""


class ClientMirror:
    """Read-only copy of what the host last broadcast.

    Each update replaces the held value wholesale; nothing here merges or
    mutates game state.
    """

    def __init__(self) -> None:
        self._state: Optional[GameState] = None
        self._lobby: Tuple[LobbyPlayer, ...] = ()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> Optional[GameState]:
        return self._state

    @property
    def lobby(self) -> Tuple[LobbyPlayer, ...]:
        return self._lobby

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, message: Message) -> bool:
        if message.type == MessageType.STATE_UPDATE:
            self._state = message.payload.state  # type: ignore[union-attr]
        elif message.type == MessageType.LOBBY_UPDATE:
            self._lobby = tuple(message.payload.lobby_state)  # type: ignore[union-attr]
        else:
            return False
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                LOGGER.exception("Mirror listener failed")
        return True


async def _open_websocket(uri: str) -> PeerConnection:
    return await websockets.connect(uri)


class PeerClient:
    def __init__(
        self,
        uri: str,
        name: str,
        player_id: Optional[str] = None,
        policy: Optional[ReconnectPolicy] = None,
        connector: Optional[Connector] = None,
        join_timeout_s: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.uri = uri
        self.name = name
        self.player_id = player_id or uuid.uuid4().hex
        self.policy = policy or ReconnectPolicy()
        self.mirror = ClientMirror()
        self.websocket: Optional[PeerConnection] = None
        self.last_error: Optional[ErrorPayload] = None
        self.join_timeout_s = join_timeout_s
        self._connector = connector or _open_websocket
        self._sleep = sleep
        self._monotonic = monotonic
        self._stopped = False

    @property
    def connected(self) -> bool:
        return self.websocket is not None

    async def connect(self) -> str:
        """Open a connection and join; returns the player id the host knows us by."""
        websocket = await self._connector(self.uri)
        join = create_message(MessageType.JOIN_REQUEST, JoinRequest(self.player_id, self.name))
        await websocket.send(encode_message(join))

        reply = decode_message(await asyncio.wait_for(websocket.recv(), timeout=self.join_timeout_s))
        if reply is not None and reply.type == MessageType.ERROR:
            await websocket.close()
            error: ErrorPayload = reply.payload  # type: ignore[assignment]
            if error.code == "PEER_ID_TAKEN":
                raise PeerIdUnavailable(error.code, error.msg)
            raise JoinRejected(error.code, error.msg)

        self.websocket = websocket
        if reply is not None:
            self.mirror.apply(reply)
        LOGGER.info("Joined %s as %s", self.uri, self.player_id)
        return self.player_id

    async def run(self) -> None:
        """Consume broadcasts until stopped or reconnection gives up."""
        while not self._stopped:
            if self.websocket is None and not await self._reconnect():
                return
            websocket = self.websocket
            try:
                async for raw in websocket:  # type: ignore[union-attr]
                    message = decode_message(raw)
                    if message is None:
                        LOGGER.debug("Dropped malformed frame")
                        continue
                    self._handle(message)
            except websockets.ConnectionClosed:
                pass
            self.websocket = None
            if not self._stopped:
                LOGGER.warning("Lost connection to host; reconnecting")

    async def stop(self) -> None:
        self._stopped = True
        websocket, self.websocket = self.websocket, None
        if websocket is not None:
            await websocket.close()

    async def set_ready(self, is_ready: bool) -> None:
        await self._send(create_message(MessageType.PLAYER_READY, PlayerReady(self.player_id, is_ready)))

    async def rename(self, new_name: str) -> None:
        await self._send(create_message(MessageType.UPDATE_NAME, UpdateName(self.player_id, new_name)))

    async def turn_ready(self) -> None:
        await self._send(create_message(MessageType.TURN_READY, TurnReady(self.player_id)))

    async def select_token(self, token_number: int) -> None:
        await self._send(create_message(MessageType.TOKEN_ACTION, TokenSelect(self.player_id, token_number)))

    async def proceed_turn(self) -> None:
        await self._send(create_message(MessageType.PROCEED_TURN, ProceedTurn(self.player_id)))

    async def next_game_ready(self) -> None:
        await self._send(create_message(MessageType.NEXT_GAME_READY, NextGameReady(self.player_id)))

    async def _send(self, message: Message) -> None:
        if self.websocket is None:
            LOGGER.debug("Not connected; dropped %s", message.type.value)
            return
        try:
            await self.websocket.send(encode_message(message))
        except websockets.ConnectionClosed:
            LOGGER.debug("Connection closed; dropped %s", message.type.value)

    def _handle(self, message: Message) -> None:
        if message.type == MessageType.ERROR:
            self.last_error = message.payload  # type: ignore[assignment]
            LOGGER.warning("Host error %s: %s", self.last_error.code, self.last_error.msg)  # type: ignore[union-attr]
            return
        self.mirror.apply(message)

    async def _reconnect(self) -> bool:
        deadline = self._monotonic() + self.policy.window_s
        while not self._stopped and self._monotonic() < deadline:
            await self._sleep(self.policy.interval_s)
            try:
                await self.connect()
                return True
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException, JoinRejected) as exc:
                LOGGER.debug("Reconnect attempt failed: %s", exc)
        LOGGER.info("Reconnect window elapsed; staying disconnected")
        return False


def _render(mirror: ClientMirror, player_id: str) -> None:
    state = mirror.state
    if state is None:
        ready = ", ".join(f"{p.name}{' (ready)' if p.is_ready else ''}" for p in mirror.lobby)
        print(f"Lobby: {ready}")
        return
    print(f"\nTurn {state.turn} | {phase_text(state.phase)}")
    me = state.player(player_id)
    if me is not None:
        print("Hole: " + " ".join(card.symbol for card in me.hole_cards))
    print("Board: " + " ".join(card.symbol for card in state.community_cards))
    names = {player.id: player.name for player in state.players}
    for token in state.tokens:
        owner = names.get(token.owner_id, "-") if token.owner_id else "-"
        print(f"  token {token.number}: {owner}")
    if should_show_proceed_button(state.phase, state.tokens):
        print("All tokens taken; 'proceed' to end the turn")


async def _console(client: PeerClient) -> None:
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, input, "> ")
        command, _, arg = line.strip().partition(" ")
        command = command.lower()
        if command == "ready":
            await client.set_ready(True)
        elif command == "unready":
            await client.set_ready(False)
        elif command == "name" and arg:
            await client.rename(arg)
        elif command == "go":
            await client.turn_ready()
        elif command == "take" and arg.isdigit():
            await client.select_token(int(arg))
        elif command == "proceed":
            await client.proceed_turn()
        elif command == "next":
            await client.next_game_ready()
        elif command == "quit":
            await client.stop()
            return
        else:
            print("Commands: ready, unready, name <new>, go, take <n>, proceed, next, quit")


async def _main_async(args: argparse.Namespace) -> None:
    client = PeerClient(args.uri, args.name, player_id=args.peer_id)
    client.mirror.subscribe(lambda mirror: _render(mirror, client.player_id))
    player_id = await client.connect()
    print(f"Connected as {player_id} (use --peer-id {player_id} to resume)")
    await asyncio.gather(client.run(), _console(client))


def main() -> None:
    parser = argparse.ArgumentParser(description="Rank tokens terminal client")
    parser.add_argument("--uri", default="ws://localhost:8765")
    parser.add_argument("--name", default="Player")
    parser.add_argument("--peer-id", default=None, help="Resume an earlier session with this player id")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper())
    try:
        asyncio.run(_main_async(args))
    except PeerIdUnavailable:
        print("That player id is already connected to the host.")


if __name__ == "__main__":
    main()
