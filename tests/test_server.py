import asyncio

import pytest

from engine.models import Phase
from session.models import ClientSession, HostConfig
from session.protocol import MessageType, PlayerReady, TurnReady, create_message, decode_message
from session.server import HostServer

from .helpers import BrokenWebSocket, DummyWebSocket, frame


def setup_server(num_players: int = 2, **config) -> tuple[HostServer, list[ClientSession], list[DummyWebSocket]]:
    server = HostServer(HostConfig(seed=5, **config))
    sessions: list[ClientSession] = []
    sockets: list[DummyWebSocket] = []
    for idx in range(num_players):
        player_id = f"p{idx}"
        server.match.join(player_id, f"Player{idx}")
        websocket = DummyWebSocket()
        session = ClientSession(player_id=player_id, websocket=websocket)
        server.sessions[player_id] = session
        sessions.append(session)
        sockets.append(websocket)
    return server, sessions, sockets


def start_trading(server: HostServer) -> None:
    for entry in server.match.lobby:
        server.match.set_lobby_ready(entry.id, True)
    server.match.start_match()
    for entry in server.match.lobby:
        server.match.turn_ready(entry.id)
    assert server.match.state.phase == Phase.TOKEN_TRADING


def test_first_message_must_be_join_request():
    server = HostServer(HostConfig())
    websocket = DummyWebSocket([frame("TURN_READY", {"playerId": "p1"})])

    asyncio.run(server._handle_connection(websocket))

    assert websocket.closed
    error = websocket.messages()[-1]
    assert error["type"] == "ERROR"
    assert error["payload"]["code"] == "BAD_JOIN"


def test_join_broadcasts_lobby_then_disconnect_marks_player():
    server = HostServer(HostConfig())
    websocket = DummyWebSocket([frame("JOIN_REQUEST", {"playerId": "p1", "playerName": "Ann"}), "garbage"])

    asyncio.run(server._handle_connection(websocket))

    assert websocket.types() == ["LOBBY_UPDATE"]
    lobby = websocket.messages()[0]["payload"]["lobbyState"]
    assert lobby == [{"id": "p1", "name": "Ann", "isReady": False, "isHost": False, "connected": True}]
    assert server.sessions == {}
    assert server.match.lobby[0].connected is False


def test_join_with_live_id_is_rejected():
    server, _, _ = setup_server()
    websocket = DummyWebSocket([frame("JOIN_REQUEST", {"playerId": "p0", "playerName": "Copy"})])

    asyncio.run(server._handle_connection(websocket))

    assert websocket.closed
    assert websocket.messages()[-1]["payload"]["code"] == "PEER_ID_TAKEN"


def test_new_player_rejected_while_match_runs():
    server, _, _ = setup_server()
    start_trading(server)
    websocket = DummyWebSocket([frame("JOIN_REQUEST", {"playerId": "late", "playerName": "Late"})])

    asyncio.run(server._handle_connection(websocket))

    assert websocket.closed
    assert websocket.messages()[-1]["payload"]["code"] == "MATCH_IN_PROGRESS"


def test_rejoin_resumes_and_receives_current_state():
    server, _, _ = setup_server()
    start_trading(server)
    server.sessions.pop("p1")
    server.match.set_connected("p1", False)
    websocket = DummyWebSocket([frame("JOIN_REQUEST", {"playerId": "p1", "playerName": "Player1"})])

    asyncio.run(server._handle_connection(websocket))

    assert websocket.types() == ["LOBBY_UPDATE", "STATE_UPDATE"]
    lobby = websocket.messages()[0]["payload"]["lobbyState"]
    assert [entry["connected"] for entry in lobby] == [True, True]
    state = decode_message(websocket.sent[1]).payload.state
    assert state == server.match.state


def test_payload_naming_another_player_is_dropped():
    server, sessions, sockets = setup_server()
    for entry in server.match.lobby:
        server.match.set_lobby_ready(entry.id, True)
    state = server.match.start_match()

    message = create_message(MessageType.TURN_READY, TurnReady("p1"))
    asyncio.run(server._dispatch(sessions[0], message))

    assert server.match.state is state
    assert all(not websocket.sent for websocket in sockets)


def test_token_actions_use_host_stamp_not_client_stamp():
    server, sessions, sockets = setup_server()
    start_trading(server)

    claim = decode_message(frame("TOKEN_ACTION", {"playerId": "p0", "tokenNumber": 1, "timestamp": 10**12}, 10**12))
    asyncio.run(server._dispatch(sessions[0], claim))
    token = server.match.state.tokens[0]
    assert token.owner_id == "p0"
    assert token.timestamp == server.clock.value

    # A client claiming an ancient stamp still arrives later at the host.
    steal = decode_message(frame("TOKEN_ACTION", {"playerId": "p1", "tokenNumber": 1, "timestamp": 0}, 0))
    asyncio.run(server._dispatch(sessions[1], steal))
    assert server.match.state.tokens[0].owner_id == "p1"
    assert server.match.state.player("p0").stolen_by == "p1"
    assert sockets[0].types() == ["STATE_UPDATE", "STATE_UPDATE"]


def test_game_intent_broadcasts_state_even_when_guard_fails():
    server, sessions, sockets = setup_server()
    for entry in server.match.lobby:
        server.match.set_lobby_ready(entry.id, True)
    server.match.start_match()

    proceed = decode_message(frame("PROCEED_TURN", {"playerId": "p0"}))
    asyncio.run(server._dispatch(sessions[0], proceed))

    assert server.match.state.phase == Phase.READY_UP
    for websocket in sockets:
        assert websocket.types() == ["STATE_UPDATE"]


def test_unknown_token_number_is_reported_to_sender():
    server, sessions, sockets = setup_server()
    start_trading(server)

    bad = decode_message(frame("TOKEN_ACTION", {"playerId": "p0", "tokenNumber": 9}))
    asyncio.run(server._dispatch(sessions[0], bad))

    assert sockets[0].types() == ["ERROR", "STATE_UPDATE"]
    assert sockets[0].messages()[0]["payload"]["code"] == "INVALID_ACTION"
    assert sockets[1].types() == ["STATE_UPDATE"]


def test_rename_to_taken_name_is_rejected():
    server, sessions, sockets = setup_server()

    rename = decode_message(frame("UPDATE_NAME", {"playerId": "p0", "newName": "PLAYER1"}))
    asyncio.run(server._dispatch(sessions[0], rename))

    assert sockets[0].types() == ["ERROR", "LOBBY_UPDATE"]
    assert sockets[0].messages()[0]["payload"]["code"] == "NAME_TAKEN"
    assert server.match.lobby[0].name == "Player0"


def test_unsupported_type_from_peer_gets_error():
    server, sessions, sockets = setup_server()

    join_again = decode_message(frame("JOIN_REQUEST", {"playerId": "p0", "playerName": "Again"}))
    asyncio.run(server._dispatch(sessions[0], join_again))

    assert sockets[0].types() == ["ERROR"]
    assert sockets[0].messages()[0]["payload"]["code"] == "UNKNOWN_TYPE"


def test_broadcast_survives_failed_send():
    server, sessions, sockets = setup_server()
    server.sessions["p1"] = ClientSession(player_id="p1", websocket=BrokenWebSocket())

    ready = decode_message(frame("PLAYER_READY", {"playerId": "p0", "isReady": True}))
    asyncio.run(server._dispatch(sessions[0], ready))

    assert sockets[0].types() == ["LOBBY_UPDATE"]
    assert server.match.lobby[0].is_ready is True


def test_auto_start_when_everyone_ready():
    server, sessions, sockets = setup_server(auto_start=True)

    async def ready_all() -> None:
        for session in sessions:
            message = create_message(MessageType.PLAYER_READY, PlayerReady(session.player_id, True))
            await server._dispatch(session, message)

    asyncio.run(ready_all())

    assert server.match.state is not None
    assert server.match.state.phase == Phase.READY_UP
    assert sockets[0].types() == ["LOBBY_UPDATE", "LOBBY_UPDATE", "STATE_UPDATE"]


def test_manual_start_waits_for_ready_lobby():
    server, _, sockets = setup_server()
    assert asyncio.run(server.start_match()) is False
    for entry in server.match.lobby:
        server.match.set_lobby_ready(entry.id, True)
    assert asyncio.run(server.start_match()) is True
    assert sockets[1].types() == ["LOBBY_UPDATE", "STATE_UPDATE"]


def test_seated_host_plays_through_submit_local():
    server, sessions, sockets = setup_server(1, host_name="Hosty")
    assert server.match.lobby[0].is_host

    async def scenario() -> None:
        await server.submit_local(create_message(MessageType.PLAYER_READY, PlayerReady("host", True)))
        await server._dispatch(sessions[0], create_message(MessageType.PLAYER_READY, PlayerReady("p0", True)))
        assert await server.start_match()
        await server.submit_local(create_message(MessageType.TURN_READY, TurnReady("host")))

    asyncio.run(scenario())

    assert server.match.state.ready_status["host"] is True
    assert sockets[0].types()[-1] == "STATE_UPDATE"


def test_submit_local_requires_seated_host():
    server, _, _ = setup_server()
    with pytest.raises(RuntimeError, match="not seated"):
        asyncio.run(server.submit_local(create_message(MessageType.TURN_READY, TurnReady("host"))))


class HeldWebSocket(DummyWebSocket):
    """Stays open after its scripted frames until ``hangup`` is set."""

    def __init__(self, inbound, hangup: asyncio.Event) -> None:
        super().__init__(inbound)
        self.hangup = hangup

    async def __anext__(self) -> str:
        if not self.inbound:
            await self.hangup.wait()
            raise StopAsyncIteration
        return self.inbound.pop(0)


def test_same_id_racing_for_the_lock_is_rejected():
    server = HostServer(HostConfig())
    join = frame("JOIN_REQUEST", {"playerId": "dup", "playerName": "Ann"})

    async def scenario() -> tuple[HeldWebSocket, HeldWebSocket]:
        hangup = asyncio.Event()
        first = HeldWebSocket([join], hangup)
        second = HeldWebSocket([join], hangup)
        await server.lock.acquire()
        tasks = [
            asyncio.create_task(server._handle_connection(first)),
            asyncio.create_task(server._handle_connection(second)),
        ]
        for _ in range(5):
            await asyncio.sleep(0)
        server.lock.release()
        for _ in range(20):
            await asyncio.sleep(0)
        assert server.sessions["dup"].websocket is first
        hangup.set()
        await asyncio.gather(*tasks)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.types()[0] == "LOBBY_UPDATE"
    assert second.closed
    assert second.messages()[-1]["payload"]["code"] == "PEER_ID_TAKEN"


def test_non_finite_stamp_is_dropped_and_connection_keeps_going():
    server = HostServer(HostConfig())
    websocket = DummyWebSocket(
        [
            frame("JOIN_REQUEST", {"playerId": "p1", "playerName": "Ann"}),
            '{"type": "PLAYER_READY", "payload": {"playerId": "p1", "isReady": true}, "timestamp": NaN}',
            '{"type": "PLAYER_READY", "payload": {"playerId": "p1", "isReady": false}, "timestamp": Infinity}',
            frame("PLAYER_READY", {"playerId": "p1", "isReady": True}),
        ]
    )

    asyncio.run(server._handle_connection(websocket))

    assert websocket.types() == ["LOBBY_UPDATE", "LOBBY_UPDATE"]
    assert server.match.lobby[0].is_ready is True
    assert server.match.lobby[0].connected is False
