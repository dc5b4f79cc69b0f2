from __future__ import annotations

import json
import random
from typing import List, Optional, Sequence

from engine.cards import parse_cards
from engine.evaluator import evaluate_seven
from engine.game import advance_phase, create_initial_state, handle_token_action, set_player_ready, start_game
from engine.models import GameState, Phase, Player, TokenAction
from engine.scoring import PlayerHand


def make_players(count: int) -> List[Player]:
    return [Player(id=f"p{idx}", name=f"Player{idx}") for idx in range(count)]


def started_state(count: int = 3, seed: int = 42) -> GameState:
    """A match dealt and sitting in READY_UP on turn 1."""
    rng = random.Random(seed)
    return start_game(create_initial_state(make_players(count), rng), rng)


def ready_everyone(state: GameState) -> GameState:
    for player in state.players:
        state = set_player_ready(state, player.id, True)
    return state


def trading_state(count: int = 3, seed: int = 42) -> GameState:
    state = advance_phase(ready_everyone(started_state(count, seed)))
    assert state.phase == Phase.TOKEN_TRADING
    return state


def claim_in_order(state: GameState, start_stamp: int = 1) -> GameState:
    """Each player takes the token matching their seat, stamped in order."""
    for idx, player in enumerate(state.players):
        state = handle_token_action(state, TokenAction(player.id, idx + 1, start_stamp + idx))
    return state


def play_to_end(state: GameState, order: Optional[Sequence[int]] = None) -> GameState:
    """Drive a READY_UP match through all four turns with a fixed token pick per player."""
    stamp = 1
    while state.phase != Phase.END_GAME:
        state = advance_phase(ready_everyone(state))
        for idx, player in enumerate(state.players):
            number = order[idx] if order else idx + 1
            state = handle_token_action(state, TokenAction(player.id, number, stamp))
            stamp += 1
        state = advance_phase(state)
    return state


def hand(player_id: str, labels: Sequence[str], token: int) -> PlayerHand:
    return PlayerHand(player_id=player_id, hand=evaluate_seven(parse_cards(labels)), current_token=token)


# Fake sockets so the async host and client paths run without real connections.
class DummyWebSocket:
    def __init__(self, inbound: Sequence[str] = ()) -> None:
        self.inbound: List[str] = list(inbound)
        self.sent: List[str] = []
        self.closed = False

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def recv(self) -> str:
        if not self.inbound:
            raise ConnectionError("no more frames")
        return self.inbound.pop(0)

    async def close(self, *args, **kwargs) -> None:
        self.closed = True

    def __aiter__(self) -> "DummyWebSocket":
        return self

    async def __anext__(self) -> str:
        if not self.inbound:
            raise StopAsyncIteration
        return self.inbound.pop(0)

    def messages(self) -> List[dict]:
        return [json.loads(raw) for raw in self.sent]

    def types(self) -> List[str]:
        return [message["type"] for message in self.messages()]


class BrokenWebSocket(DummyWebSocket):
    async def send(self, message: str) -> None:
        raise ConnectionResetError("peer went away")


def frame(msg_type: str, payload: dict, timestamp: Optional[int] = None) -> str:
    body = {"type": msg_type, "payload": payload}
    if timestamp is not None:
        body["timestamp"] = timestamp
    return json.dumps(body)
