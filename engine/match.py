from __future__ import annotations

import random
from typing import List, Optional

from .constants import MAX_PLAYERS
from .game import (
    advance_phase,
    all_players_ready,
    create_initial_state,
    evaluate_showdown,
    handle_token_action,
    reset_for_next_game,
    set_player_ready,
    start_game,
)
from .lobby import (
    add_player,
    avatar_color,
    can_start_game,
    default_player_name,
    find_player,
    is_name_taken,
    rejoin_player,
    set_connected,
    update_player_name,
    update_player_ready,
    validate_player_name,
)
from .models import GameState, LobbyPlayer, Phase, Player, TokenAction
from .scoring import WinLossResult


class LobbyError(Exception):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg


class MatchCoordinator:
    """Owns the lobby roster and the single running match for one host.

    Only the host holds one of these; every mutation of the match goes
    through its methods, one intent at a time.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self.lobby: List[LobbyPlayer] = []
        self.state: Optional[GameState] = None

    @property
    def in_progress(self) -> bool:
        return self.state is not None

    def join(self, player_id: str, name: str, is_host: bool = False) -> LobbyPlayer:
        known = find_player(self.lobby, player_id)
        if known is not None:
            self.lobby = rejoin_player(self.lobby, player_id)
            return find_player(self.lobby, player_id)  # type: ignore[return-value]

        if self.in_progress:
            raise LobbyError("MATCH_IN_PROGRESS", "A match is already running")
        if len(self.lobby) >= MAX_PLAYERS:
            raise LobbyError("LOBBY_FULL", f"Lobby holds at most {MAX_PLAYERS} players")

        name = (name or "").strip()
        if not validate_player_name(name) or is_name_taken(self.lobby, name):
            name = default_player_name(self.lobby)
        self.lobby = add_player(self.lobby, player_id, name, is_host=is_host)
        return find_player(self.lobby, player_id)  # type: ignore[return-value]

    def set_connected(self, player_id: str, connected: bool) -> None:
        self.lobby = set_connected(self.lobby, player_id, connected)

    def set_lobby_ready(self, player_id: str, ready: bool) -> None:
        if self.in_progress:
            return
        self.lobby = update_player_ready(self.lobby, player_id, ready)

    def rename(self, player_id: str, new_name: str) -> None:
        if self.in_progress:
            raise LobbyError("MATCH_IN_PROGRESS", "Names are fixed once the match starts")
        if not validate_player_name(new_name):
            raise LobbyError("INVALID_NAME", "Name must be 1-20 characters")
        if is_name_taken(self.lobby, new_name, exclude_id=player_id):
            raise LobbyError("NAME_TAKEN", "Name already in use")
        self.lobby = update_player_name(self.lobby, player_id, new_name.strip())

    def can_start(self) -> bool:
        return not self.in_progress and can_start_game(self.lobby)

    def start_match(self) -> Optional[GameState]:
        if not self.can_start():
            return None
        players = [Player(id=entry.id, name=entry.name, avatar_color=avatar_color(entry.id)) for entry in self.lobby]
        self.state = start_game(create_initial_state(players, self.rng), self.rng)
        return self.state

    def turn_ready(self, player_id: str) -> Optional[GameState]:
        state = self._seated(player_id)
        if state is None or state.phase != Phase.READY_UP:
            return self.state
        self.state = advance_phase(set_player_ready(state, player_id, True))
        return self.state

    def token_action(self, player_id: str, token_number: int, timestamp: int) -> Optional[GameState]:
        state = self._seated(player_id)
        if state is None:
            return self.state
        self.state = handle_token_action(state, TokenAction(player_id, token_number, timestamp))
        return self.state

    def proceed_turn(self, player_id: str) -> Optional[GameState]:
        state = self._seated(player_id)
        if state is None or state.phase != Phase.TOKEN_TRADING:
            return self.state
        self.state = advance_phase(state)
        return self.state

    def next_game_ready(self, player_id: str) -> Optional[GameState]:
        state = self._seated(player_id)
        if state is None or state.phase != Phase.END_GAME:
            return self.state
        state = set_player_ready(state, player_id, True)
        if all_players_ready(state):
            state = reset_for_next_game(state, self.rng)
        self.state = state
        return self.state

    def showdown(self) -> Optional[WinLossResult]:
        if self.state is None or self.state.phase != Phase.END_GAME:
            return None
        return evaluate_showdown(self.state)

    def _seated(self, player_id: str) -> Optional[GameState]:
        if self.state is None or self.state.player(player_id) is None:
            return None
        return self.state
