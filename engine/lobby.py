from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Sequence

from .constants import AVATAR_COLORS, MAX_NAME_LENGTH, MIN_PLAYERS
from .models import LobbyPlayer

# Pre-match roster helpers. Every function returns a new list.


def validate_player_name(name: str) -> bool:
    trimmed = name.strip()
    return 0 < len(trimmed) <= MAX_NAME_LENGTH


def can_start_game(lobby: Sequence[LobbyPlayer]) -> bool:
    if len(lobby) < MIN_PLAYERS:
        return False
    return all(player.is_ready for player in lobby)


def find_player(lobby: Sequence[LobbyPlayer], player_id: str) -> Optional[LobbyPlayer]:
    for player in lobby:
        if player.id == player_id:
            return player
    return None


def add_player(lobby: Sequence[LobbyPlayer], player_id: str, name: str, is_host: bool = False) -> List[LobbyPlayer]:
    return list(lobby) + [LobbyPlayer(id=player_id, name=name, is_host=is_host)]


def rejoin_player(lobby: Sequence[LobbyPlayer], player_id: str) -> List[LobbyPlayer]:
    """Mark a known player connected again; name and readiness are kept."""
    return set_connected(lobby, player_id, True)


def remove_player(lobby: Sequence[LobbyPlayer], player_id: str) -> List[LobbyPlayer]:
    return [player for player in lobby if player.id != player_id]


def update_player_ready(lobby: Sequence[LobbyPlayer], player_id: str, is_ready: bool) -> List[LobbyPlayer]:
    return [replace(player, is_ready=is_ready) if player.id == player_id else player for player in lobby]


def update_player_name(lobby: Sequence[LobbyPlayer], player_id: str, new_name: str) -> List[LobbyPlayer]:
    """Rename a player; ready players keep their current name."""
    return [
        replace(player, name=new_name) if player.id == player_id and not player.is_ready else player
        for player in lobby
    ]


def set_connected(lobby: Sequence[LobbyPlayer], player_id: str, connected: bool) -> List[LobbyPlayer]:
    return [replace(player, connected=connected) if player.id == player_id else player for player in lobby]


def is_name_taken(lobby: Sequence[LobbyPlayer], name: str, exclude_id: Optional[str] = None) -> bool:
    wanted = name.strip().casefold()
    return any(player.name.casefold() == wanted for player in lobby if player.id != exclude_id)


def default_player_name(lobby: Sequence[LobbyPlayer]) -> str:
    index = len(lobby) + 1
    while is_name_taken(lobby, f"Player {index}"):
        index += 1
    return f"Player {index}"


def avatar_color(player_id: str) -> str:
    """Deterministic palette colour; the same id always maps to the same colour."""
    digest = 0
    for char in player_id:
        digest = (digest * 31 + ord(char)) & 0xFFFFFFFF
    if digest & 0x80000000:
        digest -= 1 << 32
    return AVATAR_COLORS[abs(digest) % len(AVATAR_COLORS)]
