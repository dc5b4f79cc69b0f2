from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .cards import Card
from .constants import TOTAL_TURNS


class Phase(str, Enum):
    LOBBY = "LOBBY"
    READY_UP = "READY_UP"
    TOKEN_TRADING = "TOKEN_TRADING"
    END_GAME = "END_GAME"


@dataclass(frozen=True)
class Token:
    number: int
    owner_id: Optional[str] = None
    timestamp: int = 0

    @property
    def is_owned(self) -> bool:
        return self.owner_id is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "ownerId": self.owner_id, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Token":
        owner = data.get("ownerId")
        return cls(
            number=int(data["number"]),
            owner_id=str(owner) if owner is not None else None,
            timestamp=int(data.get("timestamp") or 0),
        )


@dataclass(frozen=True)
class TokenAction:
    player_id: str
    token_number: int
    timestamp: int = 0


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    avatar_color: Optional[str] = None
    hole_cards: Tuple[Card, ...] = ()
    token_history: Tuple[Optional[int], ...] = ()
    stolen_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "avatarColor": self.avatar_color,
            "holeCards": [card.to_dict() for card in self.hole_cards],
            "tokenHistory": list(self.token_history),
            "stolenBy": self.stolen_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        history = data.get("tokenHistory") or [None] * TOTAL_TURNS
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            avatar_color=data.get("avatarColor"),
            hole_cards=tuple(Card.from_dict(card) for card in data.get("holeCards") or []),
            token_history=tuple(None if entry is None else int(entry) for entry in history),
            stolen_by=data.get("stolenBy"),
        )


@dataclass(frozen=True)
class LobbyPlayer:
    id: str
    name: str
    is_ready: bool = False
    is_host: bool = False
    connected: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "isReady": self.is_ready,
            "isHost": self.is_host,
            "connected": self.connected,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LobbyPlayer":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            is_ready=bool(data.get("isReady", False)),
            is_host=bool(data.get("isHost", False)),
            connected=bool(data.get("connected", True)),
        )


@dataclass(frozen=True)
class GameState:
    """Canonical per-match aggregate. Transitions in ``engine.game`` return new values."""

    phase: Phase
    turn: int
    players: Tuple[Player, ...]
    deck: Tuple[Card, ...]
    community_cards: Tuple[Card, ...] = ()
    tokens: Tuple[Token, ...] = ()
    ready_status: Dict[str, bool] = field(default_factory=dict)
    card_back_color: str = "blue"

    def player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def token_owned_by(self, player_id: str) -> Optional[Token]:
        for token in self.tokens:
            if token.owner_id == player_id:
                return token
        return None

    @property
    def player_ids(self) -> List[str]:
        return [player.id for player in self.players]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "turn": self.turn,
            "players": [player.to_dict() for player in self.players],
            "deck": [card.to_dict() for card in self.deck],
            "communityCards": [card.to_dict() for card in self.community_cards],
            "tokens": [token.to_dict() for token in self.tokens],
            "readyStatus": dict(self.ready_status),
            "cardBackColor": self.card_back_color,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameState":
        ready = data.get("readyStatus") or {}
        return cls(
            phase=Phase(data["phase"]),
            turn=int(data["turn"]),
            players=tuple(Player.from_dict(player) for player in data["players"]),
            deck=tuple(Card.from_dict(card) for card in data.get("deck") or []),
            community_cards=tuple(Card.from_dict(card) for card in data.get("communityCards") or []),
            tokens=tuple(Token.from_dict(token) for token in data.get("tokens") or []),
            ready_status={str(key): bool(value) for key, value in ready.items()},
            card_back_color=str(data.get("cardBackColor", "blue")),
        )
