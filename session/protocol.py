from __future__ import annotations

import json
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from engine.models import GameState, LobbyPlayer

# Wire envelope: {"type": str, "payload": any, "timestamp"?: int}.
# Every type has one payload class; anything else is dropped at decode time.


class MessageType(str, Enum):
    JOIN_REQUEST = "JOIN_REQUEST"
    LOBBY_UPDATE = "LOBBY_UPDATE"
    STATE_UPDATE = "STATE_UPDATE"
    PLAYER_READY = "PLAYER_READY"
    UPDATE_NAME = "UPDATE_NAME"
    TURN_READY = "TURN_READY"
    TOKEN_ACTION = "TOKEN_ACTION"
    PROCEED_TURN = "PROCEED_TURN"
    NEXT_GAME_READY = "NEXT_GAME_READY"
    ERROR = "ERROR"


def _text(data: Dict[str, Any], key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _integer(data: Dict[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


def _is_stamp(value: Any) -> bool:
    # json.loads accepts NaN and Infinity, neither of which is a usable stamp.
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


@dataclass(frozen=True)
class JoinRequest:
    player_id: str
    player_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"playerId": self.player_id, "playerName": self.player_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JoinRequest":
        return cls(_text(data, "playerId"), _text(data, "playerName"))


@dataclass(frozen=True)
class LobbyUpdate:
    lobby_state: Tuple[LobbyPlayer, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"lobbyState": [player.to_dict() for player in self.lobby_state]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LobbyUpdate":
        entries = data["lobbyState"]
        if not isinstance(entries, list):
            raise ValueError("lobbyState must be a list")
        return cls(tuple(LobbyPlayer.from_dict(entry) for entry in entries))


@dataclass(frozen=True)
class StateUpdate:
    state: GameState

    def to_dict(self) -> Dict[str, Any]:
        return self.state.to_dict()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateUpdate":
        return cls(GameState.from_dict(data))


@dataclass(frozen=True)
class PlayerReady:
    player_id: str
    is_ready: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"playerId": self.player_id, "isReady": self.is_ready}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerReady":
        is_ready = data["isReady"]
        if not isinstance(is_ready, bool):
            raise ValueError("isReady must be a boolean")
        return cls(_text(data, "playerId"), is_ready)


@dataclass(frozen=True)
class UpdateName:
    player_id: str
    new_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"playerId": self.player_id, "newName": self.new_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UpdateName":
        return cls(_text(data, "playerId"), _text(data, "newName"))


@dataclass(frozen=True)
class TurnReady:
    player_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"playerId": self.player_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TurnReady":
        return cls(_text(data, "playerId"))


@dataclass(frozen=True)
class TokenSelect:
    player_id: str
    token_number: int
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "select",
            "playerId": self.player_id,
            "tokenNumber": self.token_number,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSelect":
        if data.get("type", "select") != "select":
            raise ValueError("Unsupported token action")
        timestamp = data.get("timestamp", 0)
        if not _is_stamp(timestamp):
            raise ValueError("timestamp must be a finite number")
        return cls(_text(data, "playerId"), _integer(data, "tokenNumber"), int(timestamp))


@dataclass(frozen=True)
class ProceedTurn:
    player_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"playerId": self.player_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProceedTurn":
        return cls(_text(data, "playerId"))


@dataclass(frozen=True)
class NextGameReady:
    player_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"playerId": self.player_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NextGameReady":
        return cls(_text(data, "playerId"))


@dataclass(frozen=True)
class ErrorPayload:
    code: str
    msg: str

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "msg": self.msg}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorPayload":
        return cls(_text(data, "code"), _text(data, "msg"))


Payload = Union[
    JoinRequest,
    LobbyUpdate,
    StateUpdate,
    PlayerReady,
    UpdateName,
    TurnReady,
    TokenSelect,
    ProceedTurn,
    NextGameReady,
    ErrorPayload,
]

PAYLOAD_TYPES = {
    MessageType.JOIN_REQUEST: JoinRequest,
    MessageType.LOBBY_UPDATE: LobbyUpdate,
    MessageType.STATE_UPDATE: StateUpdate,
    MessageType.PLAYER_READY: PlayerReady,
    MessageType.UPDATE_NAME: UpdateName,
    MessageType.TURN_READY: TurnReady,
    MessageType.TOKEN_ACTION: TokenSelect,
    MessageType.PROCEED_TURN: ProceedTurn,
    MessageType.NEXT_GAME_READY: NextGameReady,
    MessageType.ERROR: ErrorPayload,
}


@dataclass(frozen=True)
class Message:
    type: MessageType
    payload: Payload
    timestamp: Optional[int] = None

    @property
    def player_id(self) -> Optional[str]:
        return getattr(self.payload, "player_id", None)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": self.type.value, "payload": self.payload.to_dict()}
        if self.timestamp is not None:
            body["timestamp"] = self.timestamp
        return body


def create_message(msg_type: MessageType, payload: Payload) -> Message:
    expected = PAYLOAD_TYPES[msg_type]
    if not isinstance(payload, expected):
        raise ValueError(f"{msg_type.value} expects a {expected.__name__} payload")
    return Message(type=msg_type, payload=payload)


def is_valid_message(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    if not isinstance(obj.get("type"), str):
        return False
    if "payload" not in obj:
        return False
    # The host assigns its own stamp on receipt, so a missing one is fine.
    if "timestamp" in obj:
        if not _is_stamp(obj["timestamp"]):
            return False
    return True


def encode_message(message: Message) -> str:
    return json.dumps(message.to_dict())


def decode_message(raw: Union[str, bytes]) -> Optional[Message]:
    """Parse one frame; ``None`` for anything that is not a well-formed known message."""
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not is_valid_message(obj):
        return None
    try:
        msg_type = MessageType(obj["type"])
    except ValueError:
        return None
    data = obj["payload"]
    if not isinstance(data, dict):
        return None
    try:
        payload = PAYLOAD_TYPES[msg_type].from_dict(data)
    except (AttributeError, KeyError, OverflowError, TypeError, ValueError):
        return None
    stamp = obj.get("timestamp")
    return Message(type=msg_type, payload=payload, timestamp=int(stamp) if stamp is not None else None)


class LogicalClock:
    """Host-side counter handing out strictly increasing stamps."""

    def __init__(self, start: int = 0) -> None:
        self.value = start

    def tick(self) -> int:
        self.value += 1
        return self.value

    def stamp(self, message: Message) -> Message:
        stamped = replace(message, timestamp=self.tick())
        if isinstance(stamped.payload, TokenSelect):
            stamped = replace(stamped, payload=replace(stamped.payload, timestamp=stamped.timestamp))
        return stamped
