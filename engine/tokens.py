from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from .constants import TOTAL_TURNS
from .models import Token, TokenAction

# Ownership is decided by the (timestamp, player_id) order alone, so any two
# peers replaying the same host-stamped actions end with the same owners.


@dataclass(frozen=True)
class TokenActionResult:
    tokens: Tuple[Token, ...]
    stolen_from_id: Optional[str] = None
    stolen_by_id: Optional[str] = None


def generate_tokens(player_count: int) -> Tuple[Token, ...]:
    return tuple(Token(number=number) for number in range(1, player_count + 1))


def resolve_token_action(tokens: Sequence[Token], action: TokenAction) -> TokenActionResult:
    """Apply one select action and report whether it took the token from someone."""
    updated: List[Token] = list(tokens)
    index = _index_of(updated, action.token_number)
    target = updated[index]

    if target.owner_id == action.player_id:
        updated[index] = replace(target, owner_id=None, timestamp=0)
        return TokenActionResult(tokens=tuple(updated))

    for idx, token in enumerate(updated):
        if token.owner_id == action.player_id:
            updated[idx] = replace(token, owner_id=None, timestamp=0)

    if not _takes(target, action):
        return TokenActionResult(tokens=tuple(updated))

    updated[index] = replace(target, owner_id=action.player_id, timestamp=action.timestamp)
    if target.owner_id is None:
        return TokenActionResult(tokens=tuple(updated))
    return TokenActionResult(
        tokens=tuple(updated),
        stolen_from_id=target.owner_id,
        stolen_by_id=action.player_id,
    )


def apply_token_action(tokens: Sequence[Token], action: TokenAction) -> Tuple[Token, ...]:
    return resolve_token_action(tokens, action).tokens


def reset_tokens(tokens: Sequence[Token]) -> Tuple[Token, ...]:
    return tuple(replace(token, owner_id=None, timestamp=0) for token in tokens)


def initial_token_history() -> Tuple[Optional[int], ...]:
    return (None,) * TOTAL_TURNS


def update_token_history(
    history: Sequence[Optional[int]],
    turn: int,
    token_number: Optional[int],
) -> Tuple[Optional[int], ...]:
    if turn < 1 or turn > TOTAL_TURNS:
        raise ValueError(f"Turn must be between 1 and {TOTAL_TURNS}")
    padded = list(history) + [None] * (TOTAL_TURNS - len(history))
    padded[turn - 1] = token_number
    return tuple(padded[:TOTAL_TURNS])


def _index_of(tokens: Sequence[Token], number: int) -> int:
    for idx, token in enumerate(tokens):
        if token.number == number:
            return idx
    raise ValueError(f"Token {number} not found")


def _takes(target: Token, action: TokenAction) -> bool:
    if target.owner_id is None:
        return True
    if action.timestamp > target.timestamp:
        return True
    return action.timestamp == target.timestamp and action.player_id < target.owner_id
