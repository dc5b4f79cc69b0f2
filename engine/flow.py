from __future__ import annotations

from typing import Optional, Sequence

from .models import LobbyPlayer, Phase, Token

# What the table view shows for a given state; no rendering happens here.

PHASE_TEXT = {
    Phase.LOBBY: "Waiting for players...",
    Phase.READY_UP: "Press Ready when you're ready to start taking tokens",
    Phase.TOKEN_TRADING: "Select or steal a token. Press Proceed when done.",
    Phase.END_GAME: "Game Over",
}


def phase_text(phase: Phase) -> str:
    return PHASE_TEXT.get(phase, "")


def should_show_ready_button(phase: Phase) -> bool:
    return phase == Phase.READY_UP


def should_show_proceed_button(phase: Phase, tokens: Optional[Sequence[Token]] = None) -> bool:
    if phase != Phase.TOKEN_TRADING or tokens is None:
        return False
    return all(token.is_owned for token in tokens)


def lobby_ready_text(lobby: Sequence[LobbyPlayer]) -> str:
    ready = sum(1 for player in lobby if player.is_ready)
    return f"Players Ready: {ready} out of {len(lobby)}"
