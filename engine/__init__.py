"""Rank-token game rules: cards, hand evaluation, tokens, scoring and phases."""

from .cards import Card, RANKS, SUITS, create_deck, parse_cards, shuffle_deck
from .evaluator import HandResult, compare_hands, evaluate_hand, evaluate_seven
from .match import LobbyError, MatchCoordinator
from .models import GameState, LobbyPlayer, Phase, Player, Token, TokenAction
from .scoring import PlayerHand, WinLossResult, determine_win_loss
from .tokens import apply_token_action, generate_tokens

__all__ = [
    "Card",
    "RANKS",
    "SUITS",
    "create_deck",
    "parse_cards",
    "shuffle_deck",
    "HandResult",
    "compare_hands",
    "evaluate_hand",
    "evaluate_seven",
    "LobbyError",
    "MatchCoordinator",
    "GameState",
    "LobbyPlayer",
    "Phase",
    "Player",
    "Token",
    "TokenAction",
    "PlayerHand",
    "WinLossResult",
    "determine_win_loss",
    "apply_token_action",
    "generate_tokens",
]
