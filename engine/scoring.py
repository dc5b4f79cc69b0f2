from __future__ import annotations

from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from .evaluator import HandResult, compare_hands

# Scoring only runs once the match reaches END_GAME; the host and every
# client can run it on the same snapshot and get the same verdict.


@dataclass(frozen=True)
class PlayerHand:
    player_id: str
    hand: HandResult
    current_token: int
    name: str = ""


@dataclass
class WinLossResult:
    is_win: bool
    sorted_players: List[PlayerHand]
    correctness: Dict[str, bool]
    expected_tokens: List[int]
    decisive_kickers: Dict[str, List[int]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isWin": self.is_win,
            "sortedPlayers": [
                {
                    "playerId": entry.player_id,
                    "name": entry.name,
                    "currentToken": entry.current_token,
                    "hand": entry.hand.to_dict(),
                }
                for entry in self.sorted_players
            ],
            "correctness": dict(self.correctness),
            "expectedTokens": list(self.expected_tokens),
            "decisiveKickers": {key: list(value) for key, value in self.decisive_kickers.items()},
        }


def compare_strength(first: PlayerHand, second: PlayerHand) -> int:
    """Sort comparator placing the stronger hand first."""
    return compare_hands(second.hand, first.hand)


def sort_by_hand_strength(players: Sequence[PlayerHand]) -> List[PlayerHand]:
    return sorted(players, key=cmp_to_key(compare_strength))


def group_tie_blocks(sorted_players: Sequence[PlayerHand]) -> List[List[PlayerHand]]:
    blocks: List[List[PlayerHand]] = []
    for player in sorted_players:
        if blocks and compare_strength(player, blocks[-1][0]) == 0:
            blocks[-1].append(player)
        else:
            blocks.append([player])
    return blocks


def determine_win_loss(players: Sequence[PlayerHand]) -> WinLossResult:
    """Check that held tokens follow hand strength, strongest block holding the top numbers."""
    sorted_players = sort_by_hand_strength(players)
    blocks = group_tie_blocks(sorted_players)

    correctness: Dict[str, bool] = {}
    expected_tokens: List[int] = []
    top = len(players)
    for block in blocks:
        bottom = top - len(block) + 1
        expected_tokens.extend([top] * len(block))
        held = [entry.current_token for entry in block]
        in_range = all(bottom <= token <= top for token in held)
        unique = len(set(held)) == len(held)
        for entry in block:
            correctness[entry.player_id] = in_range and unique
        top = bottom - 1

    return WinLossResult(
        is_win=all(correctness.values()),
        sorted_players=sorted_players,
        correctness=correctness,
        expected_tokens=expected_tokens,
        decisive_kickers=calculate_decisive_kickers(sorted_players),
    )


def calculate_decisive_kickers(sorted_players: Sequence[PlayerHand]) -> Dict[str, List[int]]:
    decisive: Dict[str, List[int]] = {}
    for idx, player in enumerate(sorted_players):
        indices = set()
        if idx > 0:
            found = find_decisive_kicker(player, sorted_players[idx - 1])
            if found is not None:
                indices.add(found)
        if idx < len(sorted_players) - 1:
            found = find_decisive_kicker(player, sorted_players[idx + 1])
            if found is not None:
                indices.add(found)
        decisive[player.player_id] = sorted(indices)
    return decisive


def find_decisive_kicker(first: PlayerHand, second: PlayerHand) -> Optional[int]:
    """Index into ``first``'s best five of the kicker that separated the two hands."""
    if first.hand.rank != second.hand.rank:
        return None
    if compare_hands(first.hand, second.hand) == 0:
        return None
    first_primary = set(first.hand.primary_cards)
    second_primary = set(second.hand.primary_cards)
    for idx, (card_a, card_b) in enumerate(zip(first.hand.best_five, second.hand.best_five)):
        if card_a in first_primary or card_b in second_primary:
            continue
        if card_a.value != card_b.value:
            return idx
    return None
