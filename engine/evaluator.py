from __future__ import annotations

from dataclasses import dataclass
from itertools import zip_longest
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .cards import Card, SUITS

HIGH_CARD = 1
PAIR = 2
TWO_PAIR = 3
THREE_OF_A_KIND = 4
STRAIGHT = 5
FLUSH = 6
FULL_HOUSE = 7
FOUR_OF_A_KIND = 8
STRAIGHT_FLUSH = 9
ROYAL_FLUSH = 10

HAND_NAMES = {
    HIGH_CARD: "High Card",
    PAIR: "Pair",
    TWO_PAIR: "Two Pair",
    THREE_OF_A_KIND: "Three of a Kind",
    STRAIGHT: "Straight",
    FLUSH: "Flush",
    FULL_HOUSE: "Full House",
    FOUR_OF_A_KIND: "Four of a Kind",
    STRAIGHT_FLUSH: "Straight Flush",
    ROYAL_FLUSH: "Royal Flush",
}

RANK_PLURALS = {
    "2": "Twos",
    "3": "Threes",
    "4": "Fours",
    "5": "Fives",
    "6": "Sixes",
    "7": "Sevens",
    "8": "Eights",
    "9": "Nines",
    "10": "Tens",
    "J": "Jacks",
    "Q": "Queens",
    "K": "Kings",
    "A": "Aces",
}

WHEEL = (5, 4, 3, 2, 14)


@dataclass(frozen=True)
class HandResult:
    rank: int
    name: str
    best_five: Tuple[Card, ...]
    primary_cards: Tuple[Card, ...]
    tiebreakers: Tuple[int, ...]
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "name": self.name,
            "bestFive": [card.to_dict() for card in self.best_five],
            "primaryCards": [card.to_dict() for card in self.primary_cards],
            "tiebreakers": list(self.tiebreakers),
            "description": self.description,
        }


def evaluate_seven(cards: Sequence[Card]) -> HandResult:
    """Evaluate a live showdown hand: two hole cards plus five community cards."""
    if len(cards) != 7:
        raise ValueError("evaluate_seven requires exactly 7 cards")
    return evaluate_hand(cards)


def evaluate_hand(cards: Sequence[Card]) -> HandResult:
    """Return the best hand available from 4 to 7 cards."""
    if len(cards) < 4 or len(cards) > 7:
        raise ValueError("evaluate_hand expects between 4 and 7 cards")
    if len(set(cards)) != len(cards):
        raise ValueError("Duplicate cards in hand")

    # Fixed ordering makes every card choice below independent of input order.
    ordered = sorted(cards, key=lambda card: (-card.value, SUITS.index(card.suit)))

    flush = _flush_cards(ordered)
    if flush:
        straight_flush = _best_straight(flush)
        if straight_flush:
            high = straight_flush[0]
            if high.value == 14:
                return _result(ROYAL_FLUSH, straight_flush, straight_flush, _straight_values(straight_flush), "Royal Flush")
            return _result(
                STRAIGHT_FLUSH,
                straight_flush,
                straight_flush,
                _straight_values(straight_flush),
                f"Straight Flush, {high.rank} high",
            )

    groups = _group_by_rank(ordered)
    lead = groups[0]
    second = groups[1] if len(groups) > 1 else []

    if len(lead) == 4:
        kickers = _kickers(ordered, lead, 1)
        return _result(
            FOUR_OF_A_KIND,
            lead + kickers,
            lead,
            _values(lead[:1] + kickers),
            f"Four {RANK_PLURALS[lead[0].rank]}",
        )

    if len(lead) == 3 and len(second) >= 2:
        pair = second[:2]
        best = lead + pair
        return _result(
            FULL_HOUSE,
            best,
            best,
            (lead[0].value, pair[0].value),
            f"Full House, {RANK_PLURALS[lead[0].rank]} over {RANK_PLURALS[pair[0].rank]}",
        )

    if flush:
        best = flush[:5]
        return _result(FLUSH, best, best, _values(best), f"Flush, {best[0].rank} high")

    straight = _best_straight(ordered)
    if straight:
        return _result(STRAIGHT, straight, straight, _straight_values(straight), f"Straight, {straight[0].rank} high")

    if len(lead) == 3:
        kickers = _kickers(ordered, lead, 2)
        return _result(
            THREE_OF_A_KIND,
            lead + kickers,
            lead,
            _values(lead[:1] + kickers),
            f"Three {RANK_PLURALS[lead[0].rank]}",
        )

    if len(lead) == 2 and len(second) == 2:
        pairs = lead + second
        kickers = _kickers(ordered, pairs, 1)
        return _result(
            TWO_PAIR,
            pairs + kickers,
            pairs,
            _values([lead[0], second[0]] + kickers),
            f"Two Pair, {RANK_PLURALS[lead[0].rank]} and {RANK_PLURALS[second[0].rank]}",
        )

    if len(lead) == 2:
        kickers = _kickers(ordered, lead, 3)
        return _result(
            PAIR,
            lead + kickers,
            lead,
            _values(lead[:1] + kickers),
            f"Pair of {RANK_PLURALS[lead[0].rank]}",
        )

    best = ordered[:5]
    return _result(HIGH_CARD, best, best[:1], _values(best), f"High Card, {best[0].rank}")


def compare_hands(hand_a: HandResult, hand_b: HandResult) -> int:
    """Positive when ``hand_a`` wins, negative when ``hand_b`` wins, 0 on a true tie."""
    if hand_a.rank != hand_b.rank:
        return hand_a.rank - hand_b.rank
    for value_a, value_b in zip_longest(hand_a.tiebreakers, hand_b.tiebreakers, fillvalue=0):
        if value_a != value_b:
            return value_a - value_b
    return 0


def _result(
    rank: int,
    best: Sequence[Card],
    primary: Sequence[Card],
    tiebreakers: Sequence[int],
    description: str,
) -> HandResult:
    return HandResult(
        rank=rank,
        name=HAND_NAMES[rank],
        best_five=tuple(best),
        primary_cards=tuple(primary),
        tiebreakers=tuple(tiebreakers),
        description=description,
    )


def _values(cards: Sequence[Card]) -> Tuple[int, ...]:
    return tuple(card.value for card in cards)


def _straight_values(straight: Sequence[Card]) -> Tuple[int, ...]:
    # The wheel plays its ace low.
    if straight[0].value == 5:
        return tuple(1 if card.value == 14 else card.value for card in straight)
    return _values(straight)


def _flush_cards(ordered: Sequence[Card]) -> Optional[List[Card]]:
    for suit in SUITS:
        suited = [card for card in ordered if card.suit == suit]
        if len(suited) >= 5:
            return suited
    return None


def _best_straight(ordered: Sequence[Card]) -> Optional[List[Card]]:
    by_value: Dict[int, Card] = {}
    for card in ordered:
        by_value.setdefault(card.value, card)
    for high in range(14, 5, -1):
        window = range(high, high - 5, -1)
        if all(value in by_value for value in window):
            return [by_value[value] for value in window]
    if all(value in by_value for value in WHEEL):
        return [by_value[value] for value in WHEEL]
    return None


def _group_by_rank(ordered: Sequence[Card]) -> List[List[Card]]:
    groups: Dict[int, List[Card]] = {}
    for card in ordered:
        groups.setdefault(card.value, []).append(card)
    return sorted(groups.values(), key=lambda group: (len(group), group[0].value), reverse=True)


def _kickers(ordered: Sequence[Card], used: Sequence[Card], count: int) -> List[Card]:
    return [card for card in ordered if card not in used][:count]
