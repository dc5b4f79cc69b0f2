from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .constants import CARD_BACK_COLORS, COMMUNITY_SCHEDULE, MAX_PLAYERS, MAX_TURN, MIN_PLAYERS, MIN_TURN

RANKS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
SUITS = ("s", "h", "d", "c")
SUIT_SYMBOLS = {"s": "♠", "h": "♥", "d": "♦", "c": "♣"}
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANKS, start=2)}


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def value(self) -> int:
        return RANK_VALUE[self.rank]

    @property
    def symbol(self) -> str:
        return f"{self.rank}{SUIT_SYMBOLS[self.suit]}"

    def to_dict(self) -> Dict[str, str]:
        return {"rank": self.rank, "suit": self.suit}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Card":
        return cls(str(data["rank"]), str(data["suit"]))


def create_deck() -> List[Card]:
    """Return the 52 cards in suit-major, rank-minor order (unshuffled)."""
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]


def shuffle_deck(deck: Sequence[Card], rng: Optional[random.Random] = None) -> List[Card]:
    """Fisher-Yates shuffle into a new list; ``deck`` itself is left untouched."""
    rng = rng or random.Random()
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def random_card_back_color(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return CARD_BACK_COLORS[0] if rng.random() < 0.5 else CARD_BACK_COLORS[1]


def deal(deck: List[Card], count: int) -> List[Card]:
    if len(deck) < count:
        raise ValueError("Not enough cards left in deck")
    cards = deck[:count]
    del deck[:count]
    return cards


def deal_hole_cards(deck: Sequence[Card], player_count: int) -> Tuple[List[Tuple[Card, Card]], List[Card]]:
    """Take two cards per player from the front of the deck.

    Returns ``(hole_cards, remaining_deck)``; the input sequence is not modified.
    """
    if player_count < MIN_PLAYERS or player_count > MAX_PLAYERS:
        raise ValueError(f"Player count must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
    remaining = list(deck)
    if len(remaining) < 2 * player_count:
        raise ValueError("Not enough cards in deck to deal hole cards")
    hole_cards: List[Tuple[Card, Card]] = []
    for _ in range(player_count):
        first, second = deal(remaining, 2)
        hole_cards.append((first, second))
    return hole_cards, remaining


def cards_for_turn(turn: int) -> int:
    if turn < MIN_TURN or turn > MAX_TURN:
        raise ValueError(f"Turn must be between {MIN_TURN} and {MAX_TURN}")
    return COMMUNITY_SCHEDULE[turn]


def deal_community_cards(deck: Sequence[Card], turn: int) -> Tuple[List[Card], List[Card]]:
    """Reveal the community cards scheduled for ``turn`` (0, 3, 1, 1)."""
    count = cards_for_turn(turn)
    remaining = list(deck)
    if len(remaining) < count:
        raise ValueError("Not enough cards in deck to deal community cards")
    return deal(remaining, count), remaining


def parse_label(label: str) -> Card:
    if len(label) not in (2, 3):
        raise ValueError(f"Invalid card label: {label}")
    return Card(label[:-1], label[-1])


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
