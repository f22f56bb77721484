from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterable, List, Optional, Sequence

from .errors import DeckExhausted

RANKS = "23456789TJQKA"


class Rank(IntEnum):
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13
    ACE = 14

    @property
    def char(self) -> str:
        return RANKS[self.value - 2]

    @classmethod
    def from_char(cls, char: str) -> "Rank":
        idx = RANKS.find(char.upper()) if len(char) == 1 else -1
        if idx < 0:
            raise ValueError(f"Invalid rank: {char}")
        return cls(idx + 2)


class Suit(str, Enum):
    HEARTS = "h"
    DIAMONDS = "d"
    CLUBS = "c"
    SPADES = "s"


@dataclass(frozen=True)
class Card:
    rank: Rank
    suit: Suit

    def __post_init__(self) -> None:
        # Accept plain ints/strings and normalise them to the enums.
        try:
            rank = Rank(self.rank)
        except ValueError:
            raise ValueError(f"Invalid rank: {self.rank}") from None
        try:
            suit = Suit(self.suit)
        except ValueError:
            raise ValueError(f"Invalid suit: {self.suit}") from None
        object.__setattr__(self, "rank", rank)
        object.__setattr__(self, "suit", suit)

    @property
    def label(self) -> str:
        return f"{self.rank.char}{self.suit.value}"

    def __str__(self) -> str:
        return self.label


class Deck:
    """Fixed 52-card deck. The top of the deck is the end of the list."""

    def __init__(self, cards: Optional[Iterable[Card]] = None) -> None:
        if cards is None:
            cards = [Card(rank, suit) for suit in Suit for rank in Rank]
        self._cards: List[Card] = list(cards)
        if len(set(self._cards)) != len(self._cards):
            raise ValueError("Deck contains duplicate cards")

    def __len__(self) -> int:
        return len(self._cards)

    @property
    def cards(self) -> List[Card]:
        return list(self._cards)

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        # Fisher-Yates, in place.
        rng = rng or random.Random()
        for i in range(len(self._cards) - 1, 0, -1):
            j = rng.randint(0, i)
            self._cards[i], self._cards[j] = self._cards[j], self._cards[i]

    def draw(self) -> Optional[Card]:
        if not self._cards:
            return None
        return self._cards.pop()

    def draw_many(self, count: int) -> List[Card]:
        if len(self._cards) < count:
            raise DeckExhausted(f"Not enough cards left in deck: need {count}, have {len(self._cards)}")
        return [self._cards.pop() for _ in range(count)]


def build_deck(seed: Optional[int] = None) -> Deck:
    deck = Deck()
    deck.shuffle(random.Random(seed))
    return deck


def stacked_deck(draw_order: Sequence[Card]) -> Deck:
    """Deck whose draws yield ``draw_order`` first, then the unused cards."""
    used = set(draw_order)
    rest = [Card(rank, suit) for suit in Suit for rank in Rank if Card(rank, suit) not in used]
    return Deck(rest + list(reversed(draw_order)))


def cards_to_labels(cards: Iterable[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    if len(label) != 2:
        raise ValueError(f"Invalid card label: {label}")
    return Card(Rank.from_char(label[0]), label[1])


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
