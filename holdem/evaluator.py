from __future__ import annotations

import itertools
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .cards import Card
from .models import HandRank


class HandScore(NamedTuple):
    rank: HandRank
    kickers: Tuple[int, ...]

    @property
    def strength(self) -> Tuple[int, Tuple[int, ...]]:
        """Comparison key; higher is better."""
        return (-int(self.rank), self.kickers)


def evaluate_best(cards: Sequence[Card]) -> HandScore:
    """Return the best five-card score out of 5 to 7 cards (Texas Hold'em)."""
    if len(cards) < 5:
        raise ValueError(f"Need at least 5 cards to evaluate, got {len(cards)}")
    best: Optional[HandScore] = None
    for combo in itertools.combinations(cards, 5):
        score = _evaluate_five(combo)
        if best is None or score.strength > best.strength:
            best = score
    assert best is not None
    return best


def _evaluate_five(cards: Sequence[Card]) -> HandScore:
    ranks = sorted((int(card.rank) for card in cards), reverse=True)
    is_flush = len({card.suit for card in cards}) == 1
    straight_high = _straight_high(ranks)

    counts: Dict[int, int] = {}
    for value in ranks:
        counts[value] = counts.get(value, 0) + 1

    # Groups ordered by size, then rank: quads/trips/pairs come first.
    ordered = sorted(counts.items(), key=lambda x: (x[1], x[0]), reverse=True)
    shape = [count for _, count in ordered]
    grouped = tuple(value for value, _ in ordered)

    if straight_high and is_flush:
        if straight_high == 14:
            return HandScore(HandRank.ROYAL_FLUSH, (14,))
        return HandScore(HandRank.STRAIGHT_FLUSH, (straight_high,))
    if shape[0] == 4:
        return HandScore(HandRank.FOUR_OF_A_KIND, grouped)
    if shape[:2] == [3, 2]:
        return HandScore(HandRank.FULL_HOUSE, grouped)
    if is_flush:
        return HandScore(HandRank.FLUSH, tuple(ranks))
    if straight_high:
        return HandScore(HandRank.STRAIGHT, (straight_high,))
    if shape[0] == 3:
        return HandScore(HandRank.THREE_OF_A_KIND, grouped)
    if shape[:2] == [2, 2]:
        return HandScore(HandRank.TWO_PAIR, grouped)
    if shape[0] == 2:
        return HandScore(HandRank.PAIR, grouped)
    return HandScore(HandRank.HIGH_CARD, tuple(ranks))


def _straight_high(ranks: Iterable[int]) -> Optional[int]:
    values = set(ranks)
    if len(values) != 5:
        return None
    high, low = max(values), min(values)
    if high - low == 4:
        return high
    if values == {14, 5, 4, 3, 2}:  # wheel
        return 5
    return None


_RANK_NAMES: Dict[HandRank, str] = {
    HandRank.ROYAL_FLUSH: "royal_flush",
    HandRank.STRAIGHT_FLUSH: "straight_flush",
    HandRank.FOUR_OF_A_KIND: "four_of_a_kind",
    HandRank.FULL_HOUSE: "full_house",
    HandRank.FLUSH: "flush",
    HandRank.STRAIGHT: "straight",
    HandRank.THREE_OF_A_KIND: "three_of_a_kind",
    HandRank.TWO_PAIR: "two_pair",
    HandRank.PAIR: "pair",
    HandRank.HIGH_CARD: "high_card",
}


def describe_rank(score: HandScore) -> str:
    return _RANK_NAMES[score.rank]


def best_players(scores: Dict[str, HandScore]) -> List[str]:
    if not scores:
        return []
    top = max(score.strength for score in scores.values())
    return [player_id for player_id, score in scores.items() if score.strength == top]
