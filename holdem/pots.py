from __future__ import annotations

from typing import List, Sequence

from .models import Player, Pot


def total_contributions(players: Sequence[Player]) -> int:
    return sum(player.total_bet for player in players)


def build_side_pots(players: Sequence[Player]) -> List[Pot]:
    """Split everything wagered this hand into a main pot and side pots.

    Each distinct contribution level opens a layer worth
    ``(level - previous_level) * contributors_at_or_above_level``. Folded
    players still pay into every layer they reached but cannot win any.
    A layer whose contributors all folded is folded into the pot below it.
    """
    levels = sorted({player.total_bet for player in players if player.total_bet > 0})
    pots: List[Pot] = []
    previous = 0
    for level in levels:
        contributors = [player for player in players if player.total_bet >= level]
        amount = (level - previous) * len(contributors)
        eligible = frozenset(player.id for player in contributors if not player.folded)
        previous = level
        if not eligible:
            if pots:
                last = pots.pop()
                pots.append(Pot(last.amount + amount, last.eligible_players))
                continue
            eligible = frozenset(player.id for player in players if not player.folded)
        if pots and pots[-1].eligible_players == eligible:
            # Folds can leave consecutive layers with the same contenders.
            last = pots.pop()
            amount += last.amount
        pots.append(Pot(amount, eligible))
    return pots
