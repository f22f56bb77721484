from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple

from .cards import Card
from .evaluator import HandScore, best_players, evaluate_best
from .models import Player, Pot

LOGGER = logging.getLogger(__name__)


def seat_order_after(players: Sequence[Player], dealer_pos: int) -> List[str]:
    """Player ids in seat order starting with the seat left of the dealer."""
    count = len(players)
    return [players[(dealer_pos + 1 + step) % count].id for step in range(count)]


def score_players(players: Sequence[Player], community: Sequence[Card]) -> Dict[str, HandScore]:
    return {
        player.id: evaluate_best(list(player.hand) + list(community))
        for player in players
        if not player.folded
    }


def split_pot(amount: int, winners: Sequence[str], order: Sequence[str]) -> Dict[str, int]:
    """Share ``amount`` equally; odd chips go one at a time in ``order``."""
    ordered = [player_id for player_id in order if player_id in winners]
    share, remainder = divmod(amount, len(ordered))
    return {player_id: share + (1 if idx < remainder else 0) for idx, player_id in enumerate(ordered)}


def resolve_pots(
    pots: Sequence[Pot],
    players: Sequence[Player],
    community: Sequence[Card],
    dealer_pos: int,
) -> Tuple[Dict[str, int], Dict[str, HandScore]]:
    """Award every pot; returns (chips won per player id, scores evaluated)."""
    order = seat_order_after(players, dealer_pos)
    contested = {player_id for pot in pots if len(pot.eligible_players) > 1 for player_id in pot.eligible_players}
    scores = score_players([player for player in players if player.id in contested], community)

    winnings: Dict[str, int] = {}
    for pot in pots:
        if not pot.eligible_players:
            LOGGER.warning("Pot of %s has no eligible players; left unawarded", pot.amount)
            continue
        if len(pot.eligible_players) == 1:
            winners = list(pot.eligible_players)
        else:
            winners = best_players({player_id: scores[player_id] for player_id in pot.eligible_players})
        for player_id, amount in split_pot(pot.amount, winners, order).items():
            winnings[player_id] = winnings.get(player_id, 0) + amount
    return winnings, scores
