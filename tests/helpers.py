from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from holdem.cards import Deck, parse_cards, stacked_deck
from holdem.game import PokerGame
from holdem.models import ActionType, HandConfig, Player
from holdem.phase import PokerPhase


def make_players(*stacks: int, prefix: str = "P") -> List[Player]:
    """One player per stack, ids P0, P1, ... in seat order."""
    return [Player(id=f"{prefix}{idx}", chips=stack) for idx, stack in enumerate(stacks)]


def scripted_deck(labels: Sequence[str]) -> Deck:
    """Deck that draws ``labels`` first, in order."""
    return stacked_deck(parse_cards(labels))


def create_phase(
    stacks: Sequence[int] = (1_000, 1_000),
    *,
    deck: Optional[Deck] = None,
    observer=None,
    **config,
) -> PokerPhase:
    return PokerPhase(make_players(*stacks), HandConfig(**config), deck=deck, observer=observer)


def create_game(
    stacks: Sequence[int] = (1_000, 1_000),
    *,
    deck: Optional[Deck] = None,
    **config,
) -> PokerGame:
    return PokerGame(make_players(*stacks), HandConfig(**config), deck=deck)


def table_chips(phase: PokerPhase) -> int:
    return sum(player.chips for player in phase.players) + phase.pot


def perform_actions(game: PokerGame, actions: Iterable[tuple[ActionType, Optional[int]]]) -> None:
    """Apply a scripted sequence of (action, amount) for whoever is to act."""
    for action, amount in actions:
        game.act(action, amount)


def auto_complete_hand(game: PokerGame) -> None:
    """Check or call every decision until the hand is over."""
    while not game.is_hand_complete():
        legal, *_ = game.legal_actions()
        if ActionType.CHECK in legal:
            game.act(ActionType.CHECK)
        else:
            game.act(ActionType.CALL)
