from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .cards import Deck, cards_to_labels
from .errors import InvalidPhaseTransition
from .models import ActionType, HandConfig, PhaseObserver, Player
from .phase import Events, PokerPhase

LOGGER = logging.getLogger(__name__)


class PokerGame:
    """Drives one hand end to end on top of :class:`PokerPhase`.

    After each action, completed betting rounds are advanced automatically,
    so a hand where everyone is all-in runs the board out to showdown.
    """

    def __init__(
        self,
        players: Sequence[Player],
        config: Optional[HandConfig] = None,
        deck: Optional[Deck] = None,
        observer: Optional[PhaseObserver] = None,
    ) -> None:
        self.phase = PokerPhase(players, config=config, deck=deck, observer=observer)
        self.config = self.phase.config
        self.started = False
        self.opening_stacks: Dict[str, int] = {player.id: player.chips for player in self.phase.players}

    @property
    def players(self) -> List[Player]:
        return self.phase.players

    def start(self) -> Events:
        if self.started:
            raise InvalidPhaseTransition("Hand already started")
        self.started = True
        events = self.phase.initialize_blinds()
        events.extend(self.phase.deal_hole_cards())
        events.extend(self._run_completed_rounds())
        return events

    def next_actor(self) -> Optional[int]:
        return self.phase.current_player_pos

    def legal_actions(self) -> Tuple[List[ActionType], Optional[int], Optional[int], Optional[int]]:
        return self.phase.legal_actions()

    def act(self, action: ActionType, amount: Optional[int] = None) -> Events:
        if not self.started:
            raise InvalidPhaseTransition("Hand has not started")
        events = self.phase.apply_action(action, amount)
        events.extend(self._run_completed_rounds())
        return events

    def fallback_action(self) -> Events:
        """Check when it is free, otherwise fold."""
        legal, *_ = self.phase.legal_actions()
        if ActionType.CHECK in legal:
            return self.act(ActionType.CHECK)
        return self.act(ActionType.FOLD)

    def is_hand_complete(self) -> bool:
        return self.phase.is_terminal

    def winnings(self) -> Dict[str, int]:
        if self.phase.result is None:
            raise InvalidPhaseTransition("Hand is still in progress")
        return dict(self.phase.result.winnings)

    def net_results(self) -> Dict[str, int]:
        return {player.id: player.chips - self.opening_stacks[player.id] for player in self.players}

    def snapshot(self) -> Dict[str, object]:
        phase = self.phase
        return {
            "phase": phase.name.value,
            "community": cards_to_labels(phase.community_cards),
            "pot": phase.pot,
            "current_player": phase.current_player_pos,
            "dealer": phase.dealer_pos,
            "small_blind": phase.small_blind_pos,
            "big_blind": phase.big_blind_pos,
            "players": [
                {
                    "id": player.id,
                    "name": player.name,
                    "chips": player.chips,
                    "current_bet": player.current_bet,
                    "folded": player.folded,
                }
                for player in phase.players
            ],
        }

    def act_payload(self) -> Dict[str, object]:
        player = self.phase.current_player
        if player is None:
            raise InvalidPhaseTransition("No player is due to act")
        legal, call_amount, min_bet, max_bet = self.phase.legal_actions()
        payload = self.snapshot()
        payload.update(
            {
                "you": {
                    "id": player.id,
                    "hole": cards_to_labels(player.hand),
                    "chips": player.chips,
                    "current_bet": player.current_bet,
                    "to_call": self.phase.amount_to_call,
                },
                "legal": [action.value for action in legal],
                "call_amount": call_amount,
                "min_bet": min_bet,
                "max_bet": max_bet,
            }
        )
        return payload

    def _run_completed_rounds(self) -> Events:
        events: Events = []
        while not self.phase.is_terminal and self.phase.is_completed():
            events.extend(self.phase.advance_phase())
        return events
