from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .cards import Card, Deck, build_deck, cards_to_labels
from .errors import (
    DeckExhausted,
    IllegalAction,
    InsufficientChips,
    InvalidPhaseTransition,
    InvalidPlayerCount,
)
from .evaluator import describe_rank
from .models import (
    COMMUNITY_SIZE,
    NEXT_PHASE,
    ActionType,
    HandConfig,
    HandResult,
    Phase,
    PhaseObserver,
    Player,
    Pot,
    ShortfallPolicy,
)
from .pots import build_side_pots
from .sequencer import TurnSequencer
from .showdown import resolve_pots

LOGGER = logging.getLogger(__name__)

Events = List[Dict[str, object]]

# PokerPhase owns one hand from blinds to settlement. It never blocks and
# never talks to the network; callers serialize access to it.


class PokerPhase:
    """Betting-round state machine for a single hand of No-Limit Hold'em.

    The phase moves PRE_FLOP -> FLOP -> TURN -> RIVER -> SHOWDOWN through
    :meth:`advance_phase`, or jumps straight to SHOWDOWN when every player
    but one folds. Every mutating call returns the events it produced; the
    optional ``observer`` receives the same events one by one.
    """

    def __init__(
        self,
        players: Sequence[Player],
        config: Optional[HandConfig] = None,
        deck: Optional[Deck] = None,
        observer: Optional[PhaseObserver] = None,
    ) -> None:
        self.config = config or HandConfig()
        self.players: List[Player] = list(players)

        ids = [player.id for player in self.players]
        if len(set(ids)) != len(ids):
            raise ValueError("Player ids must be unique")
        for player in self.players:
            player.reset_for_hand()
            if player.chips == 0 and not player.folded:
                # Nothing to wager: sits the hand out.
                player.fold()
        if sum(1 for player in self.players if not player.folded) < 2:
            raise InvalidPlayerCount("At least two players with chips are needed to start a hand")

        count = len(self.players)
        if not 0 <= self.config.dealer_pos < count:
            raise ValueError(f"Dealer position {self.config.dealer_pos} out of range")

        self.name = Phase.PRE_FLOP
        self.deck = deck if deck is not None else build_deck(self.config.seed)
        self.community_cards: List[Card] = []
        self.pot = 0
        self.dealer_pos = self.config.dealer_pos
        self.small_blind_pos, self.big_blind_pos = self._blind_positions()
        self.sequencer = TurnSequencer(self.players)
        self.current_player_pos: Optional[int] = self.sequencer.next(self.big_blind_pos)
        self.min_raise = self.config.big_blind
        self.result: Optional[HandResult] = None

        self._observer = observer
        self._acted: Set[str] = set()
        # Players who already acted before a short all-in raise may only call or fold.
        self._raise_closed: Set[str] = set()
        self._blinds_posted = False
        self._hole_cards_dealt = False

    def _blind_positions(self) -> Tuple[int, int]:
        count = len(self.players)
        for pos in (self.config.small_blind_pos, self.config.big_blind_pos):
            if pos is not None and not 0 <= pos < count:
                raise ValueError(f"Blind position {pos} out of range")

        heads_up = len(self.active_players) == 2
        if self.config.small_blind_pos is not None:
            sb_pos = self.config.small_blind_pos
        elif heads_up and not self.players[self.dealer_pos].folded:
            sb_pos = self.dealer_pos
        else:
            sb_pos = self._next_in_hand(self.dealer_pos)

        bb_pos = self.config.big_blind_pos if self.config.big_blind_pos is not None else self._next_in_hand(sb_pos)
        if sb_pos == bb_pos:
            raise ValueError("Small blind and big blind must be different seats")
        return sb_pos, bb_pos

    def _next_in_hand(self, position: int) -> int:
        count = len(self.players)
        for step in range(1, count + 1):
            idx = (position + step) % count
            if not self.players[idx].folded:
                return idx
        raise InvalidPlayerCount("No player left in the hand")

    # Views -----------------------------------------------------------

    @property
    def active_players(self) -> List[Player]:
        return [player for player in self.players if not player.folded]

    @property
    def current_player(self) -> Optional[Player]:
        if self.current_player_pos is None:
            return None
        return self.players[self.current_player_pos]

    @property
    def highest_bet(self) -> int:
        return max((player.current_bet for player in self.active_players), default=0)

    @property
    def amount_to_call(self) -> int:
        player = self.current_player
        if player is None:
            return 0
        return max(self.highest_bet - player.current_bet, 0)

    @property
    def is_terminal(self) -> bool:
        return self.name == Phase.SHOWDOWN

    def legal_actions(self) -> Tuple[List[ActionType], Optional[int], Optional[int], Optional[int]]:
        """Legal moves for the acting player plus (call, min bet, max bet) amounts.

        Bet amounts are increments on top of the player's current bet.
        """
        player = self._require_actor()
        to_call = self.amount_to_call
        legal = [ActionType.FOLD]
        if to_call <= 0:
            legal.append(ActionType.CHECK)
        else:
            legal.append(ActionType.CALL)

        min_bet: Optional[int] = None
        max_bet: Optional[int] = None
        if player.chips > to_call and player.id not in self._raise_closed:
            legal.append(ActionType.BET)
            min_bet = min(to_call + max(self.min_raise, 1), player.chips)
            max_bet = player.chips
        call_amount = min(to_call, player.chips) if to_call > 0 else None
        return legal, call_amount, min_bet, max_bet

    # Setup -----------------------------------------------------------

    def initialize_blinds(self, small_blind: Optional[int] = None, big_blind: Optional[int] = None) -> Events:
        if self.name != Phase.PRE_FLOP or self._blinds_posted or self._acted or self.pot:
            raise InvalidPhaseTransition("Blinds can only be posted once, before any betting")
        sb_amount = self.config.small_blind if small_blind is None else small_blind
        bb_amount = self.config.big_blind if big_blind is None else big_blind
        if sb_amount < 0 or bb_amount < 0:
            raise InsufficientChips("Blinds must be non-negative")

        sb_player = self.players[self.small_blind_pos]
        bb_player = self.players[self.big_blind_pos]
        if self.config.shortfall_policy == ShortfallPolicy.REJECT:
            for player, amount in ((sb_player, sb_amount), (bb_player, bb_amount)):
                if amount > player.chips:
                    raise InsufficientChips(f"Player {player.id} cannot post a blind of {amount} with {player.chips} chips")

        events: Events = []
        sb_posted = self._post_blind(sb_player, sb_amount)
        bb_posted = self._post_blind(bb_player, bb_amount)
        self._blinds_posted = True
        self.min_raise = max(bb_amount, 1)
        self._emit(
            events,
            "POST_BLINDS",
            sb_player=sb_player.id,
            bb_player=bb_player.id,
            sb=sb_posted,
            bb=bb_posted,
        )
        LOGGER.debug("Blinds posted sb=%s(%s) bb=%s(%s)", sb_player.id, sb_posted, bb_player.id, bb_posted)
        self._set_actor(self.big_blind_pos + 1)
        return events

    def _post_blind(self, player: Player, amount: int) -> int:
        amount = min(amount, player.chips)
        if amount > 0:
            player.bet(amount)
            self.pot += amount
        return amount

    def deal_hole_cards(self) -> Events:
        if self.name != Phase.PRE_FLOP or self._hole_cards_dealt:
            raise InvalidPhaseTransition("Hole cards are dealt once, pre-flop")
        recipients = self.active_players
        needed = 2 * len(recipients)
        if len(self.deck) < needed:
            raise DeckExhausted(f"Deck cannot deal hole cards: need {needed}, have {len(self.deck)}")
        for _ in range(2):
            for player in recipients:
                card = self.deck.draw()
                if card is None:
                    raise DeckExhausted("Deck ran out while dealing hole cards")
                player.receive(card)
        self._hole_cards_dealt = True
        events: Events = []
        self._emit(events, "HOLE_CARDS", players=[player.id for player in recipients])
        return events

    def deal_community_cards(self, count: int) -> Events:
        expected = COMMUNITY_SIZE[self.name]
        if self.is_terminal or count <= 0 or len(self.community_cards) + count != expected:
            raise InvalidPhaseTransition(
                f"Cannot deal {count} community cards during {self.name.value} "
                f"with {len(self.community_cards)} on the board"
            )
        cards = self.deck.draw_many(count)
        self.community_cards.extend(cards)
        events: Events = []
        self._emit(events, self.name.value, cards=cards_to_labels(cards))
        return events

    # Actions ---------------------------------------------------------

    def apply_action(self, action: ActionType, amount: Optional[int] = None) -> Events:
        action = ActionType(action)
        if action == ActionType.FOLD:
            return self.current_player_fold()
        if action == ActionType.CHECK:
            return self.current_player_check()
        if action == ActionType.CALL:
            return self.current_player_call()
        if amount is None:
            raise IllegalAction("Bet requires an amount")
        return self.current_player_bet(amount)

    def current_player_bet(self, amount: int) -> Events:
        player = self._require_actor()
        if amount <= 0:
            raise InsufficientChips(f"Bet must be positive, got {amount}")
        if amount > player.chips:
            raise InsufficientChips(f"Player {player.id} cannot bet {amount} with {player.chips} chips")

        target = self.highest_bet
        new_total = player.current_bet + amount
        all_in = amount == player.chips
        if new_total < target and not all_in:
            raise IllegalAction(f"Bet of {amount} does not cover the {target - player.current_bet} to call")
        raise_by = new_total - target
        if raise_by > 0 and player.id in self._raise_closed:
            raise IllegalAction("Betting was not reopened by the short all-in; call or fold")
        if 0 < raise_by < self.min_raise and not all_in:
            raise IllegalAction(f"Raise below minimum: raise by at least {self.min_raise}")

        player.bet(amount)
        self.pot += amount
        events: Events = []
        if raise_by > 0:
            if raise_by >= self.min_raise:
                self.min_raise = raise_by
                self._raise_closed.clear()
            else:
                self._raise_closed |= self._acted - {player.id}
            # Everyone else has to respond to the new bet.
            self._acted = {player.id}
            self._emit(events, "BET", player=player.id, amount=amount, total=new_total)
        else:
            self._acted.add(player.id)
            self._emit(events, "CALL", player=player.id, amount=amount)
        if all_in:
            self._emit(events, "ALL_IN", player=player.id, total=player.total_bet)
        LOGGER.debug("%s bets %s (current_bet=%s pot=%s)", player.id, amount, player.current_bet, self.pot)
        events.extend(self._advance_turn())
        return events

    def current_player_check(self) -> Events:
        player = self._require_actor()
        if self.highest_bet > player.current_bet:
            raise IllegalAction("Cannot check when facing a bet")
        self._acted.add(player.id)
        events: Events = []
        self._emit(events, "CHECK", player=player.id)
        events.extend(self._advance_turn())
        return events

    def current_player_call(self) -> Events:
        player = self._require_actor()
        to_call = self.highest_bet - player.current_bet
        if to_call <= 0:
            raise IllegalAction("Nothing to call")
        return self.current_player_bet(min(to_call, player.chips))

    def current_player_fold(self) -> Events:
        player = self._require_actor()
        player.fold()
        self._acted.discard(player.id)
        events: Events = []
        self._emit(events, "FOLD", player=player.id)
        remaining = self.active_players
        if len(remaining) == 1:
            events.extend(self._award_uncontested(remaining[0]))
            return events
        events.extend(self._advance_turn())
        return events

    def is_completed(self) -> bool:
        if self.is_terminal:
            return True
        active = self.active_players
        if len(active) <= 1:
            return True
        target = self.highest_bet
        pending = [player for player in active if player.can_act]
        if not pending:
            return True
        if len(pending) == 1 and pending[0].current_bet >= target:
            # Everybody else is all-in and already covered.
            return True
        return all(player.id in self._acted and player.current_bet == target for player in pending)

    def advance_phase(self) -> Events:
        if self.is_terminal:
            raise InvalidPhaseTransition("Hand is already over")
        if not self.is_completed():
            raise InvalidPhaseTransition(f"Betting in {self.name.value} is not complete")

        next_phase = NEXT_PHASE[self.name]
        to_deal = COMMUNITY_SIZE[next_phase] - len(self.community_cards)
        if len(self.deck) < to_deal:
            raise DeckExhausted(f"Deck cannot deal {next_phase.value}: need {to_deal}, have {len(self.deck)}")

        for player in self.players:
            player.reset_for_round()
        self._acted.clear()
        self._raise_closed.clear()
        self.min_raise = max(self.config.big_blind, 1)
        self.name = next_phase
        LOGGER.info("Phase advanced to %s (pot=%s)", next_phase.value, self.pot)

        events: Events = []
        if next_phase == Phase.SHOWDOWN:
            events.extend(self._settle())
            return events
        events.extend(self.deal_community_cards(to_deal))
        self._set_actor(self.dealer_pos + 1)
        return events

    # Internals -------------------------------------------------------

    def _require_actor(self) -> Player:
        if self.is_terminal:
            raise InvalidPhaseTransition("Hand is over; no further actions are accepted")
        player = self.current_player
        if player is None:
            raise InvalidPhaseTransition(f"No player is due to act in {self.name.value}; advance the phase")
        return player

    def _set_actor(self, offset: int) -> None:
        if self.is_completed():
            self.current_player_pos = None
        else:
            self.current_player_pos = self.sequencer.first_from(offset)

    def _advance_turn(self) -> Events:
        events: Events = []
        if self.is_completed():
            self.current_player_pos = None
            self._emit(events, "ROUND_COMPLETE", phase=self.name.value, pot=self.pot)
            return events
        assert self.current_player_pos is not None
        self.current_player_pos = self.sequencer.next(self.current_player_pos)
        return events

    def _award_uncontested(self, winner: Player) -> Events:
        amount = self.pot
        winner.chips += amount
        self.pot = 0
        self.name = Phase.SHOWDOWN
        self.current_player_pos = None
        for player in self.players:
            player.reset_for_round()
        self.result = HandResult(
            winnings={winner.id: amount},
            pots=[Pot(amount, frozenset({winner.id}))],
            uncontested=True,
        )
        events: Events = []
        self._emit(events, "POT_AWARD", player=winner.id, amount=amount)
        LOGGER.info("%s wins %s uncontested", winner.id, amount)
        return events

    def _settle(self) -> Events:
        events: Events = []
        pots = build_side_pots(self.players)
        winnings, scores = resolve_pots(pots, self.players, self.community_cards, self.dealer_pos)
        by_id = {player.id: player for player in self.players}
        for player_id, score in scores.items():
            self._emit(
                events,
                "SHOWDOWN",
                player=player_id,
                hand=cards_to_labels(by_id[player_id].hand),
                board=cards_to_labels(self.community_cards),
                rank=describe_rank(score),
            )
        for player_id, amount in winnings.items():
            by_id[player_id].chips += amount
            self._emit(events, "POT_AWARD", player=player_id, amount=amount)

        self.pot -= sum(winnings.values())
        self.current_player_pos = None
        self.result = HandResult(winnings=winnings, pots=pots, scores=dict(scores))
        LOGGER.info("Hand settled: pots=%s winnings=%s", [pot.amount for pot in pots], winnings)
        return events

    def _emit(self, events: Events, ev: str, **data: object) -> None:
        event: Dict[str, object] = {"ev": ev}
        event.update(data)
        events.append(event)
        if self._observer is not None:
            self._observer(event)
