from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Dict, FrozenSet, List, Optional, Protocol

from .cards import Card
from .errors import InsufficientChips


class Phase(str, Enum):
    PRE_FLOP = "PRE_FLOP"
    FLOP = "FLOP"
    TURN = "TURN"
    RIVER = "RIVER"
    SHOWDOWN = "SHOWDOWN"


# Board size once each phase has been dealt.
COMMUNITY_SIZE: Dict[Phase, int] = {
    Phase.PRE_FLOP: 0,
    Phase.FLOP: 3,
    Phase.TURN: 4,
    Phase.RIVER: 5,
    Phase.SHOWDOWN: 5,
}

NEXT_PHASE: Dict[Phase, Phase] = {
    Phase.PRE_FLOP: Phase.FLOP,
    Phase.FLOP: Phase.TURN,
    Phase.TURN: Phase.RIVER,
    Phase.RIVER: Phase.SHOWDOWN,
}


class HandRank(IntEnum):
    """Hand category; lower is stronger."""

    ROYAL_FLUSH = 1
    STRAIGHT_FLUSH = 2
    FOUR_OF_A_KIND = 3
    FULL_HOUSE = 4
    FLUSH = 5
    STRAIGHT = 6
    THREE_OF_A_KIND = 7
    TWO_PAIR = 8
    PAIR = 9
    HIGH_CARD = 10


class ActionType(str, Enum):
    FOLD = "FOLD"
    CHECK = "CHECK"
    CALL = "CALL"
    BET = "BET"


class ShortfallPolicy(str, Enum):
    CAP = "CAP"  # post whatever is left, player is all-in
    REJECT = "REJECT"  # raise InsufficientChips


@dataclass
class HandConfig:
    small_blind: int = 10
    big_blind: int = 20
    dealer_pos: int = 0
    small_blind_pos: Optional[int] = None
    big_blind_pos: Optional[int] = None
    shortfall_policy: ShortfallPolicy = ShortfallPolicy.CAP
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.small_blind < 0 or self.big_blind < 0:
            raise ValueError("Blinds must be non-negative")
        if self.small_blind > self.big_blind:
            raise ValueError("Small blind cannot exceed big blind")
        self.shortfall_policy = ShortfallPolicy(self.shortfall_policy)


@dataclass
class Player:
    id: str
    chips: int
    name: str = ""
    current_bet: int = 0
    total_bet: int = 0
    hand: List[Card] = field(default_factory=list)
    folded: bool = False

    def __post_init__(self) -> None:
        if self.chips < 0:
            raise ValueError(f"Player {self.id} has a negative stack")
        if not self.name:
            self.name = self.id

    @property
    def is_all_in(self) -> bool:
        return not self.folded and self.chips == 0

    @property
    def can_act(self) -> bool:
        return not self.folded and self.chips > 0

    def bet(self, amount: int) -> None:
        if amount <= 0:
            raise InsufficientChips(f"Bet must be positive, got {amount}")
        if amount > self.chips:
            raise InsufficientChips(f"Player {self.id} cannot bet {amount} with {self.chips} chips")
        self.chips -= amount
        self.current_bet += amount
        self.total_bet += amount

    def fold(self) -> None:
        self.folded = True

    def receive(self, card: Card) -> None:
        if len(self.hand) >= 2:
            raise ValueError(f"Player {self.id} already holds two cards")
        self.hand.append(card)

    def reset_for_hand(self) -> None:
        self.current_bet = 0
        self.total_bet = 0
        self.hand.clear()

    def reset_for_round(self) -> None:
        self.current_bet = 0


@dataclass(frozen=True)
class Pot:
    amount: int
    eligible_players: FrozenSet[str]


@dataclass
class HandResult:
    winnings: Dict[str, int]
    pots: List[Pot] = field(default_factory=list)
    scores: Dict[str, object] = field(default_factory=dict)
    uncontested: bool = False


class PhaseObserver(Protocol):
    def __call__(self, event: Dict[str, object]) -> None:
        ...
