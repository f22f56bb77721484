"""Single-hand Texas Hold'em rules engine: betting rounds, side pots and showdown."""

from .cards import RANKS, Card, Deck, Rank, Suit, build_deck, parse_cards, parse_label, stacked_deck
from .errors import (
    DeckExhausted,
    IllegalAction,
    InsufficientChips,
    InvalidPhaseTransition,
    InvalidPlayerCount,
    PokerEngineError,
)
from .evaluator import HandScore, describe_rank, evaluate_best
from .game import PokerGame
from .models import ActionType, HandConfig, HandRank, HandResult, Phase, Player, Pot, ShortfallPolicy
from .phase import PokerPhase
from .pots import build_side_pots
from .sequencer import TurnSequencer
from .showdown import resolve_pots

__all__ = [
    "RANKS",
    "Card",
    "Deck",
    "Rank",
    "Suit",
    "build_deck",
    "parse_cards",
    "parse_label",
    "stacked_deck",
    "DeckExhausted",
    "IllegalAction",
    "InsufficientChips",
    "InvalidPhaseTransition",
    "InvalidPlayerCount",
    "PokerEngineError",
    "HandScore",
    "describe_rank",
    "evaluate_best",
    "PokerGame",
    "ActionType",
    "HandConfig",
    "HandRank",
    "HandResult",
    "Phase",
    "Player",
    "Pot",
    "ShortfallPolicy",
    "PokerPhase",
    "build_side_pots",
    "TurnSequencer",
    "resolve_pots",
]
