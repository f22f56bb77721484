"""Error kinds raised by the hand engine.

Validation errors (``InsufficientChips``, ``IllegalAction``) are ``ValueError``
subclasses: they are recoverable and the acting player keeps the turn.
Lifecycle errors are ``RuntimeError`` subclasses and indicate a caller bug.
"""

from __future__ import annotations


class PokerEngineError(Exception):
    """Base class for every error raised by the engine."""


class InsufficientChips(PokerEngineError, ValueError):
    """A bet or blind is not positive or exceeds the player's stack."""


class IllegalAction(PokerEngineError, ValueError):
    """The action is well-formed but not allowed in the current betting state."""


class InvalidPhaseTransition(PokerEngineError, RuntimeError):
    """A phase-specific operation was called out of order."""


class DeckExhausted(PokerEngineError, RuntimeError):
    """The deck cannot supply the requested number of cards."""


class InvalidPlayerCount(PokerEngineError, RuntimeError):
    """Fewer than two players are available to start a hand."""
