from __future__ import annotations

from typing import Optional, Sequence

from .models import Player


class TurnSequencer:
    """Cyclic walk over the seats that still have a decision to make.

    Folded players and all-in players are skipped.
    """

    def __init__(self, players: Sequence[Player]) -> None:
        self.players = players

    def first_from(self, offset: int) -> Optional[int]:
        count = len(self.players)
        for step in range(count):
            idx = (offset + step) % count
            if self.players[idx].can_act:
                return idx
        return None

    def next(self, position: int) -> Optional[int]:
        return self.first_from(position + 1)
