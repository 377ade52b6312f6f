"""Random selection used when no rotation sequence entry is available."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from ..models.outcome import Outcome


class WeightedFallbackSelector:
    """Two-tier uniform selection over the outcomes still available.

    Tier one holds available outcomes with a prize amount; tier two holds
    available consolation outcomes (no amount). The first non-empty tier is
    sampled uniformly. Once every paid quota is spent, draws therefore degrade
    to consolation outcomes, and to ``None`` (exhausted) when there are none.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    @staticmethod
    def tiers(outcomes: Iterable["Outcome"]) -> tuple[list["Outcome"], list["Outcome"]]:
        """Split ``outcomes`` into (prize tier, consolation tier)."""
        prize: list["Outcome"] = []
        consolation: list["Outcome"] = []
        for outcome in outcomes:
            if not outcome.is_available:
                continue
            if outcome.has_amount:
                prize.append(outcome)
            else:
                consolation.append(outcome)
        return prize, consolation

    def select(self, outcomes: Iterable["Outcome"]) -> Optional["Outcome"]:
        """Return a random eligible outcome, or ``None`` when exhausted."""
        prize, consolation = self.tiers(outcomes)
        if prize:
            return self._rng.choice(prize)
        if consolation:
            return self._rng.choice(consolation)
        return None


__all__ = ["WeightedFallbackSelector"]
