"""Rotation sequence generation."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Iterable, MutableSequence, Optional, TypeVar

if TYPE_CHECKING:
    from ..models.outcome import Outcome

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_RNG = random.Random()


def fisher_yates_shuffle(items: MutableSequence[T], rng: Optional[random.Random] = None) -> None:
    """Shuffle ``items`` in place, every permutation equally likely.

    Parameters
    ----------
    items : MutableSequence
        Sequence to shuffle.
    rng : Optional[random.Random], default: None
        Source of randomness. A module-level generator is used when omitted.
    """

    source = rng or _DEFAULT_RNG
    for i in range(len(items) - 1, 0, -1):
        j = source.randint(0, i)
        items[i], items[j] = items[j], items[i]


def generate_rotation_sequence(
    outcomes: Iterable["Outcome"],
    rng: Optional[random.Random] = None,
) -> list[int]:
    """Build a shuffled award queue from the quotas of ``outcomes``.

    Every outcome with ``max_wins > 0`` contributes its ``order`` exactly
    ``max_wins`` times; unconstrained outcomes contribute nothing. The result
    is empty when no outcome carries a quota, which makes every draw fall back
    to random selection.

    Parameters
    ----------
    outcomes : Iterable[Outcome]
        Outcomes of a single pick slot. Only ``order`` and ``max_wins`` are read.
    rng : Optional[random.Random], default: None
        Generator used for the shuffle; pass a seeded instance for repeatable
        sequences.

    Returns
    -------
    list[int]
        Outcome ``order`` values in draw order.
    """

    pool: list[int] = []
    for outcome in sorted(outcomes, key=lambda o: o.order):
        quota = outcome.max_wins or 0
        if quota <= 0:
            continue
        pool.extend([outcome.order] * quota)

    if not pool:
        logger.debug("No quota-bearing outcomes; rotation sequence is empty")
        return []

    fisher_yates_shuffle(pool, rng)
    logger.debug("Generated rotation sequence of length %d", len(pool))
    return pool


__all__ = ["fisher_yates_shuffle", "generate_rotation_sequence"]
