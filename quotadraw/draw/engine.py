"""Draw orchestration: sequence consumption, fallback selection and recording."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from .selector import WeightedFallbackSelector
from .store import CampaignStore
from ..errors import NoOutcomesConfigured
from ..models import GameType, Outcome, OutcomeSet
from ..models.result import PICK_SOURCE_FALLBACK, PICK_SOURCE_SEQUENCE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PickEvaluation:
    """Outcome chosen for one slot of a draw.

    Attributes
    ----------
    slot : int
        Pick slot (die number for three-dice campaigns, otherwise 0).
    outcome_id : int
        Identifier of the winning :class:`Outcome`.
    label : str
        Outcome label at draw time.
    amount : Optional[int]
        Prize amount, ``None`` for consolation outcomes.
    order : int
        Display position of the outcome; callers derive wheel angles or die
        faces from it.
    sequence_position : Optional[int]
        Rotation sequence index consumed, ``None`` when the pick came from the
        fallback selector.
    """

    slot: int
    outcome_id: int
    label: str
    amount: Optional[int]
    order: int
    sequence_position: Optional[int]

    @property
    def source(self) -> str:
        return PICK_SOURCE_FALLBACK if self.sequence_position is None else PICK_SOURCE_SEQUENCE

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome_id": self.outcome_id,
            "label": self.label,
            "amount": self.amount,
            "sequence_position": self.sequence_position,
            "order": self.order,
            "slot": self.slot,
        }


@dataclass(frozen=True)
class DrawEvaluation:
    """Value returned by :meth:`DrawEngine.draw`.

    ``exhausted`` is a normal result, not an error: it means no eligible
    outcome remained in at least one slot and nothing was recorded.
    """

    campaign_id: int
    exhausted: bool
    picks: tuple[PickEvaluation, ...] = field(default_factory=tuple)
    result_id: Optional[int] = None
    current_winners: int = 0
    current_spent: int = 0

    @property
    def winner(self) -> Optional[PickEvaluation]:
        """First pick; the only one for wheel and single-die campaigns."""
        return self.picks[0] if self.picks else None

    @property
    def amount(self) -> int:
        return sum(pick.amount or 0 for pick in self.picks)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "campaign_id": self.campaign_id,
            "exhausted": self.exhausted,
            "result_id": self.result_id,
            "picks": [pick.to_dict() for pick in self.picks],
        }
        if self.winner is not None:
            payload.update(self.winner.to_dict())
        return payload


@dataclass
class _SlotPlan:
    outcome_set: OutcomeSet
    outcome: Optional[Outcome]
    position: Optional[int]
    next_cursor: int


class DrawEngine:
    """Runs draws against a :class:`CampaignStore`.

    One draw is one transaction: the campaign row is locked, every slot is
    resolved, and cursors, counters and the result row are written together.
    """

    def __init__(
        self,
        store: CampaignStore,
        *,
        rng: Optional[random.Random] = None,
        selector: Optional[WeightedFallbackSelector] = None,
    ) -> None:
        """Create a draw engine.

        Parameters
        ----------
        store : CampaignStore
            Persistence boundary used for every draw.
        rng : Optional[random.Random], default: None
            Generator for the fallback selector when ``selector`` is omitted.
        selector : Optional[WeightedFallbackSelector], default: None
            Custom fallback selector.
        """

        self._store = store
        self._selector = selector or WeightedFallbackSelector(rng)

    def draw(self, campaign_id: int) -> DrawEvaluation:
        """Draw once for ``campaign_id``.

        Returns
        -------
        DrawEvaluation
            Winning picks, or ``exhausted=True`` when no eligible outcome is left.

        Raises
        ------
        CampaignNotFound
            If the campaign does not exist or is inactive.
        NoOutcomesConfigured
            If any slot of the campaign has no outcomes.
        ConcurrentUpdateConflict
            If the draw kept losing races against concurrent writers.
        """

        return self._store.run(
            lambda session: self._draw_in_session(session, campaign_id),
            name=f"draw(campaign={campaign_id})",
        )

    def draw_active(self, game_type: GameType | str) -> DrawEvaluation:
        """Draw for whichever campaign is active for ``game_type``."""

        def _operation(session: Session) -> DrawEvaluation:
            campaign_id = self._store.active_campaign_id(session, game_type)
            return self._draw_in_session(session, campaign_id)

        return self._store.run(_operation, name=f"draw(game_type={GameType(game_type).value})")

    def _draw_in_session(self, session: Session, campaign_id: int) -> DrawEvaluation:
        campaign = self._store.load_campaign(
            session, campaign_id, for_update=True, active_only=True
        )
        if not campaign.outcome_sets:
            raise NoOutcomesConfigured(
                f"Campaign {campaign.id} has no outcome sets",
                details={"campaign_id": campaign.id},
            )

        plans: list[_SlotPlan] = []
        for outcome_set in campaign.outcome_sets:
            if not outcome_set.outcomes:
                raise NoOutcomesConfigured(
                    f"Campaign {campaign.id} slot {outcome_set.slot} has no outcomes",
                    details={"campaign_id": campaign.id, "slot": outcome_set.slot},
                )
            plans.append(self._plan_slot(outcome_set))

        if any(plan.outcome is None for plan in plans):
            logger.info("Campaign %s is exhausted; nothing recorded", campaign.id)
            return DrawEvaluation(
                campaign_id=campaign.id,
                exhausted=True,
                current_winners=campaign.current_winners,
                current_spent=campaign.current_spent,
            )

        picks: list[tuple[Outcome, Optional[int]]] = []
        for plan in plans:
            plan.outcome_set.current_sequence_index = plan.next_cursor
            picks.append((plan.outcome, plan.position))

        result = self._store.record_draw(session, campaign, picks)
        evaluation = DrawEvaluation(
            campaign_id=campaign.id,
            exhausted=False,
            picks=tuple(
                PickEvaluation(
                    slot=plan.outcome_set.slot,
                    outcome_id=outcome.id,
                    label=outcome.label,
                    amount=outcome.amount,
                    order=outcome.order,
                    sequence_position=position,
                )
                for plan, (outcome, position) in zip(plans, picks)
            ),
            result_id=result.id,
            current_winners=campaign.current_winners,
            current_spent=campaign.current_spent,
        )
        logger.info(
            "Recorded draw %s for campaign %s: %s (amount=%d)",
            result.id,
            campaign.id,
            " / ".join(outcome.label for outcome, _ in picks),
            evaluation.amount,
        )
        return evaluation

    def _plan_slot(self, outcome_set: OutcomeSet) -> _SlotPlan:
        """Choose the winner for one slot without mutating anything.

        Sequence entries whose outcome is gone or already at quota are
        skipped; that only happens after a configuration edit.
        """

        sequence = list(outcome_set.rotation_sequence or [])
        by_order = outcome_set.outcome_by_order()
        cursor = min(outcome_set.current_sequence_index or 0, len(sequence))

        while cursor < len(sequence):
            position = cursor
            cursor += 1
            outcome = by_order.get(sequence[position])
            if outcome is None or not outcome.is_available:
                logger.debug(
                    "Skipping sequence position %d of set %s (order %s unavailable)",
                    position,
                    outcome_set.id,
                    sequence[position],
                )
                continue
            logger.debug(
                "Set %s: sequence position %d -> %s", outcome_set.id, position, outcome.label
            )
            return _SlotPlan(outcome_set, outcome, position, cursor)

        outcome = self._selector.select(outcome_set.outcomes)
        if outcome is not None:
            logger.debug("Set %s: fallback -> %s", outcome_set.id, outcome.label)
        return _SlotPlan(outcome_set, outcome, None, cursor)


__all__ = ["DrawEngine", "DrawEvaluation", "PickEvaluation"]
