"""Campaign reset."""

from __future__ import annotations

import logging
import random
from typing import Optional

from sqlalchemy.orm import Session

from .store import CampaignStore
from ..models import Campaign

logger = logging.getLogger(__name__)


class ResetController:
    """Clears a campaign's history and regenerates its rotation sequences.

    The reset runs in the same kind of locked transaction as a draw, so a
    concurrent reader sees either the old state or the fully reset one.
    """

    def __init__(self, store: CampaignStore, *, rng: Optional[random.Random] = None) -> None:
        self._store = store
        self._rng = rng

    def reset(self, campaign_id: int) -> Campaign:
        """Reset ``campaign_id`` and return the refreshed campaign.

        Raises
        ------
        CampaignNotFound
            If the campaign does not exist or is inactive.
        """
        return self._store.run(
            lambda session: self.reset_in_session(session, campaign_id),
            name=f"reset(campaign={campaign_id})",
        )

    def reset_in_session(self, session: Session, campaign_id: int) -> Campaign:
        """Apply the reset inside the caller's transaction."""
        campaign = self._store.load_campaign(
            session, campaign_id, for_update=True, active_only=True
        )

        cleared = self._store.clear_results(session, campaign.id)
        campaign.current_winners = 0
        campaign.current_spent = 0
        for outcome_set in campaign.outcome_sets:
            for outcome in outcome_set.outcomes:
                outcome.current_wins = 0
            outcome_set.regenerate(self._rng)

        session.flush()
        logger.info(
            "Reset campaign %s: cleared %d results, regenerated %d sequence(s)",
            campaign.id,
            cleared,
            len(campaign.outcome_sets),
        )
        return campaign


__all__ = ["ResetController"]
