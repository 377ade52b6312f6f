"""Transactional persistence boundary for campaigns, counters and results."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Sequence, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..config import get_settings
from ..errors import CampaignNotFound, ConcurrentUpdateConflict
from ..models import Campaign, DrawPick, DrawResult, GameType, Outcome
from ..models.base import utcnow
from ..models.result import PICK_SOURCE_FALLBACK, PICK_SOURCE_SEQUENCE

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL serialization_failure and deadlock_detected.
_TRANSIENT_PGCODES = {"40001", "40P01"}


def is_transient_conflict(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` means "lost a race, try again"."""

    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        orig = exc.orig
        if getattr(orig, "pgcode", None) in _TRANSIENT_PGCODES:
            return True
        if getattr(orig, "sqlstate", None) in _TRANSIENT_PGCODES:
            return True
        return "database is locked" in str(orig).lower()
    return False


class CampaignStore:
    """Campaign persistence bound to a SQLAlchemy session factory.

    Every draw and reset runs through :meth:`run`, which executes the
    operation inside one transaction and retries it when it loses a race
    against a concurrent writer. Read helpers take the caller's session so
    they compose with that transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        max_attempts: Optional[int] = None,
    ) -> None:
        """Create a store.

        Parameters
        ----------
        session_factory : sessionmaker
            Factory producing sessions bound to the campaign database.
        max_attempts : Optional[int], default: None
            Attempts per transactional operation. Defaults to the
            ``DRAW_MAX_ATTEMPTS`` setting.
        """

        attempts = max_attempts if max_attempts is not None else get_settings().draw_max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._session_factory = session_factory
        self.max_attempts = attempts

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Yield a session whose transaction commits on success, rolls back on error."""
        with self._session_factory.begin() as session:
            yield session

    def run(self, operation: Callable[[Session], T], *, name: str = "operation") -> T:
        """Run ``operation`` in a fresh transaction, retrying transient conflicts.

        Parameters
        ----------
        operation : Callable[[Session], T]
            Unit of work. It must be safe to re-run from scratch.
        name : str, default: "operation"
            Label used in log messages.

        Raises
        ------
        ConcurrentUpdateConflict
            When every attempt lost a race.
        """

        last_exc: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.transaction() as session:
                    return operation(session)
            except (StaleDataError, OperationalError) as exc:
                if not is_transient_conflict(exc):
                    raise
                last_exc = exc
                logger.warning(
                    "%s lost a concurrent update race (attempt %d/%d): %s",
                    name,
                    attempt,
                    self.max_attempts,
                    exc,
                )
        raise ConcurrentUpdateConflict(
            f"{name} failed after {self.max_attempts} attempts",
            details={"attempts": self.max_attempts},
        ) from last_exc

    # -------- reads --------
    def load_campaign(
        self,
        session: Session,
        campaign_id: int,
        *,
        for_update: bool = False,
        active_only: bool = False,
    ) -> Campaign:
        """Return the campaign, optionally row-locked for the current transaction.

        Raises
        ------
        CampaignNotFound
            If the id is unknown, or the campaign is inactive and
            ``active_only`` is set.
        """

        stmt = select(Campaign).where(Campaign.id == campaign_id)
        if for_update:
            stmt = stmt.with_for_update()
        campaign = session.scalars(stmt).first()
        if campaign is None:
            raise CampaignNotFound(
                f"Campaign {campaign_id} not found", details={"campaign_id": campaign_id}
            )
        if active_only and not campaign.is_active:
            raise CampaignNotFound(
                f"Campaign {campaign_id} is not active",
                details={"campaign_id": campaign_id},
            )
        return campaign

    def active_campaign_id(self, session: Session, game_type: GameType | str) -> int:
        campaign = Campaign.get_active(session, game_type)
        if campaign is None:
            raise CampaignNotFound(
                f"No active {GameType(game_type).value} campaign",
                details={"game_type": GameType(game_type).value},
            )
        return campaign.id

    # -------- writes --------
    def record_draw(
        self,
        session: Session,
        campaign: Campaign,
        picks: Sequence[tuple[Outcome, Optional[int]]],
    ) -> DrawResult:
        """Persist a draw and bump every counter it touches.

        Parameters
        ----------
        session : Session
            Session of the draw transaction; ``campaign`` must belong to it.
        campaign : Campaign
            Campaign the draw was made for.
        picks : Sequence[tuple[Outcome, Optional[int]]]
            Winning outcome per slot and the rotation sequence position it
            consumed (``None`` for fallback picks).

        Returns
        -------
        DrawResult
            The flushed result row.
        """

        if not picks:
            raise ValueError("A draw needs at least one pick")

        total = 0
        result = DrawResult(
            campaign_id=campaign.id,
            amount=0,
            timestamp=utcnow(),
        )
        for outcome, position in picks:
            if not outcome.is_available:
                raise ValueError(
                    f"Outcome {outcome.id} has no remaining quota and cannot be recorded"
                )
            outcome.current_wins = (outcome.current_wins or 0) + 1
            total += outcome.amount or 0
            result.picks.append(
                DrawPick(
                    slot=outcome.outcome_set.slot,
                    outcome_id=outcome.id,
                    label=outcome.label,
                    amount=outcome.amount,
                    sequence_position=position,
                    source=(
                        PICK_SOURCE_SEQUENCE if position is not None else PICK_SOURCE_FALLBACK
                    ),
                )
            )
        result.amount = total
        campaign.current_winners = (campaign.current_winners or 0) + 1
        campaign.current_spent = (campaign.current_spent or 0) + total

        session.add(result)
        session.flush()
        return result

    def clear_results(self, session: Session, campaign_id: int) -> int:
        """Delete every draw recorded for ``campaign_id``; return how many."""
        result_ids = select(DrawResult.id).where(DrawResult.campaign_id == campaign_id)
        session.execute(
            delete(DrawPick)
            .where(DrawPick.draw_result_id.in_(result_ids))
            .execution_options(synchronize_session=False)
        )
        deleted = session.execute(
            delete(DrawResult)
            .where(DrawResult.campaign_id == campaign_id)
            .execution_options(synchronize_session=False)
        )
        return int(deleted.rowcount or 0)


__all__ = ["CampaignStore", "is_transient_conflict"]
