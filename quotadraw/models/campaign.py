"""Campaign aggregate shared by every game type."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import ID_TYPE, Base, utcnow
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .outcome import Outcome, OutcomeSet
    from .result import DrawResult


class GameType(str, Enum):
    """Supported draw games."""

    WHEEL = "wheel"
    DICE = "dice"
    THREE_DICE = "three_dice"

    @property
    def picks_per_draw(self) -> int:
        """Number of independent picks (pick slots) a single draw makes."""
        return 3 if self is GameType.THREE_DICE else 1

    @property
    def max_outcomes(self) -> Optional[int]:
        """Upper bound on outcomes per slot; dice only have six faces."""
        return None if self is GameType.WHEEL else 6


class Campaign(Base):
    """A configured draw campaign and its running totals."""

    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Admin-facing campaign name."""

    game_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    """One of the :class:`GameType` values."""

    total_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Target count of winning draws. Informational only."""

    total_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Optional budget ceiling used for progress reporting."""

    current_winners: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Number of draws recorded since the last reset."""

    current_spent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Sum of amounts awarded since the last reset."""

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    """Whether this is the active campaign for its game type."""

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    """Optimistic concurrency counter maintained by the ORM."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    outcome_sets: Mapped[list["OutcomeSet"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="OutcomeSet.slot",
        lazy="selectin",
    )
    """One outcome set per pick slot, ordered by slot."""

    results: Mapped[list["DrawResult"]] = relationship(
        back_populates="campaign",
        cascade="all, delete-orphan",
        order_by="DrawResult.id",
    )
    """Every draw recorded for this campaign since the last reset."""

    __mapper_args__ = {"version_id_col": version}

    def __init__(
        self,
        *,
        name: str,
        game_type: GameType | str,
        total_winners: int = 0,
        total_amount: Optional[int] = None,
        is_active: bool = True,
        outcome_sets: Optional[list["OutcomeSet"]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self.name = name
        self.game_type = GameType(game_type).value
        self.total_winners = total_winners
        self.total_amount = total_amount
        self.current_winners = 0
        self.current_spent = 0
        self.is_active = is_active
        if outcome_sets is not None:
            self.outcome_sets = outcome_sets
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Campaign(id={id}, name={name}, game_type={game}, active={active})>".format(
            id=self.id,
            name=self.name,
            game=self.game_type,
            active=self.is_active,
        )

    @property
    def kind(self) -> GameType:
        return GameType(self.game_type)

    @property
    def picks_per_draw(self) -> int:
        return self.kind.picks_per_draw

    def outcome_set(self, slot: int = 0) -> "OutcomeSet":
        """Return the outcome set for ``slot``.

        Raises
        ------
        KeyError
            If the campaign has no set for ``slot``.
        """
        for outcome_set in self.outcome_sets:
            if outcome_set.slot == slot:
                return outcome_set
        raise KeyError(f"Campaign {self.id} has no outcome set for slot {slot}")

    @property
    def outcomes(self) -> list["Outcome"]:
        """All outcomes across every slot, in slot then display order."""
        return [o for s in self.outcome_sets for o in s.outcomes]

    @property
    def rotation_sequence(self) -> list[int]:
        """Rotation sequence of the first slot (the only slot for wheel and die)."""
        return list(self.outcome_set(0).rotation_sequence or [])

    @property
    def current_sequence_index(self) -> int:
        return self.outcome_set(0).current_sequence_index

    @property
    def quota_total(self) -> int:
        """Sum of quotas of every quota-bearing outcome across all slots."""
        return sum(o.max_wins or 0 for o in self.outcomes if o.has_quota)

    @classmethod
    def get_active(cls, session: Session, game_type: GameType | str) -> Optional["Campaign"]:
        """Return the active campaign for ``game_type`` if any."""
        stmt = (
            select(cls)
            .where(cls.game_type == GameType(game_type).value, cls.is_active.is_(True))
            .order_by(cls.id.desc())
        )
        return session.scalars(stmt).first()

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "game_type": self.game_type,
            "total_winners": self.total_winners,
            "total_amount": self.total_amount,
            "current_winners": self.current_winners,
            "current_spent": self.current_spent,
            "is_active": self.is_active,
            "outcome_sets": [s.to_json() for s in self.outcome_sets],
            "created_at": dt_iso(self.created_at),
            "updated_at": dt_iso(self.updated_at),
        }


__all__ = ["Campaign", "GameType"]
