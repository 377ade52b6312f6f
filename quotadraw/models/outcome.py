"""Outcome sets (one per pick slot) and their outcomes."""

from __future__ import annotations

import random
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base, utcnow

if TYPE_CHECKING:
    from .campaign import Campaign


class OutcomeSet(Base):
    """Ordered outcomes for one pick slot plus that slot's rotation sequence."""

    __tablename__ = "outcome_sets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    campaign_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    """Owning :class:`Campaign`."""

    slot: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Zero-based pick slot (the die number for three-dice campaigns)."""

    rotation_sequence: Mapped[list[int]] = mapped_column(
        JSON, nullable=False, default=list
    )
    """Shuffled outcome ``order`` values, one entry per quota unit.

    Always reassigned, never mutated in place, so the ORM sees the change.
    """

    current_sequence_index: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    """Cursor into :attr:`rotation_sequence`."""

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    """Optimistic concurrency counter maintained by the ORM."""

    campaign: Mapped["Campaign"] = relationship(back_populates="outcome_sets")

    outcomes: Mapped[list["Outcome"]] = relationship(
        back_populates="outcome_set",
        cascade="all, delete-orphan",
        order_by="Outcome.order",
        lazy="selectin",
    )
    """Outcomes in display order."""

    __table_args__ = (UniqueConstraint("campaign_id", "slot"),)
    __mapper_args__ = {"version_id_col": version}

    def __init__(
        self,
        *,
        slot: int = 0,
        campaign: Optional["Campaign"] = None,
        outcomes: Optional[list["Outcome"]] = None,
    ) -> None:
        self.slot = slot
        self.rotation_sequence = []
        self.current_sequence_index = 0
        if campaign is not None:
            self.campaign = campaign
        if outcomes is not None:
            self.outcomes = outcomes

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<OutcomeSet(id={id}, campaign_id={cid}, slot={slot}, cursor={cur}/{size})>".format(
            id=self.id,
            cid=self.campaign_id,
            slot=self.slot,
            cur=self.current_sequence_index,
            size=len(self.rotation_sequence or []),
        )

    def outcome_by_order(self) -> dict[int, "Outcome"]:
        return {outcome.order: outcome for outcome in self.outcomes}

    def regenerate(self, rng: Optional[random.Random] = None) -> list[int]:
        """Replace the rotation sequence with a fresh shuffle and rewind the cursor.

        Any unconsumed part of the previous sequence is discarded.
        """
        from ..draw.sequence import generate_rotation_sequence

        sequence = generate_rotation_sequence(self.outcomes, rng=rng)
        self.rotation_sequence = sequence
        self.current_sequence_index = 0
        return sequence

    @property
    def sequence_length(self) -> int:
        return len(self.rotation_sequence or [])

    @property
    def sequence_remaining(self) -> int:
        return max(0, self.sequence_length - self.current_sequence_index)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "slot": self.slot,
            "rotation_sequence": list(self.rotation_sequence or []),
            "current_sequence_index": self.current_sequence_index,
            "outcomes": [o.to_json() for o in self.outcomes],
        }


class Outcome(Base):
    """A wheel section or die face that a draw can land on."""

    __tablename__ = "outcomes"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    campaign_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    """Owning campaign, denormalized from the outcome set."""

    outcome_set_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("outcome_sets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    label: Mapped[str] = mapped_column(String(255), nullable=False)
    """Text shown on the section or face."""

    amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Prize value; ``None`` or 0 marks a consolation outcome."""

    order: Mapped[int] = mapped_column("order", Integer, nullable=False)
    """Stable display position, also the value stored in rotation sequences."""

    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    """Optional display colour passed through to callers."""

    max_wins: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Quota; ``None`` or 0 means unconstrained."""

    current_wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Times this outcome has been drawn since the last reset."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    outcome_set: Mapped["OutcomeSet"] = relationship(back_populates="outcomes")

    __table_args__ = (UniqueConstraint("outcome_set_id", "order"),)

    def __init__(
        self,
        *,
        label: str,
        order: int,
        amount: Optional[int] = None,
        max_wins: Optional[int] = None,
        color: Optional[str] = None,
        outcome_set: Optional[OutcomeSet] = None,
        campaign_id: Optional[int] = None,
    ) -> None:
        self.label = label
        self.order = order
        self.amount = amount
        self.max_wins = max_wins
        self.color = color
        self.current_wins = 0
        if outcome_set is not None:
            self.outcome_set = outcome_set
        if campaign_id is not None:
            self.campaign_id = campaign_id

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Outcome(id={id}, label={label}, order={order}, wins={wins}/{quota})>".format(
            id=self.id,
            label=self.label,
            order=self.order,
            wins=self.current_wins,
            quota=self.max_wins,
        )

    @property
    def has_quota(self) -> bool:
        return bool(self.max_wins and self.max_wins > 0)

    @property
    def has_amount(self) -> bool:
        return bool(self.amount)

    @property
    def remaining_wins(self) -> Optional[int]:
        """Remaining quota, or ``None`` when unconstrained."""
        if not self.has_quota:
            return None
        return max(0, (self.max_wins or 0) - (self.current_wins or 0))

    @property
    def is_available(self) -> bool:
        """Whether one more win keeps the outcome within its quota."""
        remaining = self.remaining_wins
        return remaining is None or remaining > 0

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "amount": self.amount,
            "order": self.order,
            "color": self.color,
            "max_wins": self.max_wins,
            "current_wins": self.current_wins,
        }


__all__ = ["Outcome", "OutcomeSet"]
