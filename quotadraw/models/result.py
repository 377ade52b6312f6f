"""Recorded draw history."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base, utcnow
from ..db.utils import dt_iso

if TYPE_CHECKING:
    from .campaign import Campaign


PICK_SOURCE_SEQUENCE = "sequence"
PICK_SOURCE_FALLBACK = "fallback"


class DrawResult(Base):
    """One recorded draw. Holds a pick per slot of the campaign."""

    __tablename__ = "draw_results"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    campaign_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Total amount awarded by this draw across all picks."""

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    campaign: Mapped["Campaign"] = relationship(back_populates="results")

    picks: Mapped[list["DrawPick"]] = relationship(
        back_populates="result",
        cascade="all, delete-orphan",
        order_by="DrawPick.slot",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_draw_results_campaign_timestamp", "campaign_id", "timestamp"),)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawResult(id={id}, campaign_id={cid}, label={label}, amount={amount})>".format(
            id=self.id,
            cid=self.campaign_id,
            label=self.label,
            amount=self.amount,
        )

    @property
    def outcome_id(self) -> Optional[int]:
        """Outcome of the first pick; the only pick for wheel and die draws."""
        return self.picks[0].outcome_id if self.picks else None

    @property
    def label(self) -> str:
        return " / ".join(pick.label for pick in self.picks)

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "outcome_id": self.outcome_id,
            "label": self.label,
            "amount": self.amount,
            "timestamp": dt_iso(self.timestamp),
            "picks": [pick.to_json() for pick in self.picks],
        }


class DrawPick(Base):
    """Outcome chosen for one slot of a draw, denormalized for history."""

    __tablename__ = "draw_picks"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    draw_result_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("draw_results.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    slot: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    outcome_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("outcomes.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    """Outcome drawn; cleared if the outcome is later removed."""

    label: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    sequence_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Index of the rotation sequence entry consumed, ``None`` for fallback picks."""

    source: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PICK_SOURCE_FALLBACK
    )
    """``"sequence"`` or ``"fallback"``."""

    result: Mapped["DrawResult"] = relationship(back_populates="picks")

    def to_json(self) -> dict[str, Any]:
        return {
            "slot": self.slot,
            "outcome_id": self.outcome_id,
            "label": self.label,
            "amount": self.amount,
            "sequence_position": self.sequence_position,
            "source": self.source,
        }


__all__ = [
    "DrawPick",
    "DrawResult",
    "PICK_SOURCE_FALLBACK",
    "PICK_SOURCE_SEQUENCE",
]
