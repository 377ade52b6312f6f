"""Campaign administration and reporting workflows.

Every function takes an active SQLAlchemy session and leaves committing to the
caller (normally ``CampaignStore.transaction()``). Mutations that change the
outcome set of a slot regenerate that slot's rotation sequence before
returning, so a committed configuration never pairs with a stale sequence.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .errors import CampaignNotFound, InvalidConfiguration, OutcomeNotFound
from .models import Campaign, DrawResult, GameType, Outcome, OutcomeSet

logger = logging.getLogger(__name__)

_CAMPAIGN_FIELDS = frozenset({"name", "total_winners", "total_amount"})
_OUTCOME_FIELDS = frozenset({"label", "amount", "max_wins", "color", "order"})
# Display-only fields; changing them leaves the rotation sequence alone.
_COSMETIC_OUTCOME_FIELDS = frozenset({"color"})


def _parse_game_type(game_type: GameType | str) -> GameType:
    try:
        return GameType(game_type)
    except ValueError as exc:
        raise InvalidConfiguration(
            f"Unknown game type {game_type!r}",
            details={"allowed": [g.value for g in GameType]},
        ) from exc


def _validate_campaign_fields(
    name: Optional[str], total_winners: Optional[int], total_amount: Optional[int]
) -> None:
    if name is not None and not name.strip():
        raise InvalidConfiguration("Campaign name must not be empty")
    if total_winners is not None and total_winners < 0:
        raise InvalidConfiguration("total_winners must be non-negative")
    if total_amount is not None and total_amount < 0:
        raise InvalidConfiguration("total_amount must be non-negative")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_outcome_fields(
    *,
    game_type: GameType,
    label: str,
    order: int,
    amount: Optional[int],
    max_wins: Optional[int],
) -> None:
    """Reject outcome configurations the draw engine cannot honour."""

    if not isinstance(label, str) or not label.strip():
        raise InvalidConfiguration("Outcome label must not be empty")
    if not _is_int(order):
        raise InvalidConfiguration(
            "Outcome order must be an integer", details={"order": order}
        )
    for name, value in (("amount", amount), ("max_wins", max_wins)):
        if value is not None and not _is_int(value):
            raise InvalidConfiguration(
                f"Outcome {name} must be an integer", details={name: value}
            )
    if order < 0:
        raise InvalidConfiguration("Outcome order must be non-negative")
    limit = game_type.max_outcomes
    if limit is not None and order >= limit:
        raise InvalidConfiguration(
            f"{game_type.value} outcomes must use order 0..{limit - 1}",
            details={"order": order},
        )
    if amount is not None and amount < 0:
        raise InvalidConfiguration("Outcome amount must be non-negative")
    if max_wins is not None and max_wins < 0:
        raise InvalidConfiguration("Outcome max_wins must be non-negative")
    if amount and not max_wins:
        raise InvalidConfiguration(
            "Outcomes with a prize amount must declare a quota (max_wins > 0)",
            details={"label": label, "amount": amount},
        )


def _load_campaign(session: Session, campaign_id: int) -> Campaign:
    campaign = session.get(Campaign, campaign_id, with_for_update=True)
    if campaign is None:
        raise CampaignNotFound(
            f"Campaign {campaign_id} not found", details={"campaign_id": campaign_id}
        )
    return campaign


def _load_outcome(session: Session, outcome_id: int) -> tuple[Campaign, Outcome]:
    outcome = session.get(Outcome, outcome_id)
    if outcome is None:
        raise OutcomeNotFound(
            f"Outcome {outcome_id} not found", details={"outcome_id": outcome_id}
        )
    return _load_campaign(session, outcome.campaign_id), outcome


def _outcome_set(campaign: Campaign, slot: int) -> OutcomeSet:
    try:
        return campaign.outcome_set(slot)
    except KeyError as exc:
        raise InvalidConfiguration(
            f"{campaign.game_type} campaigns have no slot {slot}",
            details={"slot": slot, "slots": campaign.picks_per_draw},
        ) from exc


def _ensure_order_free(outcome_set: OutcomeSet, order: int, *, ignore: Optional[Outcome] = None) -> None:
    for existing in outcome_set.outcomes:
        if existing is not ignore and existing.order == order:
            raise InvalidConfiguration(
                f"Order {order} is already used in slot {outcome_set.slot}",
                details={"order": order, "slot": outcome_set.slot},
            )


def create_campaign(
    session: Session,
    *,
    name: str,
    game_type: GameType | str,
    total_winners: int = 0,
    total_amount: Optional[int] = None,
    activate: bool = True,
    rng: Optional[random.Random] = None,
) -> Campaign:
    """Create a campaign with one empty outcome set per pick slot.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    name : str
        Admin-facing name.
    game_type : GameType | str
        ``"wheel"``, ``"dice"`` or ``"three_dice"``.
    total_winners : int, default: 0
        Informational winners target.
    total_amount : Optional[int], default: None
        Optional budget used for progress reporting.
    activate : bool, default: True
        Make this the active campaign for its game type, deactivating any
        other.
    rng : Optional[random.Random], default: None
        Generator for the initial (empty until outcomes are added) sequences.

    Returns
    -------
    Campaign
        The flushed campaign.
    """

    kind = _parse_game_type(game_type)
    _validate_campaign_fields(name, total_winners, total_amount)

    if activate:
        _deactivate_others(session, kind, keep_id=None)

    campaign = Campaign(
        name=name.strip(),
        game_type=kind,
        total_winners=total_winners,
        total_amount=total_amount,
        is_active=activate,
        outcome_sets=[OutcomeSet(slot=slot) for slot in range(kind.picks_per_draw)],
    )
    session.add(campaign)
    session.flush()
    for outcome_set in campaign.outcome_sets:
        outcome_set.regenerate(rng)
    logger.info("Created %s campaign %s (%s)", kind.value, campaign.id, campaign.name)
    return campaign


def update_campaign(session: Session, campaign_id: int, **changes: Any) -> Campaign:
    """Update ``name``, ``total_winners`` or ``total_amount`` of a campaign.

    These fields are informational; rotation sequences and cursors are kept.
    """

    unknown = set(changes) - _CAMPAIGN_FIELDS
    if unknown:
        raise InvalidConfiguration(
            "Unsupported campaign fields", details={"fields": sorted(unknown)}
        )
    campaign = _load_campaign(session, campaign_id)
    _validate_campaign_fields(
        changes.get("name"), changes.get("total_winners"), changes.get("total_amount")
    )

    if "name" in changes:
        campaign.name = changes["name"].strip()
    if "total_amount" in changes:
        campaign.total_amount = changes["total_amount"]
    if "total_winners" in changes:
        campaign.total_winners = changes["total_winners"]

    session.flush()
    logger.info("Updated campaign %s: %s", campaign.id, sorted(changes))
    return campaign


def _deactivate_others(session: Session, game_type: GameType, keep_id: Optional[int]) -> None:
    stmt = update(Campaign).where(
        Campaign.game_type == game_type.value, Campaign.is_active.is_(True)
    )
    if keep_id is not None:
        stmt = stmt.where(Campaign.id != keep_id)
    # Bulk UPDATE bypasses the version check; activation is last-writer-wins.
    session.execute(
        stmt.values(is_active=False).execution_options(synchronize_session="fetch")
    )


def activate_campaign(session: Session, campaign_id: int) -> Campaign:
    """Make ``campaign_id`` the only active campaign of its game type."""
    campaign = _load_campaign(session, campaign_id)
    _deactivate_others(session, campaign.kind, keep_id=campaign.id)
    campaign.is_active = True
    session.flush()
    logger.info("Activated %s campaign %s", campaign.game_type, campaign.id)
    return campaign


def deactivate_campaign(session: Session, campaign_id: int) -> Campaign:
    campaign = _load_campaign(session, campaign_id)
    campaign.is_active = False
    session.flush()
    return campaign


def get_active_campaign(session: Session, game_type: GameType | str) -> Optional[Campaign]:
    """Return the active campaign for ``game_type`` or ``None``."""
    return Campaign.get_active(session, _parse_game_type(game_type))


def delete_campaign(session: Session, campaign_id: int) -> None:
    """Delete a campaign together with its outcomes and draw history."""
    campaign = _load_campaign(session, campaign_id)
    session.delete(campaign)
    session.flush()
    logger.info("Deleted campaign %s", campaign_id)


def add_outcome(
    session: Session,
    campaign_id: int,
    *,
    label: str,
    order: int,
    amount: Optional[int] = None,
    max_wins: Optional[int] = None,
    color: Optional[str] = None,
    slot: int = 0,
    rng: Optional[random.Random] = None,
) -> Outcome:
    """Add an outcome to ``slot`` of a campaign and regenerate that slot.

    Raises
    ------
    CampaignNotFound
        If the campaign does not exist.
    InvalidConfiguration
        If the outcome is rejected (see :func:`_validate_outcome_fields`), the
        order is taken, or the slot does not exist.
    """

    campaign = _load_campaign(session, campaign_id)
    outcome_set = _outcome_set(campaign, slot)
    _validate_outcome_fields(
        game_type=campaign.kind, label=label, order=order, amount=amount, max_wins=max_wins
    )
    _ensure_order_free(outcome_set, order)

    outcome = Outcome(
        label=label.strip(),
        order=order,
        amount=amount,
        max_wins=max_wins,
        color=color,
        outcome_set=outcome_set,
        campaign_id=campaign.id,
    )
    session.add(outcome)
    session.flush()
    outcome_set.regenerate(rng)
    session.flush()
    logger.info(
        "Added outcome %s (%s) to campaign %s slot %d", outcome.id, outcome.label, campaign.id, slot
    )
    return outcome


def update_outcome(
    session: Session,
    outcome_id: int,
    *,
    rng: Optional[random.Random] = None,
    **changes: Any,
) -> Outcome:
    """Update an outcome; any change other than ``color`` regenerates its slot.

    Lowering ``max_wins`` below the wins already recorded is rejected.
    """

    unknown = set(changes) - _OUTCOME_FIELDS
    if unknown:
        raise InvalidConfiguration(
            "Unsupported outcome fields", details={"fields": sorted(unknown)}
        )
    campaign, outcome = _load_outcome(session, outcome_id)

    merged = {
        "label": changes.get("label", outcome.label),
        "order": changes.get("order", outcome.order),
        "amount": changes.get("amount", outcome.amount),
        "max_wins": changes.get("max_wins", outcome.max_wins),
    }
    _validate_outcome_fields(game_type=campaign.kind, **merged)
    if merged["max_wins"] and merged["max_wins"] < outcome.current_wins:
        raise InvalidConfiguration(
            "max_wins cannot be lower than the wins already recorded",
            details={"current_wins": outcome.current_wins},
        )
    if merged["order"] != outcome.order:
        _ensure_order_free(outcome.outcome_set, merged["order"], ignore=outcome)

    for key, value in changes.items():
        setattr(outcome, key, value.strip() if key == "label" else value)
    session.flush()

    if set(changes) - _COSMETIC_OUTCOME_FIELDS:
        outcome.outcome_set.regenerate(rng)
        session.flush()
    logger.info("Updated outcome %s: %s", outcome.id, sorted(changes))
    return outcome


def remove_outcome(
    session: Session,
    outcome_id: int,
    *,
    rng: Optional[random.Random] = None,
) -> None:
    """Remove an outcome and regenerate its slot. Past draws keep their labels."""
    campaign, outcome = _load_outcome(session, outcome_id)
    outcome_set = outcome.outcome_set
    outcome_set.outcomes.remove(outcome)
    session.flush()
    outcome_set.regenerate(rng)
    session.flush()
    logger.info("Removed outcome %s from campaign %s", outcome_id, campaign.id)


def replace_outcomes(
    session: Session,
    campaign_id: int,
    outcomes: Iterable[Mapping[str, Any]],
    *,
    slot: int = 0,
    rng: Optional[random.Random] = None,
) -> list[Outcome]:
    """Replace every outcome of ``slot`` and regenerate once.

    Each mapping accepts ``label``, ``order``, ``amount``, ``max_wins`` and
    ``color``. The whole batch is validated before anything is changed.
    """

    campaign = _load_campaign(session, campaign_id)
    outcome_set = _outcome_set(campaign, slot)

    entries = [dict(entry) for entry in outcomes]
    seen: set[int] = set()
    for entry in entries:
        unknown = set(entry) - _OUTCOME_FIELDS
        if unknown:
            raise InvalidConfiguration(
                "Unsupported outcome fields", details={"fields": sorted(unknown)}
            )
        if "label" not in entry or "order" not in entry:
            raise InvalidConfiguration("Each outcome needs a label and an order")
        _validate_outcome_fields(
            game_type=campaign.kind,
            label=entry["label"],
            order=entry["order"],
            amount=entry.get("amount"),
            max_wins=entry.get("max_wins"),
        )
        if entry["order"] in seen:
            raise InvalidConfiguration(
                f"Order {entry['order']} is used more than once", details={"order": entry["order"]}
            )
        seen.add(entry["order"])

    outcome_set.outcomes.clear()
    session.flush()

    created = [
        Outcome(
            label=entry["label"].strip(),
            order=entry["order"],
            amount=entry.get("amount"),
            max_wins=entry.get("max_wins"),
            color=entry.get("color"),
            outcome_set=outcome_set,
            campaign_id=campaign.id,
        )
        for entry in entries
    ]
    session.add_all(created)
    session.flush()
    outcome_set.regenerate(rng)
    session.flush()
    logger.info(
        "Replaced slot %d of campaign %s with %d outcomes", slot, campaign.id, len(created)
    )
    return created


def list_draw_results(
    session: Session,
    campaign_id: int,
    *,
    limit: Optional[int] = None,
) -> list[DrawResult]:
    """Return recorded draws for ``campaign_id``, newest first."""
    if limit is not None and limit < 0:
        raise ValueError("limit must be non-negative when provided")
    stmt = (
        select(DrawResult)
        .where(DrawResult.campaign_id == campaign_id)
        .order_by(DrawResult.timestamp.desc(), DrawResult.id.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt).all())


@dataclass(frozen=True)
class OutcomeProgress:
    outcome_id: int
    slot: int
    label: str
    amount: Optional[int]
    max_wins: Optional[int]
    current_wins: int
    remaining_wins: Optional[int]


@dataclass(frozen=True)
class SlotProgress:
    slot: int
    sequence_length: int
    current_sequence_index: int

    @property
    def sequence_remaining(self) -> int:
        return max(0, self.sequence_length - self.current_sequence_index)


@dataclass(frozen=True)
class CampaignProgress:
    """Read-only snapshot of a campaign's counters for reporting screens."""

    campaign_id: int
    name: str
    game_type: str
    is_active: bool
    current_winners: int
    total_winners: int
    current_spent: int
    total_amount: Optional[int]
    quota_total: int
    outcomes: tuple[OutcomeProgress, ...]
    slots: tuple[SlotProgress, ...]

    @property
    def remaining_budget(self) -> Optional[int]:
        if self.total_amount is None:
            return None
        return self.total_amount - self.current_spent


def campaign_progress(session: Session, campaign_id: int) -> CampaignProgress:
    """Summarize totals, per-outcome quota usage and sequence positions."""
    campaign = session.get(Campaign, campaign_id)
    if campaign is None:
        raise CampaignNotFound(
            f"Campaign {campaign_id} not found", details={"campaign_id": campaign_id}
        )
    return CampaignProgress(
        campaign_id=campaign.id,
        name=campaign.name,
        game_type=campaign.game_type,
        is_active=campaign.is_active,
        current_winners=campaign.current_winners,
        total_winners=campaign.total_winners,
        current_spent=campaign.current_spent,
        total_amount=campaign.total_amount,
        quota_total=campaign.quota_total,
        outcomes=tuple(
            OutcomeProgress(
                outcome_id=o.id,
                slot=s.slot,
                label=o.label,
                amount=o.amount,
                max_wins=o.max_wins,
                current_wins=o.current_wins,
                remaining_wins=o.remaining_wins,
            )
            for s in campaign.outcome_sets
            for o in s.outcomes
        ),
        slots=tuple(
            SlotProgress(
                slot=s.slot,
                sequence_length=s.sequence_length,
                current_sequence_index=s.current_sequence_index,
            )
            for s in campaign.outcome_sets
        ),
    )


__all__ = [
    "CampaignProgress",
    "OutcomeProgress",
    "SlotProgress",
    "activate_campaign",
    "add_outcome",
    "campaign_progress",
    "create_campaign",
    "deactivate_campaign",
    "delete_campaign",
    "get_active_campaign",
    "list_draw_results",
    "remove_outcome",
    "replace_outcomes",
    "update_campaign",
    "update_outcome",
]
