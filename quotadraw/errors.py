"""Exceptions raised by the draw engine and the administration workflows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class DrawError(Exception):
    """Base error carrying a machine-readable ``code`` for callers."""

    code: str
    message: str
    details: Any | None = None

    def __str__(self) -> str:
        return self.message


class CampaignNotFound(DrawError):
    """Unknown campaign id, or an inactive campaign where an active one is required."""

    def __init__(self, message: str = "Campaign not found", details: Any | None = None) -> None:
        super().__init__(code="campaign_not_found", message=message, details=details)


class OutcomeNotFound(DrawError):
    """Unknown outcome id."""

    def __init__(self, message: str = "Outcome not found", details: Any | None = None) -> None:
        super().__init__(code="outcome_not_found", message=message, details=details)


class NoOutcomesConfigured(DrawError):
    """A pick slot has no outcomes; an administrator has to add some."""

    def __init__(
        self, message: str = "No outcomes configured", details: Any | None = None
    ) -> None:
        super().__init__(code="no_outcomes_configured", message=message, details=details)


class InvalidConfiguration(DrawError):
    """Rejected campaign or outcome configuration."""

    def __init__(
        self, message: str = "Invalid configuration", details: Any | None = None
    ) -> None:
        super().__init__(code="invalid_configuration", message=message, details=details)


class ConcurrentUpdateConflict(DrawError):
    """A transaction kept losing races against concurrent writers."""

    def __init__(
        self, message: str = "Concurrent update conflict", details: Any | None = None
    ) -> None:
        super().__init__(code="concurrent_update_conflict", message=message, details=details)


__all__ = [
    "CampaignNotFound",
    "ConcurrentUpdateConflict",
    "DrawError",
    "InvalidConfiguration",
    "NoOutcomesConfigured",
    "OutcomeNotFound",
]
