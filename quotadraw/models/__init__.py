from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .campaign import Campaign, GameType  # noqa: F401
from .outcome import Outcome, OutcomeSet  # noqa: F401
from .result import DrawPick, DrawResult  # noqa: F401

__all__ = [
    "Base",
    "Campaign",
    "GameType",
    "Outcome",
    "OutcomeSet",
    "DrawPick",
    "DrawResult",
]
