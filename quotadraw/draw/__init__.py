"""Quota-constrained draw engine."""

from .engine import DrawEngine, DrawEvaluation, PickEvaluation
from .reset import ResetController
from .selector import WeightedFallbackSelector
from .sequence import fisher_yates_shuffle, generate_rotation_sequence
from .store import CampaignStore, is_transient_conflict

__all__ = [
    "CampaignStore",
    "DrawEngine",
    "DrawEvaluation",
    "PickEvaluation",
    "ResetController",
    "WeightedFallbackSelector",
    "fisher_yates_shuffle",
    "generate_rotation_sequence",
    "is_transient_conflict",
]
