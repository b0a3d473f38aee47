"""Typed, immutable analysis results handed back to callers."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import numpy as np


def _freeze(mapping) -> Mapping[str, float]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ColorProfile:
    """Dominant color of the photo. Hue in degrees [0, 360)."""
    hue: float
    saturation: float
    brightness: float


@dataclass(frozen=True)
class TextureMetrics:
    smoothness: float
    roughness: float


@dataclass(frozen=True)
class EstimatedNutrition:
    calories: int
    vitamins: Mapping[str, float] = field(default_factory=dict)
    macronutrients: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "vitamins", _freeze(self.vitamins))
        object.__setattr__(self, "macronutrients", _freeze(self.macronutrients))


@dataclass(frozen=True)
class AdvancedFoodAnalysis:
    """Result of the nutrition-heuristic analysis."""
    color_profile: ColorProfile
    texture_metrics: TextureMetrics
    freshness_score: float
    estimated_nutrition: EstimatedNutrition
    confidence: float
    processing_time: float  # seconds spent on the call


class RecommendationKind(Enum):
    CONSUME_IMMEDIATELY = "consume_immediately"
    CONSUME_WITHIN_DAYS = "consume_within_days"
    CHECK_BEFORE_CONSUMING = "check_before_consuming"
    DISCARD = "discard"


@dataclass(frozen=True)
class FreshnessRecommendation:
    kind: RecommendationKind
    days: Optional[int] = None

    def __post_init__(self):
        if (self.kind is RecommendationKind.CONSUME_WITHIN_DAYS) != (self.days is not None):
            raise ValueError("days is required for, and only for, consume_within_days")

    @classmethod
    def consume_immediately(cls) -> "FreshnessRecommendation":
        return cls(RecommendationKind.CONSUME_IMMEDIATELY)

    @classmethod
    def consume_within_days(cls, days: int) -> "FreshnessRecommendation":
        return cls(RecommendationKind.CONSUME_WITHIN_DAYS, int(days))

    @classmethod
    def check_before_consuming(cls) -> "FreshnessRecommendation":
        return cls(RecommendationKind.CHECK_BEFORE_CONSUMING)

    @classmethod
    def discard(cls) -> "FreshnessRecommendation":
        return cls(RecommendationKind.DISCARD)

    def __str__(self) -> str:
        if self.kind is RecommendationKind.CONSUME_WITHIN_DAYS:
            return f"Consume within {self.days} day{'s' if self.days != 1 else ''}"
        return self.kind.value.replace("_", " ").capitalize()


@dataclass(frozen=True)
class FreshnessAnalysis:
    freshness_score: float
    confidence: float
    indicators: Tuple[str, ...]
    recommendation: FreshnessRecommendation

    def __post_init__(self):
        object.__setattr__(self, "indicators", tuple(self.indicators))


@dataclass(frozen=True, eq=False)
class EdgeMap:
    """
    Per-pixel edge strength for a segmentation/cropping collaborator.

    ``strength`` is a read-only (H, W) float32 array, unbounded above.
    """
    strength: np.ndarray

    def __post_init__(self):
        strength = np.array(self.strength, dtype=np.float32)
        strength.flags.writeable = False
        object.__setattr__(self, "strength", strength)

    @property
    def width(self) -> int:
        return self.strength.shape[1]

    @property
    def height(self) -> int:
        return self.strength.shape[0]

    @property
    def max_strength(self) -> float:
        return float(self.strength.max()) if self.strength.size else 0.0

    def mask(self, threshold: float) -> np.ndarray:
        """Boolean (H, W) mask of pixels whose strength exceeds ``threshold``."""
        return self.strength > threshold
