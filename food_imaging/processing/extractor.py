"""
Result Extractor - turns kernel output buffers into typed results.

Aggregation policy: every scalar is a spatial mean over all pixels. Raw
nutrition channel means are divided by fixed normalisation divisors (upper
bounds, not all reachable) and clamped to [0,1]; confidence is
``1 / (1 + cv)`` of the channel the result is built from (cv = coefficient
of variation), so a uniform photo scores 1. Thresholds come
from ``settings.ANALYSIS_DEFAULTS``.
"""

from typing import Any, Dict, List, Optional

import numpy as np

from food_imaging.config import settings
from .color import rgb_to_hsv
from .image_buffer import ImageBuffer
from .results import (
    AdvancedFoodAnalysis,
    ColorProfile,
    EdgeMap,
    EstimatedNutrition,
    FreshnessAnalysis,
    FreshnessRecommendation,
    TextureMetrics,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Output channel layout of each kernel
VITAMIN, PROTEIN, CARB, DENSITY = 0, 1, 2, 3
BROWN_SPOT, VIBRANCY, VARIANCE, FRESHNESS = 0, 1, 2, 3
EDGE_STRENGTH = 0


def _clamp01(value: float) -> float:
    return float(min(max(value, 0.0), 1.0))


def consistency(values: np.ndarray) -> float:
    """1 / (1 + coefficient of variation); 0 when the mean is not positive."""
    values = np.asarray(values, dtype=np.float64)
    mean = float(values.mean())
    if mean <= 0.0:
        return 0.0
    return _clamp01(1.0 / (1.0 + float(values.std()) / mean))


class ResultExtractor:
    """Reads output buffers and maps their channels to result fields."""

    def __init__(self, params: Optional[Dict[str, Any]] = None) -> None:
        self.params = dict(settings.ANALYSIS_DEFAULTS)
        if params:
            self.params.update(params)

    # =========================================================================
    # Enhancement / edges
    # =========================================================================

    def enhanced_image(self, output: ImageBuffer) -> ImageBuffer:
        """Enhancement output is already the final image."""
        return output

    def edge_map(self, output: ImageBuffer) -> EdgeMap:
        return EdgeMap(output.channel(EDGE_STRENGTH))

    # =========================================================================
    # Nutrition
    # =========================================================================

    def color_profile(self, source: ImageBuffer) -> ColorProfile:
        mean_rgb = np.clip(source.rgb(), 0.0, 1.0).reshape(-1, 3).mean(axis=0)
        hue, saturation, value = rgb_to_hsv(mean_rgb.astype(np.float64))
        return ColorProfile(
            hue=float(hue) * 360.0,
            saturation=float(saturation),
            brightness=float(value),
        )

    def texture_metrics(self, freshness_output: ImageBuffer) -> TextureMetrics:
        mean_variance = float(freshness_output.channel(VARIANCE).mean())
        roughness = _clamp01(mean_variance * self.params["texture_variance_scale"])
        return TextureMetrics(smoothness=1.0 - roughness, roughness=roughness)

    def food_analysis(
        self,
        source: ImageBuffer,
        nutrition_output: ImageBuffer,
        freshness_output: ImageBuffer,
        processing_time: float = 0.0,
    ) -> AdvancedFoodAnalysis:
        """
        Build an AdvancedFoodAnalysis from one nutrition and one freshness
        dispatch over ``source``.
        """
        p = self.params
        vitamin = _clamp01(nutrition_output.channel(VITAMIN).mean() / p["vitamin_channel_max"])
        protein = _clamp01(nutrition_output.channel(PROTEIN).mean() / p["protein_channel_max"])
        carb = _clamp01(nutrition_output.channel(CARB).mean() / p["carb_channel_max"])
        density = _clamp01(nutrition_output.channel(DENSITY).mean() / p["density_channel_max"])

        nutrition = EstimatedNutrition(
            calories=int(round(density * p["calorie_scale"])),
            vitamins={"C": vitamin},
            macronutrients={"protein": protein, "carbohydrates": carb},
        )

        analysis = AdvancedFoodAnalysis(
            color_profile=self.color_profile(source),
            texture_metrics=self.texture_metrics(freshness_output),
            freshness_score=_clamp01(freshness_output.channel(FRESHNESS).mean()),
            estimated_nutrition=nutrition,
            confidence=consistency(nutrition_output.channel(DENSITY)),
            processing_time=float(processing_time),
        )
        logger.debug("Food analysis: %s", analysis)
        return analysis

    # =========================================================================
    # Freshness
    # =========================================================================

    def freshness_indicators(self, brown: float, vibrancy: float, roughness: float) -> List[str]:
        p = self.params
        indicators = []

        if vibrancy >= p["vibrancy_good_min"]:
            indicators.append("Color vibrancy: Good")
        elif vibrancy >= p["vibrancy_fair_min"]:
            indicators.append("Color vibrancy: Fair")
        else:
            indicators.append("Color vibrancy: Poor")

        if roughness < p["texture_irregular_min"]:
            indicators.append("Surface texture: Normal")
        else:
            indicators.append("Surface texture: Irregular")

        if brown > p["brown_spots_min"]:
            indicators.append("Brown spots detected")
        elif brown > p["browning_min"]:
            indicators.append("Some browning detected")
        else:
            indicators.append("No visible browning detected")

        return indicators

    def recommendation(self, score: float, brown: float) -> FreshnessRecommendation:
        p = self.params
        spotted = brown > p["brown_spots_min"]

        if score >= p["consume_within_days_min"] and not spotted:
            return FreshnessRecommendation.consume_within_days(p["consume_within_days"])
        if score >= p["consume_immediately_min"] and not spotted:
            return FreshnessRecommendation.consume_immediately()
        if score >= p["check_before_consuming_min"]:
            return FreshnessRecommendation.check_before_consuming()
        return FreshnessRecommendation.discard()

    def freshness(self, output: ImageBuffer) -> FreshnessAnalysis:
        brown = float(output.channel(BROWN_SPOT).mean())
        vibrancy = float(output.channel(VIBRANCY).mean())
        roughness = _clamp01(
            float(output.channel(VARIANCE).mean()) * self.params["texture_variance_scale"]
        )
        score = _clamp01(output.channel(FRESHNESS).mean())

        return FreshnessAnalysis(
            freshness_score=score,
            confidence=consistency(output.channel(FRESHNESS)),
            indicators=tuple(self.freshness_indicators(brown, vibrancy, roughness)),
            recommendation=self.recommendation(score, brown),
        )
