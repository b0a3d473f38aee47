"""Accelerated food photo analysis: enhancement, nutrition heuristics, freshness and edges."""

from .processing import (
    AdvancedFoodAnalysis,
    EdgeMap,
    FreshnessAnalysis,
    FreshnessRecommendation,
    ImageBuffer,
    Kernel,
    KernelPipeline,
    PipelineState,
    ResultExtractor,
)
from .services import CancellationToken, FoodImageAnalyzer
from .utils import AcceleratorContext

__version__ = "0.1.0"
