# Processing package initialization
from .image_buffer import ImageBuffer
from .kernels import Kernel, run_kernel
from .pipeline import KernelPipeline, PipelineState, TileGrid
from .extractor import ResultExtractor
from .results import (
    AdvancedFoodAnalysis,
    ColorProfile,
    EdgeMap,
    EstimatedNutrition,
    FreshnessAnalysis,
    FreshnessRecommendation,
    RecommendationKind,
    TextureMetrics,
)
