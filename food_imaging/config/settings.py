# Application settings

# --- Accelerator ---
# Backends tried in order when no context is passed in explicitly.
# "numpy" is the host reference backend and is only used when listed here
# (or passed to KernelPipeline) on purpose.
ACCELERATOR_BACKENDS = ("wgpu", "cupy")
WGPU_POWER_PREFERENCE = "high-performance"

# Edge length of the 2-D thread tile used for every kernel dispatch
TILE_SIZE = 16

# --- Result aggregation ---
ANALYSIS_DEFAULTS = {
    # Normalisation divisors for the nutrition channel means. They bound each
    # channel from above; protein never exceeds 0.9 and density stays below 3.7/3.
    "vitamin_channel_max": 1.4,
    "protein_channel_max": 1.2,
    "carb_channel_max": 1.1,
    "density_channel_max": 3.7 / 3.0,
    "calorie_scale": 400,

    # Texture variance is scaled the same way the freshness kernel scales it
    "texture_variance_scale": 5.0,
    "texture_irregular_min": 0.6,

    # Freshness indicators
    "vibrancy_good_min": 0.5,
    "vibrancy_fair_min": 0.25,
    "brown_spots_min": 0.5,
    "browning_min": 0.1,

    # Recommendation thresholds on the aggregated freshness score
    "consume_within_days_min": 0.8,
    "consume_within_days": 3,
    "consume_immediately_min": 0.6,
    "check_before_consuming_min": 0.4,
}

# --- Service layer ---
ANALYSIS_WORKERS = 2

# --- Benchmark ---
BENCHMARK_DEFAULTS = {
    "width": 1024,
    "height": 768,
    "iterations": 5,
    "warmup": 2,
}

# --- Logging ---
LOGGING_LEVEL = "INFO" # Options: DEBUG, INFO, WARNING, ERROR
