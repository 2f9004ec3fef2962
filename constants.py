"""
Constants for the trail poster pipeline.

Centralized definitions for GPS cleaning thresholds, clustering distances,
projection padding and poster layout ratios.
"""

from typing import Dict, FrozenSet


# =============================================================================
# Geodesy
# =============================================================================

EARTH_RADIUS_KM = 6371.0
MS_PER_HOUR = 3_600_000


# =============================================================================
# Outlier Filter
# =============================================================================

OUTLIER_MIN_POINTS = 5            # Shorter inputs pass through unchanged
DEFAULT_MEDIAN_SPEED_KMH = 5.0    # Used when no pair has positive elapsed time
SPEED_CAP_MULTIPLIER = 5.0        # max speed = median speed * this
SPEED_CAP_FLOOR_KMH = 15.0        # ...but never below this
MIN_TRAIL_POINTS = 2              # Fewer points is not a drawable trail

DISTANCE_FILTER_MIN_POINTS = 10   # Stage 2 only runs with at least this many
DISTANCE_FILTER_MAX_PASSES = 3
DISTANCE_CAP_MULTIPLIER = 3.0     # threshold = median distance * this
DISTANCE_CAP_FLOOR_KM = 0.3


# =============================================================================
# Simplification
# =============================================================================

SIMPLIFY_TOLERANCE_DEG = 0.00005  # ~5 m, used at import time
COARSE_TOLERANCE_DEG = 0.0002     # Used when many trails are stacked
RESIMPLIFY_THRESHOLD = 100        # Trail count above which coarse tolerance applies
MAX_RENDERED_TRAILS = 1000


# =============================================================================
# Clustering
# =============================================================================

CLUSTER_MAX_DISTANCE_KM = 5.0
GROUP_MAX_DISTANCE_KM = 20.0


# =============================================================================
# Projection
# =============================================================================

DEFAULT_PADDING_RATIO = 0.06
POSTER_PADDING_WITH_MAP = 0.0     # Trails must line up with the basemap
POSTER_PADDING_NO_MAP = 0.04
MIN_GEO_EXTENT = 0.001            # Substituted for zero-width Mercator extents
REGION_EXPAND_FACTOR = 1.3
REGION_MIN_DELTA = 0.01


# =============================================================================
# Poster Canvas
# =============================================================================

EXPORT_WIDTH = 3000
EXPORT_HEIGHT = 4000
CANVAS_ASPECT = 3 / 4             # width / height
POSTER_SUPERSAMPLE = 2            # Stroke masks are drawn at 2x then downsampled


# =============================================================================
# Intensity -> Stroke Mapping
# =============================================================================

INTENSITY_MIN_STROKE = 1.0
INTENSITY_MAX_STROKE = 4.0
INTENSITY_MIN_OPACITY = 0.15
INTENSITY_MAX_OPACITY = 0.5
DEFAULT_INTENSITY = 0.3

THEME_DEFAULT_INTENSITY: Dict[str, float] = {
    "noir": 0.35,
    "architect": 0.3,
    "minimalist": 0.25,
    "clean": 0.2,
}

# Themes whose trail color follows the hue slider
TINT_ENABLED_THEMES: FrozenSet[str] = frozenset({"noir", "clean"})

# Clean's trail color is near-black, so tinted variants use fixed S/L
CLEAN_TINT_SATURATION = 0.65
CLEAN_TINT_LIGHTNESS = 0.45


# =============================================================================
# Stroke Passes
# =============================================================================

GLOW_WIDTH_FACTOR = 2.0
GLOW_OPACITY_FACTOR = 0.3
CORE_WIDTH_FACTOR = 0.35
CORE_MIN_WIDTH = 0.5
CORE_OPACITY_BOOST = 1.6
CORNER_RADIUS_FACTOR = 1.5        # Corner rounding radius relative to stroke width
CORNER_ARC_SEGMENTS = 4


# =============================================================================
# Border & Label
# =============================================================================

BORDER_SIDE_INSET_RATIO = 0.035   # Of canvas width
BORDER_LABEL_INSET_RATIO = 0.12   # Of canvas height, bottom margin with label
BORDER_LINE_RATIO = 0.003         # Of canvas width
BORDER_LINE_ALPHA = 0.5

LABEL_GRADIENT_RATIO = 0.25       # Scrim height, of canvas height
LABEL_GRADIENT_MAX_ALPHA = 0.97
LABEL_FONT_RATIO = 0.04           # Of canvas width
LABEL_AREA_RATIO = 0.10           # Of canvas height, without border
LABEL_AREA_BORDER_RATIO = 0.12    # Of canvas height, with border
LABEL_LETTER_SPACING = 0.06       # Of font size
