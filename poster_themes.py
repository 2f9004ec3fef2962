"""
Poster themes and intensity mapping.

Each theme is an immutable style record. Colors are ``#RRGGBB`` strings; the
renderer converts them with Pillow's ``ImageColor``. A hue shift from the
export UI produces an adjusted copy of a theme, never a mutation.
"""

import colorsys
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Tuple

from PIL import ImageColor

from constants import (
    CLEAN_TINT_LIGHTNESS,
    CLEAN_TINT_SATURATION,
    DEFAULT_INTENSITY,
    INTENSITY_MAX_OPACITY,
    INTENSITY_MAX_STROKE,
    INTENSITY_MIN_OPACITY,
    INTENSITY_MIN_STROKE,
    THEME_DEFAULT_INTENSITY,
    TINT_ENABLED_THEMES,
)


class BlendMode(str, Enum):
    """How trail strokes combine with what is already on the canvas."""
    SRC_OVER = "src_over"   # Normal alpha compositing
    SCREEN = "screen"       # Overlaps brighten (dark themes)
    MULTIPLY = "multiply"   # Overlaps darken (light themes)


@dataclass(frozen=True)
class PosterTheme:
    """Named poster style.

    Attributes:
        id: Stable identifier ("noir", "architect", ...)
        name: Display name
        tint_color: Background color, also laid over the basemap
        tint_opacity: Opacity of the tint over the basemap (0 = map fully visible)
        map_style: "dark" or "light" basemap expected underneath
        trail_color: Stroke color for trails
        trail_opacity: Suggested stroke opacity for the theme
        blend_mode: Stroke compositing mode
        glow: Whether a blurred glow pass is drawn beneath the trails
        glow_sigma: Gaussian blur sigma of the glow pass, in preview pixels
        label_color: Color of the label text and border line
    """
    id: str
    name: str
    tint_color: str
    tint_opacity: float
    map_style: str
    trail_color: str
    trail_opacity: float
    blend_mode: BlendMode
    glow: bool
    glow_sigma: float
    label_color: str


POSTER_THEMES: Tuple[PosterTheme, ...] = (
    PosterTheme(
        id="noir",
        name="NOIR",
        tint_color="#121212",
        tint_opacity=0.88,
        map_style="dark",
        trail_color="#FCC803",
        trail_opacity=0.25,
        blend_mode=BlendMode.SCREEN,
        glow=True,
        glow_sigma=4.0,
        label_color="#FCC803",
    ),
    PosterTheme(
        id="architect",
        name="ARCHITECT",
        tint_color="#1B2B48",
        tint_opacity=0.85,
        map_style="dark",
        trail_color="#60A5FA",
        trail_opacity=0.25,
        blend_mode=BlendMode.SCREEN,
        glow=False,
        glow_sigma=0.0,
        label_color="#FFFFFF",
    ),
    PosterTheme(
        id="minimalist",
        name="MINIMALIST",
        tint_color="#FAFAFA",
        tint_opacity=0.82,
        map_style="light",
        trail_color="#1A1A2E",
        trail_opacity=0.2,
        blend_mode=BlendMode.MULTIPLY,
        glow=False,
        glow_sigma=0.0,
        label_color="#1A1A2E",
    ),
    PosterTheme(
        id="clean",
        name="CLEAN",
        tint_color="#F5F6F7",
        tint_opacity=0.0,
        map_style="light",
        trail_color="#212529",
        trail_opacity=0.25,
        blend_mode=BlendMode.SRC_OVER,
        glow=False,
        glow_sigma=0.0,
        label_color="#212529",
    ),
)

_THEMES_BY_ID: Dict[str, PosterTheme] = {theme.id: theme for theme in POSTER_THEMES}


def get_theme(theme_id: str) -> PosterTheme:
    """Look up a built-in theme by id (case-insensitive).

    Raises:
        ValueError: If no theme has that id
    """
    theme = _THEMES_BY_ID.get(theme_id.strip().lower())
    if theme is None:
        valid = ", ".join(_THEMES_BY_ID)
        raise ValueError(f"Unknown theme '{theme_id}'. Valid themes: {valid}")
    return theme


def default_intensity(theme_id: str) -> float:
    return THEME_DEFAULT_INTENSITY.get(theme_id, DEFAULT_INTENSITY)


def supports_hue_shift(theme: PosterTheme) -> bool:
    return theme.id in TINT_ENABLED_THEMES


# =============================================================================
# Color helpers
# =============================================================================

def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """Parse a CSS color string into an RGB tuple."""
    return ImageColor.getrgb(color)[:3]


def hex_to_hsl(color: str) -> Tuple[float, float, float]:
    """Hue, saturation, lightness, each in [0, 1]."""
    r, g, b = (c / 255 for c in hex_to_rgb(color))
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    return h, s, l


def hsl_to_hex(h: float, s: float, l: float) -> str:
    r, g, b = colorsys.hls_to_rgb(h % 1.0, l, s)
    return "#" + "".join(f"{int(c * 255 + 0.5):02x}" for c in (r, g, b))


def adjust_theme(theme: PosterTheme, hue_shift: float) -> PosterTheme:
    """Apply the export hue slider to a theme's trail color.

    Only themes in the hue-enabled set react; others are returned unchanged.
    Noir's label follows the shifted trail color. Clean's near-black trail
    color has no usable hue, so tinted variants get a fixed saturation and
    lightness.

    Args:
        theme: Base theme
        hue_shift: Rotation of the hue wheel in [0, 1)

    Returns:
        The original theme, or an adjusted copy
    """
    if hue_shift == 0 or not supports_hue_shift(theme):
        return theme

    h, s, l = hex_to_hsl(theme.trail_color)
    if theme.id == "clean":
        s, l = CLEAN_TINT_SATURATION, CLEAN_TINT_LIGHTNESS
    trail_color = hsl_to_hex((h + hue_shift) % 1.0, s, l)

    if theme.id == "noir":
        return replace(theme, trail_color=trail_color, label_color=trail_color)
    return replace(theme, trail_color=trail_color)


# =============================================================================
# Intensity
# =============================================================================

@dataclass(frozen=True)
class StrokeStyle:
    """Resolved preview-resolution stroke parameters."""
    width: float
    opacity: float


def resolve_stroke(intensity: float) -> StrokeStyle:
    """Map the intensity slider (0-1) linearly onto stroke width and opacity."""
    intensity = min(max(intensity, 0.0), 1.0)
    return StrokeStyle(
        width=INTENSITY_MIN_STROKE + intensity * (INTENSITY_MAX_STROKE - INTENSITY_MIN_STROKE),
        opacity=INTENSITY_MIN_OPACITY + intensity * (INTENSITY_MAX_OPACITY - INTENSITY_MIN_OPACITY),
    )
