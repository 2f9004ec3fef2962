"""
Poster composition engine.

Rendering is split in two:

1. ``render_poster`` turns trails, a projection and a theme into a
   ``PosterScene``: an ordered list of draw commands (fills, stroked path
   passes, border, label). This is the only place poster layout is decided.
2. A backend rasterizes the scene with Pillow and numpy. ``PreviewBackend``
   renders at screen size with whatever font the system offers;
   ``RasterBackend`` is the offscreen export backend and insists on a real
   type asset for the label.

Because both backends consume the same scene, the exported PNG matches the
preview apart from resolution.
"""

import io
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFilter, ImageFont
from pydantic import BaseModel, ConfigDict, Field

from constants import (
    BORDER_LABEL_INSET_RATIO,
    BORDER_LINE_ALPHA,
    BORDER_LINE_RATIO,
    BORDER_SIDE_INSET_RATIO,
    CANVAS_ASPECT,
    CORE_MIN_WIDTH,
    CORE_OPACITY_BOOST,
    CORE_WIDTH_FACTOR,
    CORNER_ARC_SEGMENTS,
    CORNER_RADIUS_FACTOR,
    DEFAULT_INTENSITY,
    EXPORT_HEIGHT,
    EXPORT_WIDTH,
    GLOW_OPACITY_FACTOR,
    GLOW_WIDTH_FACTOR,
    LABEL_AREA_BORDER_RATIO,
    LABEL_AREA_RATIO,
    LABEL_FONT_RATIO,
    LABEL_GRADIENT_MAX_ALPHA,
    LABEL_GRADIENT_RATIO,
    LABEL_LETTER_SPACING,
    POSTER_PADDING_NO_MAP,
    POSTER_PADDING_WITH_MAP,
    POSTER_SUPERSAMPLE,
)
from poster_themes import BlendMode, PosterTheme, StrokeStyle, hex_to_rgb, resolve_stroke
from projection import Region, Transform, build_transform

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]
Rect = Tuple[float, float, float, float]  # x, y, width, height
FontSource = Union[str, BinaryIO]


# =============================================================================
# Errors
# =============================================================================

class RenderErrorKind(str, Enum):
    SURFACE_ALLOCATION = "surface_allocation"
    MISSING_TYPE_ASSET = "missing_type_asset"
    ENCODING = "encoding"


class RenderError(Exception):
    """Raised when a poster cannot be rendered; never replaced by a blank image."""

    def __init__(self, kind: RenderErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


# =============================================================================
# Options
# =============================================================================

class PosterOptions(BaseModel):
    """User-facing poster settings, independent of resolution."""
    model_config = ConfigDict(frozen=True)

    intensity: float = Field(default=DEFAULT_INTENSITY, ge=0.0, le=1.0)
    show_label: bool = True
    show_map: bool = True
    show_border: bool = False
    label_text: str = ""
    heading: float = Field(default=0.0, description="Map heading in degrees; trails are rotated by -heading")

    @property
    def stroke(self) -> StrokeStyle:
        return resolve_stroke(self.intensity)

    @property
    def stroke_width(self) -> float:
        return self.stroke.width

    @property
    def opacity(self) -> float:
        return self.stroke.opacity

    @property
    def has_label(self) -> bool:
        return self.show_label and bool(self.label_text.strip())

    @property
    def padding_ratio(self) -> float:
        # With a basemap, trails must line up with the map edge to edge
        return POSTER_PADDING_WITH_MAP if self.show_map else POSTER_PADDING_NO_MAP


# =============================================================================
# Draw commands
# =============================================================================

@dataclass(frozen=True)
class Fill:
    """Solid rectangle composited with normal alpha."""
    rect: Rect
    color: RGB
    alpha: float = 1.0


@dataclass(frozen=True)
class Basemap:
    """Caller-supplied map image scaled to the canvas; solid color if none."""
    fallback_color: RGB


@dataclass(frozen=True, eq=False)
class StrokePaths:
    """One stroke pass over every trail path (round caps and joins)."""
    paths: Tuple[np.ndarray, ...]
    width: float
    color: RGB
    alpha: float
    blend_mode: BlendMode
    blur_sigma: float = 0.0


@dataclass(frozen=True)
class StrokeRect:
    """Rectangle outline centered on ``rect``'s edges."""
    rect: Rect
    color: RGB
    alpha: float
    width: float


@dataclass(frozen=True)
class Gradient:
    """Vertical alpha ramp of a single color."""
    rect: Rect
    color: RGB
    alpha_top: float
    alpha_bottom: float


@dataclass(frozen=True)
class Text:
    """Single line of centered, letter-spaced text inside ``area``."""
    text: str
    color: RGB
    area: Rect
    font_size: int
    letter_spacing: float


DrawCommand = Union[Fill, Basemap, StrokePaths, StrokeRect, Gradient, Text]


@dataclass(frozen=True, eq=False)
class PosterScene:
    """Resolution-specific description of a poster, ready for any backend."""
    width: int
    height: int
    commands: Tuple[DrawCommand, ...]

    def commands_of(self, kind: type) -> List[DrawCommand]:
        return [c for c in self.commands if isinstance(c, kind)]


# =============================================================================
# Path building
# =============================================================================

def build_trail_paths(trails: Sequence, transform: Transform) -> List[np.ndarray]:
    """Project each trail into an (N, 2) array of canvas points.

    Trails with fewer than two coordinates cannot form a line and are skipped.
    """
    paths = []
    for trail in trails:
        if len(trail.coordinates) < 2:
            continue
        paths.append(transform.project(trail.coordinates))
    return paths


def rotate_paths(paths: Sequence[np.ndarray], heading_deg: float, cx: float, cy: float) -> List[np.ndarray]:
    """Rotate paths by -heading around (cx, cy) so they match a rotated map."""
    rad = math.radians(-heading_deg)
    cos_r, sin_r = math.cos(rad), math.sin(rad)
    rotated = []
    for path in paths:
        dx = path[:, 0] - cx
        dy = path[:, 1] - cy
        rotated.append(np.column_stack((
            cx + dx * cos_r - dy * sin_r,
            cy + dx * sin_r + dy * cos_r,
        )))
    return rotated


def round_corners(path: np.ndarray, radius: float, segments: int = CORNER_ARC_SEGMENTS) -> np.ndarray:
    """Replace each interior vertex with a quadratic curve.

    The curve starts and ends ``radius`` pixels along the adjacent segments
    (at most half of each segment) and bends through the original vertex's
    control point, which softens GPS zig-zags without moving the trail.
    """
    pts = _drop_repeated_points(path)
    if len(pts) < 3 or radius <= 0:
        return pts

    prev_pts, corner, next_pts = pts[:-2], pts[1:-1], pts[2:]
    to_prev = prev_pts - corner
    to_next = next_pts - corner
    len_prev = np.hypot(to_prev[:, 0], to_prev[:, 1])[:, None]
    len_next = np.hypot(to_next[:, 0], to_next[:, 1])[:, None]

    start = corner + to_prev * (np.minimum(radius, len_prev / 2) / len_prev)
    end = corner + to_next * (np.minimum(radius, len_next / 2) / len_next)

    t = np.linspace(0.0, 1.0, segments + 1)[None, :, None]
    curves = (
        (1 - t) ** 2 * start[:, None, :]
        + 2 * (1 - t) * t * corner[:, None, :]
        + t ** 2 * end[:, None, :]
    )
    return np.vstack((pts[:1], curves.reshape(-1, 2), pts[-1:]))


def _drop_repeated_points(path: np.ndarray) -> np.ndarray:
    if len(path) < 2:
        return path
    moved = np.any(np.diff(path, axis=0) != 0, axis=1)
    pts = np.vstack((path[:1], path[1:][moved]))
    if len(pts) == 1:
        # Every point identical: keep a zero-length segment so caps draw a dot
        pts = np.vstack((pts, pts))
    return pts


# =============================================================================
# Scene composition
# =============================================================================

def render_poster(
    trails: Sequence,
    transform: Transform,
    theme: PosterTheme,
    options: PosterOptions,
    resolution_scale: float = 1.0,
) -> PosterScene:
    """Compose a poster as a list of draw commands.

    Args:
        trails: Objects with ``coordinates``; trails under two points are skipped
        transform: Projection for this canvas (defines the canvas size)
        theme: Theme, already hue-adjusted
        options: Intensity, toggles, label text and heading
        resolution_scale: Canvas width / preview width; scales stroke widths and
            glow blur so a high-resolution render looks like the preview

    Returns:
        PosterScene for a backend to rasterize
    """
    width = int(round(transform.canvas_width))
    height = int(round(transform.canvas_height))
    full_canvas = (0.0, 0.0, float(width), float(height))
    tint = hex_to_rgb(theme.tint_color)
    commands: List[DrawCommand] = []

    # 1. Background
    if options.show_map:
        commands.append(Basemap(fallback_color=tint))
        if theme.tint_opacity > 0:
            commands.append(Fill(full_canvas, tint, theme.tint_opacity))
    else:
        commands.append(Fill(full_canvas, tint, 1.0))

    # 2. Trail strokes
    stroke_width = options.stroke_width * resolution_scale
    opacity = options.opacity
    paths = build_trail_paths(trails, transform)
    if options.heading:
        paths = rotate_paths(paths, options.heading, width / 2, height / 2)
    corner_radius = stroke_width * CORNER_RADIUS_FACTOR
    paths = tuple(round_corners(p, corner_radius) for p in paths)

    if paths:
        trail_rgb = hex_to_rgb(theme.trail_color)
        if theme.glow and theme.glow_sigma > 0:
            commands.append(StrokePaths(
                paths=paths,
                width=stroke_width * GLOW_WIDTH_FACTOR,
                color=trail_rgb,
                alpha=opacity * GLOW_OPACITY_FACTOR,
                blend_mode=theme.blend_mode,
                blur_sigma=theme.glow_sigma * resolution_scale,
            ))
        commands.append(StrokePaths(
            paths=paths,
            width=stroke_width,
            color=trail_rgb,
            alpha=opacity,
            blend_mode=theme.blend_mode,
        ))
        commands.append(StrokePaths(
            paths=paths,
            width=max(CORE_MIN_WIDTH, stroke_width * CORE_WIDTH_FACTOR),
            color=trail_rgb,
            alpha=min(1.0, opacity * CORE_OPACITY_BOOST),
            blend_mode=theme.blend_mode,
        ))

    # 3. Border, screen-aligned regardless of heading
    has_label = options.has_label
    if options.show_border:
        commands.extend(_border_commands(width, height, theme, has_label))

    # 4. Label
    if has_label:
        if not options.show_border:
            gradient_h = round(height * LABEL_GRADIENT_RATIO)
            commands.append(Gradient(
                rect=(0.0, float(height - gradient_h), float(width), float(gradient_h)),
                color=tint,
                alpha_top=0.0,
                alpha_bottom=LABEL_GRADIENT_MAX_ALPHA,
            ))
        commands.append(_label_command(width, height, theme, options))

    return PosterScene(width=width, height=height, commands=tuple(commands))


def _border_commands(width: int, height: int, theme: PosterTheme, has_label: bool) -> List[DrawCommand]:
    side = round(width * BORDER_SIDE_INSET_RATIO)
    # The label sits in an enlarged bottom margin, below the frame
    bottom = round(height * BORDER_LABEL_INSET_RATIO) if has_label else side
    tint = hex_to_rgb(theme.tint_color)
    inner_h = height - side - bottom

    return [
        Fill((0.0, 0.0, float(width), float(side)), tint),
        Fill((0.0, float(height - bottom), float(width), float(bottom)), tint),
        Fill((0.0, float(side), float(side), float(inner_h)), tint),
        Fill((float(width - side), float(side), float(side), float(inner_h)), tint),
        StrokeRect(
            rect=(float(side), float(side), float(width - side * 2), float(inner_h)),
            color=hex_to_rgb(theme.label_color),
            alpha=BORDER_LINE_ALPHA,
            width=max(1, round(width * BORDER_LINE_RATIO)),
        ),
    ]


def _label_command(width: int, height: int, theme: PosterTheme, options: PosterOptions) -> Text:
    font_size = round(width * LABEL_FONT_RATIO)
    area_ratio = LABEL_AREA_BORDER_RATIO if options.show_border else LABEL_AREA_RATIO
    area_h = round(height * area_ratio)
    return Text(
        text=options.label_text.strip(),
        color=hex_to_rgb(theme.label_color),
        area=(0.0, float(height - area_h), float(width), float(area_h)),
        font_size=font_size,
        letter_spacing=font_size * LABEL_LETTER_SPACING,
    )


# =============================================================================
# Backends
# =============================================================================

def _blend_terms(mode: BlendMode, color: RGB) -> Tuple[np.ndarray, np.ndarray]:
    """Per-channel (u, v) so that one blend step is ``b' = b - k * (u * b - v)``.

    k is the stroke coverage times alpha. Expanding the three modes:
    src-over b(1-k) + kc, screen b + kc(1-b), multiply b(1 - k(1-c)).
    """
    c = np.asarray(color, dtype=np.float32) / 255.0
    if mode == BlendMode.SCREEN:
        return c, c
    if mode == BlendMode.MULTIPLY:
        return 1.0 - c, np.zeros(3, dtype=np.float32)
    return np.ones(3, dtype=np.float32), c


def _pixel_bounds(rect: Rect, width: int, height: int) -> Tuple[int, int, int, int]:
    x, y, w, h = rect
    x0 = max(0, int(round(x)))
    y0 = max(0, int(round(y)))
    x1 = min(width, int(round(x + w)))
    y1 = min(height, int(round(y + h)))
    return x0, y0, x1, y1


class PosterBackend(ABC):
    """
    Rasterizes a PosterScene into an RGB image.

    The canvas is a float32 numpy array in [0, 1]; strokes are drawn one path
    at a time into supersampled Pillow masks cropped to the path's extent and
    composited with the pass's blend mode, so overlapping trails accumulate
    exactly as they would with per-path drawing.

    Subclasses decide where label fonts come from.

    Args:
        basemap: Optional captured map image drawn under the vector layers
        supersample: Mask supersampling factor for anti-aliased strokes
    """

    def __init__(self, basemap: Optional[Image.Image] = None, supersample: int = POSTER_SUPERSAMPLE):
        self.basemap = basemap
        self.supersample = max(1, int(supersample))

    @abstractmethod
    def load_font(self, size: int) -> ImageFont.ImageFont:
        """Return a font for label text at ``size`` pixels."""

    def rasterize(self, scene: PosterScene) -> Image.Image:
        canvas = self._allocate(scene.width, scene.height)

        handlers = {
            Fill: self._draw_fill,
            Basemap: self._draw_basemap,
            StrokePaths: self._draw_stroke_paths,
            StrokeRect: self._draw_stroke_rect,
            Gradient: self._draw_gradient,
            Text: self._draw_text,
        }
        for command in scene.commands:
            handlers[type(command)](canvas, command)

        pixels = np.clip(canvas * 255.0 + 0.5, 0, 255).astype(np.uint8)
        return Image.fromarray(pixels)

    def _allocate(self, width: int, height: int) -> np.ndarray:
        if width <= 0 or height <= 0:
            raise RenderError(
                RenderErrorKind.SURFACE_ALLOCATION,
                f"Cannot allocate a {width}x{height} poster surface",
            )
        try:
            return np.zeros((height, width, 3), dtype=np.float32)
        except MemoryError as e:
            raise RenderError(
                RenderErrorKind.SURFACE_ALLOCATION,
                f"Out of memory allocating a {width}x{height} poster surface",
            ) from e

    def _draw_fill(self, canvas: np.ndarray, cmd: Fill) -> None:
        x0, y0, x1, y1 = _pixel_bounds(cmd.rect, canvas.shape[1], canvas.shape[0])
        if x1 <= x0 or y1 <= y0 or cmd.alpha <= 0:
            return
        color = np.asarray(cmd.color, dtype=np.float32) / 255.0
        region = canvas[y0:y1, x0:x1]
        region *= 1.0 - cmd.alpha
        region += color * cmd.alpha

    def _draw_basemap(self, canvas: np.ndarray, cmd: Basemap) -> None:
        height, width = canvas.shape[:2]
        if self.basemap is None:
            canvas[:] = np.asarray(cmd.fallback_color, dtype=np.float32) / 255.0
            return
        scaled = self.basemap.convert("RGB").resize((width, height), Image.Resampling.LANCZOS)
        canvas[:] = np.asarray(scaled, dtype=np.float32) / 255.0

    def _draw_stroke_paths(self, canvas: np.ndarray, cmd: StrokePaths) -> None:
        height, width = canvas.shape[:2]
        u, v = _blend_terms(cmd.blend_mode, cmd.color)
        margin = cmd.width / 2 + 3 * cmd.blur_sigma + 2

        for path in cmd.paths:
            x0 = max(0, int(math.floor(path[:, 0].min() - margin)))
            y0 = max(0, int(math.floor(path[:, 1].min() - margin)))
            x1 = min(width, int(math.ceil(path[:, 0].max() + margin)))
            y1 = min(height, int(math.ceil(path[:, 1].max() + margin)))
            if x1 <= x0 or y1 <= y0:
                continue

            mask = self._stroke_mask(path, x0, y0, x1 - x0, y1 - y0, cmd.width)
            if cmd.blur_sigma > 0:
                mask = mask.filter(ImageFilter.GaussianBlur(cmd.blur_sigma))

            coverage = np.asarray(mask, dtype=np.float32)[..., None] * (cmd.alpha / 255.0)
            region = canvas[y0:y1, x0:x1]
            region -= coverage * (region * u - v)

    def _stroke_mask(self, path: np.ndarray, x0: int, y0: int, w: int, h: int, stroke_width: float) -> Image.Image:
        ss = self.supersample
        mask = Image.new("L", (w * ss, h * ss), 0)
        draw = ImageDraw.Draw(mask)

        local = (path - np.array([x0, y0], dtype=np.float64)) * ss
        line_width = max(1, int(round(stroke_width * ss)))
        draw.line(local.ravel().tolist(), fill=255, width=line_width, joint="curve")

        # Round caps
        r = line_width / 2
        for x, y in (local[0], local[-1]):
            draw.ellipse([x - r, y - r, x + r, y + r], fill=255)

        if ss > 1:
            mask = mask.resize((w, h), Image.Resampling.BOX)
        return mask

    def _draw_stroke_rect(self, canvas: np.ndarray, cmd: StrokeRect) -> None:
        height, width = canvas.shape[:2]
        ss = self.supersample
        x, y, w, h = cmd.rect
        half = cmd.width / 2

        mask = Image.new("L", (width * ss, height * ss), 0)
        ImageDraw.Draw(mask).rectangle(
            [(x - half) * ss, (y - half) * ss, (x + w + half) * ss - 1, (y + h + half) * ss - 1],
            outline=255,
            width=max(1, int(round(cmd.width * ss))),
        )
        if ss > 1:
            mask = mask.resize((width, height), Image.Resampling.BOX)

        coverage = np.asarray(mask, dtype=np.float32)[..., None] * (cmd.alpha / 255.0)
        color = np.asarray(cmd.color, dtype=np.float32) / 255.0
        canvas -= coverage * (canvas - color)

    def _draw_gradient(self, canvas: np.ndarray, cmd: Gradient) -> None:
        x0, y0, x1, y1 = _pixel_bounds(cmd.rect, canvas.shape[1], canvas.shape[0])
        if x1 <= x0 or y1 <= y0:
            return
        alphas = np.linspace(cmd.alpha_top, cmd.alpha_bottom, y1 - y0, dtype=np.float32)[:, None, None]
        color = np.asarray(cmd.color, dtype=np.float32) / 255.0
        region = canvas[y0:y1, x0:x1]
        region -= alphas * (region - color)

    def _draw_text(self, canvas: np.ndarray, cmd: Text) -> None:
        x0, y0, x1, y1 = _pixel_bounds(cmd.area, canvas.shape[1], canvas.shape[0])
        if x1 <= x0 or y1 <= y0 or not cmd.text:
            return
        font = self.load_font(cmd.font_size)

        advances = [font.getlength(ch) for ch in cmd.text]
        text_w = sum(advances) + cmd.letter_spacing * (len(advances) - 1)
        left, top, right, bottom = font.getbbox(cmd.text)
        area_w, area_h = x1 - x0, y1 - y0

        mask = Image.new("L", (area_w, area_h), 0)
        draw = ImageDraw.Draw(mask)
        pen_x = (area_w - text_w) / 2
        pen_y = (area_h - (bottom - top)) / 2 - top
        for ch, advance in zip(cmd.text, advances):
            draw.text((pen_x, pen_y), ch, fill=255, font=font)
            pen_x += advance + cmd.letter_spacing

        coverage = np.asarray(mask, dtype=np.float32)[..., None] / 255.0
        color = np.asarray(cmd.color, dtype=np.float32) / 255.0
        region = canvas[y0:y1, x0:x1]
        region -= coverage * (region - color)


# Font cache for the preview backend
_font_cache: Dict[Tuple[Optional[str], int], ImageFont.ImageFont] = {}
_FALLBACK_FONTS = ["DejaVuSans-Bold.ttf", "DejaVuSans.ttf", "Arial.ttf", "Helvetica.ttf",
                   "/System/Library/Fonts/Helvetica.ttc"]


class PreviewBackend(PosterBackend):
    """
    Screen-resolution backend.

    Labels use the given font if it loads, otherwise the first system font
    found, otherwise Pillow's built-in font. A preview never fails for lack
    of a font.
    """

    def __init__(self, basemap: Optional[Image.Image] = None, font_path: Optional[str] = None,
                 supersample: int = POSTER_SUPERSAMPLE):
        super().__init__(basemap=basemap, supersample=supersample)
        self.font_path = font_path

    def load_font(self, size: int) -> ImageFont.ImageFont:
        key = (self.font_path, size)
        if key in _font_cache:
            return _font_cache[key]

        candidates = ([self.font_path] if self.font_path else []) + _FALLBACK_FONTS
        font = None
        for name in candidates:
            try:
                font = ImageFont.truetype(name, size)
                break
            except OSError:
                continue
        if font is None:
            logger.debug("No TrueType font found for preview label, using Pillow default")
            font = ImageFont.load_default(size=size)

        _font_cache[key] = font
        return font


class RasterBackend(PosterBackend):
    """
    Offscreen export backend.

    The label is rasterized from an explicit type asset (path or binary file
    object). Without one, a scene containing text raises
    ``RenderError(MISSING_TYPE_ASSET)`` so the caller can choose a fallback.
    """

    def __init__(self, basemap: Optional[Image.Image] = None, font_source: Optional[FontSource] = None,
                 supersample: int = POSTER_SUPERSAMPLE):
        super().__init__(basemap=basemap, supersample=supersample)
        self.font_source = font_source
        self._fonts: Dict[int, ImageFont.FreeTypeFont] = {}

    def load_font(self, size: int) -> ImageFont.ImageFont:
        if size in self._fonts:
            return self._fonts[size]
        if self.font_source is None:
            raise RenderError(RenderErrorKind.MISSING_TYPE_ASSET, "No type asset supplied for the poster label")
        if hasattr(self.font_source, "seek"):
            self.font_source.seek(0)
        try:
            font = ImageFont.truetype(self.font_source, size)
        except OSError as e:
            raise RenderError(
                RenderErrorKind.MISSING_TYPE_ASSET,
                f"Could not load type asset {self.font_source!r}: {e}",
            ) from e
        self._fonts[size] = font
        return font


def encode_png(image: Image.Image) -> bytes:
    """Losslessly encode an image as PNG bytes."""
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        raise RenderError(RenderErrorKind.ENCODING, f"PNG encoding failed: {e}") from e
    return buffer.getvalue()


# =============================================================================
# Entry points
# =============================================================================

def render_preview(
    trails: Sequence,
    region: Optional[Region],
    theme: PosterTheme,
    options: PosterOptions,
    canvas_width: int,
    canvas_height: Optional[int] = None,
    basemap: Optional[Image.Image] = None,
    font_path: Optional[str] = None,
) -> np.ndarray:
    """Render a poster at preview size.

    Args:
        canvas_height: Defaults to the poster aspect ratio

    Returns:
        RGB numpy array of shape (height, width, 3)
    """
    if canvas_height is None:
        canvas_height = int(round(canvas_width / CANVAS_ASPECT))
    transform = build_transform(trails, canvas_width, canvas_height, region, options.padding_ratio)
    scene = render_poster(trails, transform, theme, options)
    image = PreviewBackend(basemap=basemap, font_path=font_path).rasterize(scene)
    return np.array(image)


def render_high_res_poster(
    trails: Sequence,
    region: Optional[Region],
    theme: PosterTheme,
    options: PosterOptions,
    preview_width: float,
    basemap: Optional[Image.Image] = None,
    font_source: Optional[FontSource] = None,
    width: int = EXPORT_WIDTH,
    height: int = EXPORT_HEIGHT,
) -> bytes:
    """Render the poster offscreen at export resolution and encode it as PNG.

    Projection, theme and path building are identical to the preview; stroke
    widths and glow blur are scaled by ``width / preview_width`` so the export
    looks like an enlarged preview.

    Args:
        trails: Trails to draw
        region: Viewport shown in the preview, or None to fit the trails
        theme: Theme, already hue-adjusted
        options: Same options as the preview
        preview_width: Width of the preview canvas in pixels
        basemap: Captured map image for the background (used when show_map)
        font_source: Type asset for the label
        width: Export width in pixels
        height: Export height in pixels

    Returns:
        PNG bytes

    Raises:
        RenderError: Surface allocation, type asset or encoding failure
    """
    if preview_width <= 0:
        raise ValueError(f"preview_width must be positive, got {preview_width}")

    scale = width / preview_width
    transform = build_transform(trails, width, height, region, options.padding_ratio)
    scene = render_poster(trails, transform, theme, options, resolution_scale=scale)

    backend = RasterBackend(basemap=basemap if options.show_map else None, font_source=font_source)
    image = backend.rasterize(scene)
    data = encode_png(image)

    logger.info(f"Rendered {width}x{height} poster: {len(trails)} trails, {len(data):,} bytes")
    return data
