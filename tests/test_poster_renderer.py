"""
Tests for poster composition and rasterization.

Tests scene building (layers, stroke passes, border and label), path helpers,
the Pillow backends and the PNG export entry point.
"""

import io
from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image
from pydantic import ValidationError

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from constants import CORNER_ARC_SEGMENTS
from geo import Coordinate
from poster_renderer import (
    Basemap,
    Fill,
    Gradient,
    PosterOptions,
    PreviewBackend,
    RasterBackend,
    RenderError,
    RenderErrorKind,
    StrokePaths,
    StrokeRect,
    Text,
    build_trail_paths,
    encode_png,
    render_high_res_poster,
    render_poster,
    render_preview,
    rotate_paths,
    round_corners,
)
from poster_themes import BlendMode, get_theme, hex_to_rgb
from projection import build_transform

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class _Track:
    """Minimal object with coordinates, like a Trail."""

    def __init__(self, coordinates):
        self.coordinates = coordinates


@pytest.fixture
def poster_trails(make_trail):
    """Two diagonal trails crossing a small area."""
    return [
        make_trail("a", 45.0, 7.0, points=6, step=0.002),
        make_trail("b", 45.001, 7.003, points=6, step=0.0015),
    ]


def _scene(trails, theme_id="noir", width=60, height=80, scale=1.0, **option_overrides):
    options = PosterOptions(**option_overrides)
    transform = build_transform(trails, width, height, padding_ratio=options.padding_ratio)
    return render_poster(trails, transform, get_theme(theme_id), options, resolution_scale=scale)


class TestPosterOptions:
    """Tests for PosterOptions validation and derived values."""

    def test_defaults(self):
        options = PosterOptions()
        assert options.intensity == 0.3
        assert options.show_map
        assert not options.show_border
        assert not options.has_label

    def test_intensity_out_of_range(self):
        with pytest.raises(ValidationError):
            PosterOptions(intensity=1.5)

    def test_blank_label_is_no_label(self):
        assert not PosterOptions(label_text="   ").has_label
        assert not PosterOptions(label_text="TURIN", show_label=False).has_label
        assert PosterOptions(label_text="TURIN").has_label

    def test_padding_depends_on_map(self):
        assert PosterOptions(show_map=True).padding_ratio == 0.0
        assert PosterOptions(show_map=False).padding_ratio == 0.04


class TestSceneLayers:
    """Tests for the order and content of draw commands."""

    def test_noir_with_map(self, poster_trails):
        scene = _scene(poster_trails, "noir")
        kinds = [type(c) for c in scene.commands]
        assert kinds == [Basemap, Fill, StrokePaths, StrokePaths, StrokePaths]

        tint = scene.commands[1]
        assert tint.color == hex_to_rgb("#121212")
        assert tint.alpha == pytest.approx(0.88)

        glow, main, core = scene.commands_of(StrokePaths)
        assert glow.blur_sigma == pytest.approx(4.0)
        assert glow.width == pytest.approx(main.width * 2)
        assert glow.alpha == pytest.approx(main.alpha * 0.3)
        assert main.blur_sigma == 0.0
        assert all(p.blend_mode == BlendMode.SCREEN for p in (glow, main, core))
        assert len(main.paths) == 2

    def test_no_map_uses_solid_background(self, poster_trails):
        scene = _scene(poster_trails, "minimalist", show_map=False)
        first = scene.commands[0]
        assert isinstance(first, Fill)
        assert first.alpha == 1.0
        assert first.color == hex_to_rgb("#FAFAFA")
        assert not scene.commands_of(Basemap)

    def test_clean_has_no_tint_layer(self, poster_trails):
        """A zero-opacity tint is omitted entirely."""
        scene = _scene(poster_trails, "clean")
        assert [type(c) for c in scene.commands[:2]] == [Basemap, StrokePaths]

    def test_no_glow_without_theme_glow(self, poster_trails):
        scene = _scene(poster_trails, "architect")
        assert len(scene.commands_of(StrokePaths)) == 2
        assert all(p.blur_sigma == 0 for p in scene.commands_of(StrokePaths))

    def test_intensity_zero(self, poster_trails):
        main, core = _scene(poster_trails, "architect", intensity=0.0).commands_of(StrokePaths)
        assert main.width == pytest.approx(1.0)
        assert main.alpha == pytest.approx(0.15)
        assert core.width == pytest.approx(0.5)
        assert core.alpha == pytest.approx(0.24)

    def test_intensity_one(self, poster_trails):
        main, core = _scene(poster_trails, "architect", intensity=1.0).commands_of(StrokePaths)
        assert main.width == pytest.approx(4.0)
        assert main.alpha == pytest.approx(0.5)
        assert core.width == pytest.approx(1.4)
        assert core.alpha == pytest.approx(0.8)

    def test_resolution_scale(self, poster_trails):
        """Widths and blur grow with the output/preview ratio; opacity does not."""
        base = _scene(poster_trails, "noir", intensity=0.5)
        big = _scene(poster_trails, "noir", width=240, height=320, scale=4.0, intensity=0.5)
        for small_pass, big_pass in zip(base.commands_of(StrokePaths), big.commands_of(StrokePaths)):
            assert big_pass.width == pytest.approx(small_pass.width * 4)
            assert big_pass.alpha == pytest.approx(small_pass.alpha)
            assert big_pass.blur_sigma == pytest.approx(small_pass.blur_sigma * 4)

    def test_no_trails_no_strokes(self):
        transform = build_transform([], 60, 80)
        scene = render_poster([], transform, get_theme("noir"), PosterOptions())
        assert not scene.commands_of(StrokePaths)
        assert (scene.width, scene.height) == (60, 80)

    def test_short_trails_skipped(self, poster_trails):
        trails = poster_trails + [_Track([Coordinate(45.001, 7.001)])]
        main = _scene(trails, "architect").commands_of(StrokePaths)[0]
        assert len(main.paths) == 2

    def test_label_with_gradient(self, poster_trails):
        scene = _scene(poster_trails, "noir", label_text="  TURIN  ")
        gradient = scene.commands_of(Gradient)[0]
        text = scene.commands_of(Text)[0]
        assert scene.commands[-1] is text
        assert text.text == "TURIN"
        assert text.color == hex_to_rgb("#FCC803")
        assert gradient.alpha_top == 0.0
        assert gradient.alpha_bottom == pytest.approx(0.97)
        assert gradient.rect == (0.0, 60.0, 60.0, 20.0)
        assert text.area == (0.0, 72.0, 60.0, 8.0)

    def test_border_without_label(self, poster_trails):
        scene = _scene(poster_trails, "noir", show_border=True)
        fills = scene.commands_of(Fill)[1:]
        assert len(fills) == 4
        top, bottom = fills[0], fills[1]
        assert top.rect[3] == bottom.rect[3]
        outline = scene.commands_of(StrokeRect)[0]
        assert outline.alpha == pytest.approx(0.5)
        assert not scene.commands_of(Gradient)

    def test_border_with_label_has_tall_bottom(self, poster_trails):
        scene = _scene(poster_trails, "noir", width=600, height=800, show_border=True, label_text="TURIN")
        fills = scene.commands_of(Fill)[1:]
        side = round(600 * 0.035)
        bottom = round(800 * 0.12)
        assert fills[0].rect == (0.0, 0.0, 600.0, float(side))
        assert fills[1].rect == (0.0, float(800 - bottom), 600.0, float(bottom))
        assert not scene.commands_of(Gradient)
        assert scene.commands_of(Text)[0].area == (0.0, float(800 - 96), 600.0, 96.0)

    def test_border_follows_strokes(self, poster_trails):
        scene = _scene(poster_trails, "noir", show_border=True)
        kinds = [type(c) for c in scene.commands]
        assert kinds.index(StrokeRect) > max(i for i, k in enumerate(kinds) if k is StrokePaths)


class TestPathHelpers:
    """Tests for projection, rotation and corner rounding of paths."""

    def test_build_trail_paths(self, poster_trails):
        transform = build_transform(poster_trails, 60, 80)
        paths = build_trail_paths(poster_trails, transform)
        assert [p.shape for p in paths] == [(6, 2), (6, 2)]

    def test_rotate_quarter_turn(self):
        path = np.array([[60.0, 50.0], [50.0, 50.0]])
        rotated = rotate_paths([path], 90.0, 50.0, 50.0)[0]
        np.testing.assert_allclose(rotated, [[50.0, 40.0], [50.0, 50.0]], atol=1e-9)

    def test_rotate_zero_is_identity(self):
        path = np.array([[1.0, 2.0], [3.0, 4.0]])
        np.testing.assert_allclose(rotate_paths([path], 0.0, 10.0, 10.0)[0], path)

    def test_round_corners_keeps_endpoints(self):
        path = np.array([[0.0, 0.0], [10.0, 0.0], [10.0, 10.0], [20.0, 10.0]])
        rounded = round_corners(path, 2.0)
        np.testing.assert_allclose(rounded[0], path[0])
        np.testing.assert_allclose(rounded[-1], path[-1])
        assert len(rounded) == 2 + 2 * (CORNER_ARC_SEGMENTS + 1)

    def test_round_corners_curve_ends(self):
        """Each curve starts and ends radius pixels from the corner."""
        path = np.array([[0.0, 0.0], [10.0, 0.0], [10.0, 10.0]])
        rounded = round_corners(path, 2.0)
        np.testing.assert_allclose(rounded[1], [8.0, 0.0])
        np.testing.assert_allclose(rounded[1 + CORNER_ARC_SEGMENTS], [10.0, 2.0])

    def test_round_corners_radius_limited_by_segment(self):
        path = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0]])
        rounded = round_corners(path, 5.0)
        np.testing.assert_allclose(rounded[1], [1.0, 0.0])

    def test_round_corners_repeated_points(self):
        path = np.array([[0.0, 0.0], [0.0, 0.0], [5.0, 0.0], [5.0, 0.0]])
        rounded = round_corners(path, 1.0)
        np.testing.assert_allclose(rounded, [[0.0, 0.0], [5.0, 0.0]])

    def test_round_corners_single_location(self):
        """All-identical points still give a drawable two-point path."""
        rounded = round_corners(np.array([[3.0, 4.0], [3.0, 4.0], [3.0, 4.0]]), 1.0)
        assert rounded.shape == (2, 2)


class TestBackends:
    """Tests for rasterizing scenes."""

    def test_background_only(self):
        transform = build_transform([], 30, 40)
        scene = render_poster([], transform, get_theme("noir"), PosterOptions(show_map=False))
        image = PreviewBackend().rasterize(scene)
        assert image.size == (30, 40)
        assert image.mode == "RGB"
        assert np.all(np.asarray(image) == np.array([18, 18, 18], dtype=np.uint8))

    def test_basemap_fallback_color(self):
        transform = build_transform([], 30, 40)
        scene = render_poster([], transform, get_theme("architect"), PosterOptions(show_map=True))
        pixels = np.asarray(PreviewBackend().rasterize(scene))
        assert tuple(pixels[20, 15]) == hex_to_rgb("#1B2B48")

    def test_basemap_image_shows_through_tint(self):
        transform = build_transform([], 30, 40)
        scene = render_poster([], transform, get_theme("clean"), PosterOptions(show_map=True))
        basemap = Image.new("RGB", (15, 20), (200, 10, 10))
        pixels = np.asarray(PreviewBackend(basemap=basemap).rasterize(scene))
        assert tuple(pixels[20, 15]) == (200, 10, 10)

    def test_screen_brightens(self, poster_trails):
        scene = _scene(poster_trails, "architect", intensity=1.0, show_map=False)
        pixels = np.asarray(PreviewBackend().rasterize(scene)).astype(int)
        background = np.array(hex_to_rgb("#1B2B48"))
        assert np.all(pixels >= background)
        assert np.any(pixels > background)

    def test_multiply_darkens(self, poster_trails):
        scene = _scene(poster_trails, "minimalist", intensity=1.0, show_map=False)
        pixels = np.asarray(PreviewBackend().rasterize(scene)).astype(int)
        background = np.array(hex_to_rgb("#FAFAFA"))
        assert np.all(pixels <= background)
        assert np.any(pixels < background)

    def test_overlaps_accumulate(self):
        """Two identical paths composite twice, darker than one."""
        one = _Track([Coordinate(45.0, 7.0), Coordinate(45.01, 7.01)])
        single = _scene([one], "minimalist", intensity=1.0, show_map=False)
        double = _scene([one, one], "minimalist", intensity=1.0, show_map=False)
        single_px = np.asarray(PreviewBackend().rasterize(single)).astype(int)
        double_px = np.asarray(PreviewBackend().rasterize(double)).astype(int)
        assert double_px.sum() < single_px.sum()

    def test_zero_size_surface(self):
        transform = build_transform([], 0, 0)
        scene = render_poster([], transform, get_theme("noir"), PosterOptions())
        with pytest.raises(RenderError) as exc_info:
            PreviewBackend().rasterize(scene)
        assert exc_info.value.kind == RenderErrorKind.SURFACE_ALLOCATION

    def test_preview_label_uses_fallback_font(self, poster_trails):
        scene = _scene(poster_trails, "noir", width=120, height=160, label_text="TURIN")
        image = PreviewBackend().rasterize(scene)
        assert image.size == (120, 160)

    def test_raster_backend_requires_font_for_label(self, poster_trails):
        scene = _scene(poster_trails, "noir", label_text="TURIN")
        with pytest.raises(RenderError) as exc_info:
            RasterBackend().rasterize(scene)
        assert exc_info.value.kind == RenderErrorKind.MISSING_TYPE_ASSET

    def test_raster_backend_unloadable_font(self, poster_trails, tmp_path):
        bad_font = tmp_path / "broken.ttf"
        bad_font.write_bytes(b"not a font")
        scene = _scene(poster_trails, "noir", label_text="TURIN")
        with pytest.raises(RenderError) as exc_info:
            RasterBackend(font_source=str(bad_font)).rasterize(scene)
        assert exc_info.value.kind == RenderErrorKind.MISSING_TYPE_ASSET

    def test_raster_backend_without_label_needs_no_font(self, poster_trails):
        scene = _scene(poster_trails, "noir")
        assert RasterBackend().rasterize(scene).size == (60, 80)


class TestEncoding:
    def test_encode_png(self):
        data = encode_png(Image.new("RGB", (4, 4), (1, 2, 3)))
        assert data.startswith(PNG_SIGNATURE)

    def test_encode_failure(self):
        image = MagicMock()
        image.save.side_effect = OSError("disk full")
        with pytest.raises(RenderError) as exc_info:
            encode_png(image)
        assert exc_info.value.kind == RenderErrorKind.ENCODING


class TestEntryPoints:
    """Tests for render_preview and render_high_res_poster."""

    def test_preview_shape(self, poster_trails):
        pixels = render_preview(poster_trails, None, get_theme("noir"), PosterOptions(), 60)
        assert pixels.shape == (80, 60, 3)
        assert pixels.dtype == np.uint8

    def test_high_res_png(self, poster_trails):
        options = PosterOptions(show_map=False)
        data = render_high_res_poster(poster_trails, None, get_theme("noir"), options,
                                      preview_width=60, width=120, height=160)
        assert data.startswith(PNG_SIGNATURE)
        with Image.open(io.BytesIO(data)) as image:
            assert image.size == (120, 160)

    def test_high_res_matches_preview_at_same_size(self, poster_trails):
        """Both paths compose the same scene, so equal sizes give equal pixels."""
        theme = get_theme("minimalist")
        options = PosterOptions(show_map=False, show_border=True, intensity=0.6)
        preview = render_preview(poster_trails, None, theme, options, 60)
        data = render_high_res_poster(poster_trails, None, theme, options,
                                      preview_width=60, width=60, height=80)
        with Image.open(io.BytesIO(data)) as image:
            exported = np.asarray(image.convert("RGB"))
        np.testing.assert_array_equal(preview, exported)

    def test_high_res_label_without_font(self, poster_trails):
        options = PosterOptions(label_text="TURIN")
        with pytest.raises(RenderError) as exc_info:
            render_high_res_poster(poster_trails, None, get_theme("noir"), options,
                                   preview_width=60, width=120, height=160)
        assert exc_info.value.kind == RenderErrorKind.MISSING_TYPE_ASSET

    def test_invalid_preview_width(self, poster_trails):
        with pytest.raises(ValueError):
            render_high_res_poster(poster_trails, None, get_theme("noir"), PosterOptions(),
                                   preview_width=0, width=120, height=160)
