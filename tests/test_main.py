"""
Tests for PosterConfig validation and the command line entry point.
"""

import pytest
from datetime import datetime, timezone
from PIL import Image

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from geo import Coordinate
from main import PosterConfig, main, parse_args, poster_region
from projection import build_transform


@pytest.fixture
def gpx_dir(tmp_path, gpx_document):
    """Directory with one GPX track."""
    root = tmp_path / "logs"
    root.mkdir()
    (root / "hike.gpx").write_text(gpx_document, encoding="utf-8")
    return root


class TestPosterConfig:
    """Tests for configuration validation."""

    def test_defaults(self):
        config = PosterConfig(input_paths=["a.gpx"], output_file="out.png")
        assert config.theme == "noir"
        assert config.width == 3000
        assert config.height == 4000
        assert config.show_map

    def test_theme_default_intensity(self):
        assert PosterConfig(input_paths=["a"], output_file="o", theme="clean").resolved_intensity == 0.2
        assert PosterConfig(input_paths=["a"], output_file="o", intensity=0.9).resolved_intensity == 0.9

    def test_unknown_theme_rejected(self):
        with pytest.raises(ValueError):
            PosterConfig(input_paths=["a"], output_file="o", theme="sepia")

    def test_invalid_ranges(self):
        with pytest.raises(ValueError):
            PosterConfig(input_paths=["a"], output_file="o", intensity=1.2)
        with pytest.raises(ValueError):
            PosterConfig(input_paths=["a"], output_file="o", hue_shift=1.0)
        with pytest.raises(ValueError):
            PosterConfig(input_paths=["a"], output_file="o", width=0)
        with pytest.raises(ValueError):
            PosterConfig(input_paths=[], output_file="o")

    def test_poster_options(self):
        config = PosterConfig(input_paths=["a"], output_file="o", theme="minimalist",
                              label="TURIN", show_border=True, heading=30.0)
        options = config.poster_options()
        assert options.intensity == 0.25
        assert options.has_label
        assert options.show_border
        assert options.heading == 30.0

    def test_no_label_means_hidden_label(self):
        assert not PosterConfig(input_paths=["a"], output_file="o").poster_options().show_label


    def test_date_filters(self):
        config = PosterConfig(input_paths=["a"], output_file="o", since="2024-05-01", until="2024-05-31")
        assert config.since == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert config.until == datetime(2024, 5, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_until_with_time_kept(self):
        config = PosterConfig(input_paths=["a"], output_file="o", until="2024-05-31T08:00:00Z")
        assert config.until == datetime(2024, 5, 31, 8, 0, tzinfo=timezone.utc)

    def test_inverted_date_range_rejected(self):
        with pytest.raises(ValueError):
            PosterConfig(input_paths=["a"], output_file="o", since="2024-06-01", until="2024-05-01")

    def test_activity_codes(self):
        config = PosterConfig(input_paths=["a"], output_file="o", activities=["Hiking", "running"])
        assert config.activities == ["hiking", "running"]
        assert config.activity_codes == [24, 37]
        with pytest.raises(ValueError):
            PosterConfig(input_paths=["a"], output_file="o", activities=["kayaking"])


class TestPosterRegion:
    """Tests for framing selected trails on the poster canvas."""

    @staticmethod
    def _assert_on_canvas(trail, width, height):
        region = poster_region([trail], width / height)
        transform = build_transform([trail], width, height, region=region, padding_ratio=0.0)
        for x, y in transform.project(trail.coordinates):
            assert 0 <= x <= width
            assert 0 <= y <= height

    def test_wide_area_fits(self, make_trail):
        trail = make_trail("wide").with_coordinates(
            [Coordinate(45.0, 7.0), Coordinate(45.01, 7.1), Coordinate(45.0, 7.2)]
        )
        self._assert_on_canvas(trail, 3000, 4000)

    def test_tall_area_fits(self, make_trail):
        trail = make_trail("tall").with_coordinates(
            [Coordinate(45.0, 7.0), Coordinate(45.3, 7.001), Coordinate(45.6, 7.0)]
        )
        self._assert_on_canvas(trail, 3000, 4000)

    def test_empty(self):
        assert poster_region([], 0.75) is None


class TestParseArgs:
    """Tests for argument parsing."""

    def test_flags(self):
        config = parse_args(["tracks", "-o", "out.png", "--theme", "architect", "--no-map", "--border",
                             "--intensity", "0.7", "--cluster", "2", "--export-gpx", "cleaned"])
        assert config.input_paths == ["tracks"]
        assert config.output_file == "out.png"
        assert config.theme == "architect"
        assert not config.show_map
        assert config.show_border
        assert config.intensity == 0.7
        assert config.cluster_index == 2
        assert config.export_gpx == "cleaned"

    def test_invalid_theme_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["tracks", "--theme", "sepia"])

    def test_invalid_value_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["tracks", "--intensity", "3"])
        assert exc_info.value.code == 1


class TestMain:
    """End-to-end runs on a small GPX directory."""

    def test_renders_png(self, gpx_dir, tmp_path):
        output = tmp_path / "poster.png"
        code = main([str(gpx_dir), "-o", str(output), "--no-map",
                     "--width", "120", "--height", "160", "--preview-width", "60"])
        assert code == 0
        with Image.open(output) as image:
            assert image.size == (120, 160)

    def test_preview(self, gpx_dir, tmp_path):
        output = tmp_path / "preview.png"
        code = main([str(gpx_dir), "-o", str(output), "--preview", "--preview-width", "60",
                     "--smooth", "2", "--label", "TURIN"])
        assert code == 0
        with Image.open(output) as image:
            assert image.size == (60, 80)

    def test_label_without_font_fails(self, gpx_dir, tmp_path):
        output = tmp_path / "poster.png"
        code = main([str(gpx_dir), "-o", str(output), "--label", "TURIN",
                     "--width", "120", "--height", "160", "--preview-width", "60"])
        assert code == 1
        assert not output.exists()

    def test_export_gpx(self, gpx_dir, tmp_path):
        output = tmp_path / "poster.png"
        cleaned = tmp_path / "cleaned"
        code = main([str(gpx_dir), "-o", str(output), "--width", "60", "--height", "80",
                     "--export-gpx", str(cleaned)])
        assert code == 0
        assert len(list(cleaned.glob("*.gpx"))) == 1

    def test_activity_filter(self, gpx_dir, tmp_path):
        """The fixture track is a hike: hiking keeps it, running filters it out."""
        args = [str(gpx_dir), "--no-map", "--width", "60", "--height", "80"]
        assert main(args + ["-o", str(tmp_path / "hike.png"), "--activity", "hiking"]) == 0
        assert main(args + ["-o", str(tmp_path / "run.png"), "--activity", "running"]) == 1
        assert not (tmp_path / "run.png").exists()

    def test_date_filter(self, gpx_dir, tmp_path):
        args = [str(gpx_dir), "--no-map", "--width", "60", "--height", "80"]
        assert main(args + ["-o", str(tmp_path / "a.png"), "--since", "2024-05-01", "--until", "2024-05-01"]) == 0
        assert main(args + ["-o", str(tmp_path / "b.png"), "--since", "2025-01-01"]) == 1

    def test_missing_input(self, tmp_path):
        assert main([str(tmp_path / "missing"), "-o", str(tmp_path / "p.png")]) == 1

    def test_no_gpx_files(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert main([str(empty), "-o", str(tmp_path / "p.png")]) == 1

    def test_cluster_out_of_range(self, gpx_dir, tmp_path):
        assert main([str(gpx_dir), "-o", str(tmp_path / "p.png"), "--cluster", "5"]) == 1
