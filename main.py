#!/usr/bin/env python3
import argparse
import sys
from datetime import datetime, timezone
from typing import List, Optional

from PIL import Image
from pydantic import BaseModel, Field, field_validator, model_validator

from clustering import cluster_trails, filter_summaries, select_cluster_trails
from constants import CLUSTER_MAX_DISTANCE_KM, EXPORT_HEIGHT, EXPORT_WIDTH, SIMPLIFY_TOLERANCE_DEG
from line_simplify import smooth
from models import ActivityType
from poster_renderer import (
    PosterOptions,
    RenderError,
    RenderErrorKind,
    render_high_res_poster,
    render_preview,
)
from poster_themes import POSTER_THEMES, adjust_theme, default_intensity, get_theme
from projection import Region, expand_region_to_aspect, region_for_trails
from rich_console import (
    console,
    create_import_progress,
    create_render_progress,
    print_banner,
    print_cluster_table,
    print_completion_summary,
    print_config_summary,
    print_error,
    print_phase,
    setup_rich_logging,
)
from trail_import.importer import TrailImporter

__version__ = "1.0.0"

# Width of the on-screen canvas the poster is composed for
DEFAULT_PREVIEW_WIDTH = 750

_RENDER_ERROR_HINTS = {
    RenderErrorKind.SURFACE_ALLOCATION: "Try a smaller --width/--height.",
    RenderErrorKind.MISSING_TYPE_ASSET: "Pass a TrueType font with --font, or drop the label.",
    RenderErrorKind.ENCODING: "Check that the output location is writable.",
}


class PosterConfig(BaseModel):
    input_paths: List[str] = Field(min_length=1)
    output_file: str
    theme: str = "noir"
    intensity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    hue_shift: float = Field(default=0.0, ge=0.0, lt=1.0)
    label: str = ""
    show_map: bool = True
    show_border: bool = False
    heading: float = 0.0
    basemap: Optional[str] = None
    font: Optional[str] = None
    cluster_index: int = Field(default=0, ge=0)
    cluster_distance_km: float = Field(default=CLUSTER_MAX_DISTANCE_KM, gt=0)
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    activities: List[str] = Field(default_factory=list)
    width: int = Field(default=EXPORT_WIDTH, gt=0)
    height: int = Field(default=EXPORT_HEIGHT, gt=0)
    preview_width: int = Field(default=DEFAULT_PREVIEW_WIDTH, gt=0)
    preview: bool = False
    smooth_iterations: int = Field(default=0, ge=0)
    use_gps_filter: bool = True
    tolerance: float = Field(default=SIMPLIFY_TOLERANCE_DEG, gt=0)
    export_gpx: Optional[str] = None
    verbose: bool = False

    @model_validator(mode="after")
    def _check_theme(self) -> "PosterConfig":
        get_theme(self.theme)
        return self

    @field_validator("until", mode="before")
    @classmethod
    def _until_end_of_day(cls, value):
        # A bare date includes the whole day
        if isinstance(value, str) and len(value.strip()) == 10:
            return value.strip() + "T23:59:59.999999"
        return value

    @field_validator("since", "until")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("activities")
    @classmethod
    def _check_activities(cls, value: List[str]) -> List[str]:
        names = [v.strip().lower() for v in value]
        for name in names:
            if name.upper() not in ActivityType.__members__:
                raise ValueError(f"Unknown activity '{name}'")
        return names

    @model_validator(mode="after")
    def _check_date_range(self) -> "PosterConfig":
        if self.since and self.until and self.since > self.until:
            raise ValueError("--since must not be after --until")
        return self

    @property
    def activity_codes(self) -> List[int]:
        return [int(ActivityType[name.upper()]) for name in self.activities]

    @property
    def resolved_intensity(self) -> float:
        if self.intensity is not None:
            return self.intensity
        return default_intensity(get_theme(self.theme).id)

    def poster_options(self) -> PosterOptions:
        return PosterOptions(
            intensity=self.resolved_intensity,
            show_label=bool(self.label),
            show_map=self.show_map,
            show_border=self.show_border,
            label_text=self.label,
            heading=self.heading,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render a poster from GPX tracklogs.")
    parser.add_argument("input_paths", nargs="+", help="GPX files or directories of GPX files")
    parser.add_argument("-o", "--output", dest="output_file", default="poster.png", help="Output PNG path")
    parser.add_argument("--theme", default="noir", choices=[t.id for t in POSTER_THEMES], help="Poster theme")
    parser.add_argument("--intensity", type=float, default=None,
                        help="Stroke intensity 0-1 (default depends on theme)")
    parser.add_argument("--hue-shift", type=float, default=0.0, help="Trail hue rotation 0-1 (noir and clean)")
    parser.add_argument("--label", default="", help="Label text at the bottom of the poster")
    parser.add_argument("--no-map", dest="show_map", action="store_false", help="Solid background instead of a map")
    parser.add_argument("--border", dest="show_border", action="store_true", help="Draw a frame border")
    parser.add_argument("--heading", type=float, default=0.0, help="Map heading in degrees")
    parser.add_argument("--basemap", default=None, help="Map image to draw under the trails")
    parser.add_argument("--font", default=None, help="TrueType font for the label")
    parser.add_argument("--cluster", dest="cluster_index", type=int, default=0,
                        help="Index of the trail area to render (0 = largest)")
    parser.add_argument("--cluster-distance", dest="cluster_distance_km", type=float,
                        default=CLUSTER_MAX_DISTANCE_KM, help="Max km between trail centers in one area")
    parser.add_argument("--since", default=None, help="Only trails starting on or after this date (YYYY-MM-DD)")
    parser.add_argument("--until", default=None, help="Only trails starting on or before this date (YYYY-MM-DD)")
    parser.add_argument("--activity", dest="activities", action="append", default=[],
                        choices=[a.name.lower() for a in ActivityType],
                        help="Only trails of this activity (repeatable)")
    parser.add_argument("--width", type=int, default=EXPORT_WIDTH, help="Output width in pixels")
    parser.add_argument("--height", type=int, default=EXPORT_HEIGHT, help="Output height in pixels")
    parser.add_argument("--preview-width", type=int, default=DEFAULT_PREVIEW_WIDTH,
                        help="Width of the preview canvas the poster is composed for")
    parser.add_argument("--preview", action="store_true", help="Render at preview size only")
    parser.add_argument("--smooth", dest="smooth_iterations", type=int, default=0,
                        help="Chaikin smoothing iterations for previews")
    parser.add_argument("--no-gps-filter", dest="use_gps_filter", action="store_false",
                        help="Skip outlier removal on import")
    parser.add_argument("--tolerance", type=float, default=SIMPLIFY_TOLERANCE_DEG,
                        help="Simplification tolerance in degrees")
    parser.add_argument("--export-gpx", default=None, help="Directory to write cleaned GPX files to")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> PosterConfig:
    args = build_parser().parse_args(argv)
    try:
        return PosterConfig(**vars(args))
    except ValueError as e:
        print_error(f"Configuration error: {e}")
        sys.exit(1)


def poster_region(trails, aspect: float) -> Optional[Region]:
    """Frame trails with a margin, grown to the poster's aspect so none is cut off."""
    region = region_for_trails(trails)
    if region is None:
        return None
    return expand_region_to_aspect(region, aspect)


def main(argv: Optional[List[str]] = None) -> int:
    config = parse_args(argv)
    setup_rich_logging(config.verbose)
    print_banner(__version__)

    try:
        importer = TrailImporter(config.input_paths, config.use_gps_filter, config.tolerance)
    except ValueError as e:
        print_error(str(e))
        return 1

    if not importer.files:
        print_error("No GPX files found.", hint="Pass .gpx files or directories containing them.")
        return 1

    width, height = config.width, config.height
    if config.preview:
        width = config.preview_width
        height = round(config.preview_width * config.height / config.width)

    print_config_summary(
        file_count=len(importer.files),
        output_file=config.output_file,
        theme=config.theme,
        intensity=config.resolved_intensity,
        hue_shift=config.hue_shift,
        width=width,
        height=height,
        label=config.label,
        show_map=config.show_map,
        show_border=config.show_border,
        preview=config.preview,
    )

    # 1. Import
    print_phase(1, 3, "Importing tracklogs")
    with create_import_progress() as progress:
        task = progress.add_task("Reading GPX", total=len(importer.files))
        trails = importer.import_all(lambda done, total: progress.update(task, completed=done))

    if not trails:
        print_error("No usable trails found.", hint="Each tracklog needs at least two valid GPS points.")
        return 1
    if importer.skipped:
        console.print(f"[warning]Skipped {len(importer.skipped)} file(s)[/]")

    # 2. Cluster
    print_phase(2, 3, "Finding trail areas")
    summaries = filter_summaries([t.summary() for t in trails], config.since, config.until, config.activity_codes)
    if not summaries:
        print_error("No trails match the date and activity filters.",
                    hint="Widen --since/--until or drop --activity.")
        return 1
    clusters = cluster_trails(summaries, config.cluster_distance_km)
    if config.cluster_index >= len(clusters):
        print_error(f"Area {config.cluster_index} does not exist; found {len(clusters)} area(s).")
        return 1
    print_cluster_table(clusters, selected=config.cluster_index)

    cluster = clusters[config.cluster_index]
    selected = select_cluster_trails(cluster, {t.workout_id: t for t in trails})
    if config.preview and config.smooth_iterations:
        selected = [t.with_coordinates(smooth(t.coordinates, config.smooth_iterations)) for t in selected]

    region = poster_region(selected, width / height)
    theme = adjust_theme(get_theme(config.theme), config.hue_shift)
    options = config.poster_options()

    # 3. Render
    print_phase(3, 3, "Rendering poster")
    basemap = None
    if config.basemap and config.show_map:
        try:
            basemap = Image.open(config.basemap)
        except OSError as e:
            print_error(f"Could not open basemap {config.basemap}: {e}")
            return 1

    try:
        with create_render_progress() as progress:
            task = progress.add_task("Rendering", total=1, status=f"{width}x{height}")
            if config.preview:
                pixels = render_preview(selected, region, theme, options, width, height,
                                        basemap=basemap, font_path=config.font)
                Image.fromarray(pixels).save(config.output_file, format="PNG")
            else:
                data = render_high_res_poster(selected, region, theme, options, config.preview_width,
                                              basemap=basemap, font_source=config.font,
                                              width=width, height=height)
                with open(config.output_file, "wb") as f:
                    f.write(data)
            progress.update(task, completed=1, status="done")
    except RenderError as e:
        print_error(str(e), hint=_RENDER_ERROR_HINTS.get(e.kind))
        return 1
    except OSError as e:
        print_error(f"Could not write {config.output_file}: {e}")
        return 1

    gpx_files = None
    if config.export_gpx:
        gpx_files = len(importer.export_gpx(config.export_gpx))

    print_completion_summary(
        output_file=config.output_file,
        trail_count=len(selected),
        point_count=sum(len(t.coordinates) for t in selected),
        size_bytes=None if config.preview else len(data),
        gpx_files=gpx_files,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
