"""
Rich console configuration for the trail poster tool.

Provides terminal output with progress bars, panels, tables and styled logging.
"""

import logging
from typing import Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme
from rich.panel import Panel
from rich.table import Table
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn,
    MofNCompleteColumn,
)

from clustering import TrailCluster

# Custom theme, colors loosely follow the poster themes
POSTER_CONSOLE_THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "highlight": "bold yellow",
    "muted": "dim",
    "trail": "bold blue",
    "gps": "green",
})

# Global console instance
console = Console(theme=POSTER_CONSOLE_THEME)


def setup_rich_logging(verbose: bool = False) -> None:
    """
    Configure logging to use the Rich handler.

    Args:
        verbose: Enable DEBUG level logging with full details
    """
    level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=verbose,
                show_path=verbose,
                rich_tracebacks=True,
                tracebacks_show_locals=verbose,
                markup=True,
            )
        ],
        force=True,  # Override any existing configuration
    )


def create_import_progress() -> Progress:
    """
    Create a progress bar for reading and cleaning tracklogs.

    Returns:
        Configured Progress instance
    """
    return Progress(
        SpinnerColumn("dots"),
        TextColumn("[cyan]{task.description}"),
        BarColumn(bar_width=30, style="dim cyan", complete_style="cyan"),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def create_render_progress() -> Progress:
    """
    Create a progress display for poster rendering with a status field.

    Returns:
        Configured Progress instance
    """
    return Progress(
        SpinnerColumn("dots"),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40, style="cyan", complete_style="green"),
        TaskProgressColumn(),
        TextColumn("[dim]{task.fields[status]}[/]"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )


def print_banner(version: str = "1.0.0") -> None:
    """
    Print a styled startup banner.

    Args:
        version: Version string to display
    """
    console.print("\n[bold yellow]TRAIL POSTER[/]")
    console.print("[dim]Turn years of GPS tracklogs into a print[/]")
    console.print(f"[muted]Version {version}[/]\n")


def print_config_summary(
    file_count: int,
    output_file: str,
    theme: str,
    intensity: float,
    hue_shift: float = 0.0,
    width: int = 3000,
    height: int = 4000,
    label: Optional[str] = None,
    show_map: bool = True,
    show_border: bool = False,
    preview: bool = False,
) -> None:
    """
    Print a styled configuration summary panel.

    Args:
        file_count: Number of tracklog files found
        output_file: Output PNG path
        theme: Theme id
        intensity: Intensity slider value (0-1)
        hue_shift: Hue shift (0-1), shown only when non-zero
        width: Output width in pixels
        height: Output height in pixels
        label: Label text, if any
        show_map: Whether a basemap is drawn under the trails
        show_border: Whether the frame border is drawn
        preview: Preview render instead of full resolution
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Tracklogs", f"[highlight]{file_count}[/]")
    table.add_row("Theme", f"[trail]{theme}[/]")
    table.add_row("Intensity", f"{intensity:.2f}")
    if abs(hue_shift) >= 0.001:
        table.add_row("Hue Shift", f"{hue_shift:.2f}")
    table.add_row("Size", f"{width}x{height}" + (" [dim](preview)[/]" if preview else ""))
    table.add_row("Label", label if label else "[dim]none[/]")
    table.add_row("Map", "on" if show_map else "[dim]off[/]")
    table.add_row("Border", "on" if show_border else "[dim]off[/]")
    table.add_row("Output", f"[green]{output_file}[/]")

    panel = Panel(
        table,
        title="[bold]Configuration[/]",
        border_style="cyan",
        padding=(1, 2),
    )
    console.print(panel)
    console.print()


def print_cluster_table(clusters: Sequence[TrailCluster], selected: int = 0, limit: int = 10) -> None:
    """
    Print the largest trail areas with the selected one highlighted.

    Args:
        clusters: Clusters, largest first
        selected: Index of the cluster that will be rendered
        limit: Maximum rows to show
    """
    table = Table(title="Trail Areas", header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Trails", justify="right")
    table.add_column("Center", style="gps")
    table.add_column("Dates")

    for idx, cluster in enumerate(clusters[:limit]):
        lat, lng = cluster.center
        starts = [s.start_date for s in cluster.summaries]
        dates = f"{min(starts):%Y-%m-%d} .. {max(starts):%Y-%m-%d}"
        marker = "[highlight]>[/] " if idx == selected else ""
        table.add_row(f"{marker}{idx}", str(cluster.member_count), f"{lat:.4f}, {lng:.4f}", dates)

    if len(clusters) > limit:
        table.caption = f"{len(clusters) - limit} smaller areas not shown"

    console.print(table)
    console.print()


def print_phase(phase_num: int, total_phases: int, description: str) -> None:
    """
    Print a phase header for multi-step processing.

    Args:
        phase_num: Current phase number (1-indexed)
        total_phases: Total number of phases
        description: Description of this phase
    """
    console.print(
        f"\n[bold cyan]Step {phase_num}/{total_phases}:[/] [bold]{description}[/]"
    )


def print_completion_summary(
    output_file: str,
    trail_count: int,
    point_count: Optional[int] = None,
    size_bytes: Optional[int] = None,
    gpx_files: Optional[int] = None,
) -> None:
    """
    Print a styled completion summary.

    Args:
        output_file: Path to output file
        trail_count: Number of trails drawn
        point_count: Total coordinates drawn (optional)
        size_bytes: PNG size (optional)
        gpx_files: Number of cleaned GPX files written (optional)
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold green")

    table.add_row("Trails Drawn", str(trail_count))
    if point_count:
        table.add_row("GPS Points", f"{point_count:,}")
    if size_bytes:
        table.add_row("File Size", f"{size_bytes / 1_000_000:.1f} MB")
    if gpx_files:
        table.add_row("GPX Exported", str(gpx_files))
    table.add_row("Output", output_file)

    panel = Panel(
        table,
        title="[bold green]Complete[/]",
        border_style="green",
        padding=(1, 2),
    )
    console.print()
    console.print(panel)


def print_error(message: str, hint: Optional[str] = None) -> None:
    """
    Print a styled error message.

    Args:
        message: Error message
        hint: Optional hint for resolution
    """
    console.print(f"\n[error]Error:[/] {message}")
    if hint:
        console.print(f"[muted]Hint: {hint}[/]")
