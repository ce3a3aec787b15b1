"""
Command-line interface for the tile set bundler.
"""

import os
import sys
from importlib import metadata as importlib_metadata
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ENV_PREFIX, BundleConfig
from .errors import BundlerError
from .pipeline import BuildReport, ItemState, TileSetBundler
from .processing.metadata import METADATA_PATHS, decode_metadata, tile_set_kind
from .writers import create_writer

app = typer.Typer(
    name="tileset-bundler",
    help="Build tile set bundles: trim object sprites, pack atlases and write bundle metadata",
    add_completion=False,
    rich_markup_mode="rich",
    epilog="""
[bold]Examples:[/bold]
  [cyan]tileset-bundler build tiles.toml out/bundle.zip[/cyan]       Build a zip bundle
  [cyan]tileset-bundler build tiles.toml out/bundle --no-raw[/cyan]  Build a directory bundle with PNG images
  [cyan]tileset-bundler inspect out/bundle.zip[/cyan]                List the tile sets of a bundle

[bold]Environment Variables:[/bold]
  Use [cyan]tileset-bundler config --env-vars[/cyan] to see all available variables.
    """
)
console = Console()

OUTCOME_STYLES = {
    ItemState.TRIMMED: "green",
    ItemState.RE_ENCODED: "green",
    ItemState.RAW_COPIED: "green",
    ItemState.SKIPPED_UP_TO_DATE: "dim",
    ItemState.SKIPPED_MISSING_IMAGE: "yellow",
    ItemState.SKIPPED_UNNAMED: "yellow",
    ItemState.FAILED: "red",
}


@app.command()
def build(
    description: Path = typer.Argument(..., help="Bundle description (TOML or JSON)"),
    target: Path = typer.Argument(..., help="Target bundle: a .zip/.jar archive or a directory"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    trim: Optional[bool] = typer.Option(None, "--trim/--no-trim", help="Trim object tile sets"),
    raw: Optional[bool] = typer.Option(None, "--raw/--no-raw", help="Store images in the fast raw format"),
    packer: Optional[str] = typer.Option(None, "--packer", help="Packing strategy (strip or tree)"),
    metadata_format: Optional[str] = typer.Option(None, "--format", help="Metadata format (binary, json or toml)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Tile sets processed in parallel"),
    id_store: Optional[Path] = typer.Option(None, "--ids", help="JSON file holding persistent tile set ids"),
    show_summary: bool = typer.Option(True, "--summary/--no-summary", help="Show build summary")
):
    """Build a tile set bundle from a bundle description."""
    try:
        config = _load_config(config_file).with_overrides(
            trim_images=trim,
            use_raw_images=raw,
            packer=packer,
            metadata_format=metadata_format,
            max_workers=workers,
            id_store=str(id_store) if id_store else None,
        )
    except BundlerError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    errors = config.validate()
    if errors:
        console.print("[red]Configuration validation errors:[/red]")
        for error in errors:
            console.print(f"  • {error}")
        raise typer.Exit(1)

    console.print(f"[bold blue]Building bundle {target}...[/bold blue]")

    try:
        report = TileSetBundler(config).build(description, target)
    except BundlerError as e:
        console.print(f"[red]✗[/red] Build failed: {e}")
        raise typer.Exit(1)

    if report.up_to_date:
        console.print(f"[green]✓[/green] Bundle {target} is up to date")
    else:
        console.print(f"[green]✓[/green] Built bundle {target} in {report.duration:.2f}s")

    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    if show_summary:
        _display_build_summary(report)


@app.command()
def inspect(
    bundle: Path = typer.Argument(..., help="Built bundle: archive or directory")
):
    """List the tile sets recorded in a bundle's metadata."""
    if not bundle.exists():
        console.print(f"[red]Bundle not found:[/red] {bundle}")
        raise typer.Exit(1)

    reader = create_writer(bundle)
    manifest = None
    for metadata_format, path in METADATA_PATHS.items():
        try:
            data = reader.read_entry(path)
        except (OSError, KeyError):
            continue
        try:
            manifest = decode_metadata(data, metadata_format)
        except (ValueError, KeyError) as e:
            console.print(f"[red]Unreadable metadata {path}:[/red] {e}")
            raise typer.Exit(1)
        console.print(f"[dim]Reading {path}[/dim]")
        break

    if manifest is None:
        console.print(f"[red]No bundle metadata found in[/red] {bundle}")
        raise typer.Exit(1)

    table = Table(title=f"Tile sets in {bundle}")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name", style="green")
    table.add_column("Kind")
    table.add_column("Image", style="dim")
    table.add_column("Tiles", justify="right")

    for tile_set_id, tile_set in manifest.items():
        table.add_row(
            str(tile_set_id),
            tile_set.name or "-",
            tile_set_kind(tile_set),
            tile_set.image_path or "-",
            str(tile_set.tile_count),
        )

    console.print(table)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    validate_config: bool = typer.Option(False, "--validate", help="Validate configuration file"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Configuration file path"),
    env_vars: bool = typer.Option(False, "--env-vars", help="Show available environment variables")
):
    """Show or validate the bundler configuration."""
    if env_vars:
        _display_env_vars()
        return

    if not (show or validate_config):
        console.print("Use --show to display configuration, --validate to check it, or --env-vars to see environment variables.")
        return

    try:
        loaded = _load_config(config_file)
    except (BundlerError, OSError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(1)

    if show:
        _display_config(loaded)

    if validate_config:
        errors = loaded.validate()
        if errors:
            console.print("[red]Configuration validation errors:[/red]")
            for error in errors:
                console.print(f"  • {error}")
            raise typer.Exit(1)
        console.print("[green]✓ Configuration is valid[/green]")


@app.command()
def version():
    """Show tile set bundler version information."""
    console.print("[bold]Tile Set Bundler[/bold]")
    console.print(f"Version: {__version__}")
    console.print("Python: " + sys.version.split()[0])

    table = Table(show_header=False)
    table.add_column("Status", width=3)
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="green")

    for name in ("Pillow", "numpy", "typer", "rich", "toml", "Jinja2"):
        try:
            table.add_row("[green]✓[/green]", name, importlib_metadata.version(name))
        except importlib_metadata.PackageNotFoundError:
            table.add_row("[red]✗[/red]", name, "Not installed")

    console.print("\n[bold]Dependencies:[/bold]")
    console.print(table)


def _load_config(config_file: Optional[Path]) -> BundleConfig:
    """Load configuration from file or use defaults with environment variable support."""
    config = None

    if config_file:
        if not config_file.exists():
            console.print(f"[red]Configuration file not found:[/red] {config_file}")
            raise typer.Exit(1)
        config = BundleConfig.from_file(config_file)
        console.print(f"[dim]Using configuration: {config_file}[/dim]")
    else:
        for config_path in (Path("tileset_bundler.toml"), Path("tileset_bundler.json")):
            if config_path.exists():
                console.print(f"[dim]Using configuration: {config_path}[/dim]")
                config = BundleConfig.from_file(config_path)
                break

        if config is None:
            console.print("[dim]Using default configuration[/dim]")
            return _report_env_overrides(BundleConfig.default())

    return _report_env_overrides(BundleConfig._apply_env_overrides(config))


def _report_env_overrides(config: BundleConfig) -> BundleConfig:
    """Mention environment overrides when any are set."""
    env_vars_used = [key for key in os.environ if key.startswith(ENV_PREFIX)]
    if env_vars_used:
        console.print(f"[dim]Environment overrides applied: {len(env_vars_used)} variables[/dim]")

    return config


def _display_build_summary(report: BuildReport) -> None:
    """Display per tile set results."""
    table = Table(title="Bundle Build Summary")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Tile Set")
    table.add_column("Outcome")
    table.add_column("Output", style="dim")

    for item in report.items:
        style = OUTCOME_STYLES.get(item.outcome, "white")
        if item.state == ItemState.FAILED:
            style = "red"
        table.add_row(
            str(item.tile_set_id) if item.tile_set_id is not None else "-",
            item.name or "[dim]<unnamed>[/dim]",
            f"[{style}]{item.outcome.value}[/{style}]",
            item.output_path or "",
        )

    console.print(table)
    if report.metadata_written:
        console.print("[dim]Metadata rewritten[/dim]")


def _display_config(config: BundleConfig) -> None:
    """Display configuration in a formatted table."""
    table = Table(title="Tile Set Bundler Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Trim Images", str(config.trim_images))
    table.add_row("Use Raw Images", str(config.use_raw_images))
    table.add_row("Packer", config.packer)
    table.add_row("Strip Width", str(config.strip_width))
    table.add_row("Tree Padding", str(config.tree_padding))
    table.add_row("Metadata Format", config.metadata_format.value)
    table.add_row("Compression Level", str(config.compression_level))
    table.add_row("Max Workers", str(config.max_workers))
    table.add_row("Image Base", config.image_base or "(description directory)")
    table.add_row("ID Store", config.id_store or "(in memory)")

    console.print(table)


def _display_env_vars() -> None:
    """Display available environment variables for configuration."""
    table = Table(title="Tile Set Bundler Environment Variables")
    table.add_column("Environment Variable", style="cyan")
    table.add_column("Description", style="white")
    table.add_column("Example", style="green")

    env_vars = [
        ("TRIM_IMAGES", "Trim object tile sets (true/false)", "true"),
        ("USE_RAW_IMAGES", "Store images in the fast raw format (true/false)", "true"),
        ("PACKER", "Packing strategy", "strip"),
        ("STRIP_WIDTH", "Maximum strip width of the strip packer", "1024"),
        ("METADATA_FORMAT", "Metadata format (binary, json, toml)", "binary"),
        ("COMPRESSION_LEVEL", "PNG compression level (0-9)", "6"),
        ("MAX_WORKERS", "Tile sets processed in parallel", "4"),
        ("IMAGE_BASE", "Directory tile set images are resolved against", "assets/tiles"),
        ("ID_STORE", "JSON file holding persistent tile set ids", "tileset_ids.json"),
    ]

    for var_name, description, example in env_vars:
        table.add_row(ENV_PREFIX + var_name, description, example)

    console.print(table)
    console.print("\n[dim]Set these environment variables to override configuration file settings.[/dim]")
    console.print(f"[dim]Example: export {ENV_PREFIX}METADATA_FORMAT=json[/dim]")


if __name__ == "__main__":
    app()
