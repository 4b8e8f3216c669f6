"""Command-line interface for labels-grid.

Usage:
    # Register an image
    python cli.py items add "Shelf label" label.png

    # Inspect the layout
    python cli.py layout <item-id> --repeat 4 -o layout.json

    # Print-ready PDF and a quick proof
    python cli.py pdf <item-id> -o labels.pdf --pages 5 --png-dir pages/
    python cli.py preview <item-id> -o proof.jpg --dpi 200 --full-page
"""

import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from labelgrid.config import MAX_PREVIEW_DPI, MIN_PREVIEW_DPI, PREVIEW_DPI
from labelgrid.coordinates import WorkingUnit
from labelgrid.errors import LayoutError
from labelgrid.layout import compute_layout, layout_summary, write_layout_json
from labelgrid.preview import render_preview_jpg
from labelgrid.registry import ItemRegistry, load_source_image
from labelgrid.rendering import generate_pdf_bytes, write_page_images, write_pdf
from labelgrid.validation import (
    GridSpec,
    LayoutSettings,
    PageSpec,
    PreviewSettings,
    SourceImage,
    load_settings_file,
    parse_layout_settings,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure root logger
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[console_handler],
)

logger = logging.getLogger(__name__)

# CLI option name → LayoutSettings field
SETTING_OPTIONS = {
    "pages": "page_count",
    "left_margin": "left_margin_mm",
    "top_margin": "top_margin_mm",
    "col_gap": "col_gap_mm",
    "row_gap": "row_gap_mm",
    "repeat": "repeat_per_cell",
    "scale": "image_scale",
    "pad": "img_pad_mm",
    "fit": "image_fit_mode",
    "cell_boxes": "draw_cell_boxes",
    "stroke": "stroke_width_pt",
    "inner_box": "draw_inner_image_box",
    "inner_stroke": "inner_box_stroke_pt",
    "cut_line": "draw_cut_guide_line",
    "cut_stroke": "cut_line_stroke_pt",
}


def settings_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the shared layout settings options to a command."""
    options = [
        click.option("--settings-file", type=click.Path(exists=True), help="JSON file with page/grid/settings"),
        click.option("--pages", type=int, help="Number of identical pages"),
        click.option("--left-margin", type=float, help="Left margin (mm)"),
        click.option("--top-margin", type=float, help="Top margin (mm)"),
        click.option("--col-gap", type=float, help="Gap between columns (mm)"),
        click.option("--row-gap", type=float, help="Gap between rows (mm)"),
        click.option("--repeat", type=int, help="Stamps per cell"),
        click.option("--scale", type=float, help="Image scale within the stamp box"),
        click.option("--pad", type=float, help="Image padding (mm)"),
        click.option("--fit", type=click.Choice(["contain", "cover"]), help="Image fit mode"),
        click.option("--cell-boxes/--no-cell-boxes", default=None, help="Draw cell borders"),
        click.option("--stroke", type=float, help="Cell border width (pt)"),
        click.option("--inner-box/--no-inner-box", default=None, help="Draw inner debug boxes"),
        click.option("--inner-stroke", type=float, help="Inner box width (pt)"),
        click.option("--cut-line/--no-cut-line", default=None, help="Draw cut guide lines"),
        click.option("--cut-stroke", type=float, help="Cut line width (pt)"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_specs(
    settings_file: str | None,
    overrides: dict[str, Any],
) -> tuple[PageSpec, GridSpec, LayoutSettings]:
    """Combine defaults, an optional settings file and CLI overrides.

    Raises:
        InvalidSpec: If the combined values fail validation
    """
    if settings_file:
        page, grid, settings = load_settings_file(settings_file)
    else:
        page, grid, settings = PageSpec(), GridSpec(), LayoutSettings()

    updates = {
        SETTING_OPTIONS[name]: value
        for name, value in overrides.items()
        if name in SETTING_OPTIONS and value is not None
    }
    if updates:
        settings = parse_layout_settings({**settings.model_dump(), **updates})
    return page, grid, settings


def resolve_source(registry: ItemRegistry, item_id: str) -> SourceImage:
    """Look up an item and load its image, raising ClickException if missing."""
    item = registry.get_item(item_id)
    if item is None:
        raise click.ClickException(f"Item not found: {item_id}. Run 'items list' to see ids.")
    logger.info(f"Using item '{item.name}' ({item.id})")
    return load_source_image(item)


@click.group()
@click.option("--data-dir", default="data", show_default=True, help="Registry and item storage directory")
@click.option("--log-file", type=click.Path(), default=None, help="Also write DEBUG logs to this file")
@click.pass_context
def cli(ctx: click.Context, data_dir: str, log_file: str | None) -> None:
    """Labels Grid - repeat one image across a printable grid."""
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

        def close_log_file() -> None:
            root_logger.removeHandler(file_handler)
            file_handler.close()

        ctx.call_on_close(close_log_file)

    ctx.obj = ItemRegistry.in_data_dir(data_dir)


@cli.group()
def items() -> None:
    """Manage registered images."""
    pass


@items.command("list")
@click.option("--query", default="", help="Filter by name (case-insensitive)")
@click.pass_obj
def list_items(registry: ItemRegistry, query: str) -> None:
    """List registered images."""
    found = registry.search(query)
    if not found:
        click.echo("No items registered.")
        return
    for item in found:
        click.echo(f"{item.id}  {item.name}  {item.value}")


@items.command("add")
@click.argument("name")
@click.argument("png_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def add_item(registry: ItemRegistry, name: str, png_path: str) -> None:
    """Register a PNG image under NAME."""
    try:
        item = registry.add_png_item(name, Path(png_path).read_bytes())
    except LayoutError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"✓ Added {item.name}: {item.id}")


@items.command("delete")
@click.argument("item_id")
@click.pass_obj
def delete_item(registry: ItemRegistry, item_id: str) -> None:
    """Delete a registered image and its file."""
    try:
        item = registry.delete_item(item_id)
    except KeyError as e:
        raise click.ClickException(f"Item not found: {item_id}") from e
    click.echo(f"✓ Deleted {item.name}")


@cli.command()
@click.argument("item_id")
@click.option("--unit", type=click.Choice(["pt", "px"]), default="pt", show_default=True, help="Working unit")
@click.option("--dpi", type=int, default=PREVIEW_DPI, show_default=True, help="Resolution for px units")
@click.option("-o", "--output", type=click.Path(), default=None, help="Write layout JSON here instead of stdout")
@settings_options
@click.pass_obj
def layout(
    registry: ItemRegistry,
    item_id: str,
    unit: str,
    dpi: int,
    output: str | None,
    settings_file: str | None,
    **overrides: Any,
) -> None:
    """Compute the placement layout for an item and dump it as JSON."""
    try:
        page, grid, settings = build_specs(settings_file, overrides)
        source = resolve_source(registry, item_id)
        working_unit = WorkingUnit.points() if unit == "pt" else WorkingUnit.pixels(dpi)
        record = compute_layout(page, grid, settings, (source.width_px, source.height_px), working_unit)
    except LayoutError as e:
        raise click.ClickException(str(e)) from e

    summary = layout_summary(record)
    if output:
        write_layout_json(record, output)
        click.echo(
            f"✓ {summary['pages']} page(s), {summary['cells_per_page']} cells, "
            f"{summary['stamps_per_page']} stamps per page"
        )
        click.echo(f"📁 Layout JSON saved to: {output}")
    else:
        click.echo(json.dumps(record, indent=2))


@cli.command()
@click.argument("item_id")
@click.option("-o", "--output", type=click.Path(), required=True, help="Output PDF path")
@click.option("--png-dir", type=click.Path(file_okay=False), default=None, help="Also rasterize each page to PNG here")
@click.option(
    "--png-dpi",
    type=click.IntRange(MIN_PREVIEW_DPI, MAX_PREVIEW_DPI),
    default=PREVIEW_DPI,
    show_default=True,
    help="Resolution for --png-dir images",
)
@settings_options
@click.pass_obj
def pdf(
    registry: ItemRegistry,
    item_id: str,
    output: str,
    png_dir: str | None,
    png_dpi: int,
    settings_file: str | None,
    **overrides: Any,
) -> None:
    """Render a print-ready PDF for an item."""
    click.echo(f"🖨️  Rendering PDF for item {item_id}...")
    try:
        page, grid, settings = build_specs(settings_file, overrides)
        source = resolve_source(registry, item_id)
        pdf_bytes = generate_pdf_bytes(source, page, grid, settings)
    except LayoutError as e:
        raise click.ClickException(str(e)) from e

    write_pdf(pdf_bytes, output)
    click.echo(f"✓ {settings.page_count} page(s), {len(pdf_bytes)} bytes")
    click.echo(f"📁 PDF saved to: {output}")

    if png_dir:
        try:
            paths = write_page_images(pdf_bytes, png_dir, png_dpi)
        except LayoutError as e:
            raise click.ClickException(str(e)) from e
        click.echo(f"🖼️  {len(paths)} page image(s) saved to: {png_dir}")


@cli.command()
@click.argument("item_id")
@click.option("-o", "--output", type=click.Path(), required=True, help="Output JPEG path")
@click.option(
    "--dpi",
    type=click.IntRange(MIN_PREVIEW_DPI, MAX_PREVIEW_DPI),
    default=PREVIEW_DPI,
    show_default=True,
    help="Preview resolution",
)
@click.option("--full-page/--cropped", default=False, help="Whole page or grid with margin")
@settings_options
@click.pass_obj
def preview(
    registry: ItemRegistry,
    item_id: str,
    output: str,
    dpi: int,
    full_page: bool,
    settings_file: str | None,
    **overrides: Any,
) -> None:
    """Render a JPEG proof of the first page."""
    click.echo(f"🔍 Rendering preview for item {item_id} at {dpi} DPI...")
    try:
        page, grid, settings = build_specs(settings_file, overrides)
        source = resolve_source(registry, item_id)
        jpg_bytes = render_preview_jpg(
            source, page, grid, settings, PreviewSettings(dpi=dpi, full_page=full_page)
        )
    except LayoutError as e:
        raise click.ClickException(str(e)) from e

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(jpg_bytes)
    click.echo(f"📁 Preview saved to: {output}")


if __name__ == "__main__":
    cli()
