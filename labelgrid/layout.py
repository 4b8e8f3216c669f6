"""Grid layout geometry.

This module handles:
- Converting page, grid and settings lengths into a working unit
- Validating that the grid physically fits on the page
- Generating placement records for every cell, stamp and decoration

The computation is pure: no I/O, no shared state, identical input always
yields an identical record. Records use a top-left origin ("distance from
top"); renderers with a bottom-left origin flip the vertical axis themselves.
"""

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import TypedDict

from labelgrid.config import (
    COORDINATE_SYSTEM,
    FIT_TOLERANCE,
    MIN_EXTENT,
    SCHEMA_VERSION,
    STAMP_PAD_FRACTION,
    STAMP_PAD_MIN_MM,
)
from labelgrid.coordinates import WorkingUnit
from labelgrid.errors import GridOverflow, InvalidSpec
from labelgrid.fitting import FitMode, fit_box
from labelgrid.validation import GridSpec, LayoutSettings, PageSpec

logger = logging.getLogger(__name__)


class Rect(TypedDict):
    """Axis-aligned rectangle, top-left origin, in the working unit."""

    x: float
    y: float
    width: float
    height: float


class StampRecord(TypedDict):
    """One placed instance of the source image inside a cell."""

    index: int
    frac: float  # Position along the cell's usable height, 0 = top, 1 = bottom
    center_x: float
    center_y: float
    target_box: Rect  # Padded box the image is fitted into
    draw_box: Rect  # Fit-resolved image box, centered in target_box
    debug_box: Rect | None
    debug_stroke: float | None
    cut_line_y: float | None
    cut_stroke: float | None


class CellRecord(TypedDict):
    """One grid cell and its stamps."""

    row: int
    col: int
    rect: Rect
    border_stroke: float | None
    stamps: list[StampRecord]


class PageRecord(TypedDict):
    """All cells of one page."""

    page_index: int
    cells: list[CellRecord]


class PlacementRecord(TypedDict):
    """Complete renderer-agnostic layout."""

    schema_version: str
    coordinate_system: str
    unit: str
    dpi: int | None
    page_width: float
    page_height: float
    grid_bounds: Rect
    fit_mode: str
    source_size: dict[str, int]
    stamp_overlap: bool
    pages: list[PageRecord]


def grid_extent(count: int, size: float, gap: float) -> float:
    """Total length of `count` cells of `size` separated by `gap`."""
    return count * size + (count - 1) * gap


def stamp_fraction(index: int, repeat: int) -> float:
    """Vertical position of a stamp within a cell's usable height.

    A single stamp sits in the middle; otherwise stamps span [0, 1]
    inclusive at both ends.
    """
    if repeat == 1:
        return 0.5
    return index / (repeat - 1)


def check_specs(
    page: PageSpec,
    grid: GridSpec,
    settings: LayoutSettings,
    page_count: int,
) -> None:
    """Reject malformed specs before any layout work begins.

    Models built through pydantic already enforce these bounds; this guards
    values built with model_construct() or mutated copies.

    Raises:
        InvalidSpec: On any non-positive dimension, bad count or unknown fit mode
    """
    if page.width_mm <= 0 or page.height_mm <= 0:
        raise InvalidSpec(f"Page dimensions must be positive, got {page.width_mm}x{page.height_mm}mm")
    if grid.columns < 1 or grid.rows < 1:
        raise InvalidSpec(f"Grid needs at least one column and row, got {grid.columns}x{grid.rows}")
    if grid.cell_width_mm <= 0 or grid.cell_height_mm <= 0:
        raise InvalidSpec(
            f"Cell dimensions must be positive, got {grid.cell_width_mm}x{grid.cell_height_mm}mm"
        )
    if page_count < 1:
        raise InvalidSpec(f"Page count must be at least 1, got {page_count}")
    if settings.repeat_per_cell < 1:
        raise InvalidSpec(f"Repeat per cell must be at least 1, got {settings.repeat_per_cell}")
    if settings.image_scale <= 0:
        raise InvalidSpec(f"Image scale must be positive, got {settings.image_scale}")
    lengths = (
        settings.left_margin_mm,
        settings.top_margin_mm,
        settings.col_gap_mm,
        settings.row_gap_mm,
        settings.img_pad_mm,
    )
    if any(value < 0 for value in lengths):
        raise InvalidSpec("Margins, gaps and padding must not be negative")
    try:
        FitMode(settings.image_fit_mode)
    except ValueError as e:
        raise InvalidSpec(f"Unsupported fit mode: {settings.image_fit_mode}") from e


def validate_grid_fits(
    page_width: float,
    page_height: float,
    grid_width: float,
    grid_height: float,
    left: float,
    top: float,
) -> None:
    """Check that margins plus grid stay on the page.

    All values must already be in the same working unit.

    Raises:
        GridOverflow: Naming the first axis that does not fit
    """
    if left + grid_width > page_width + FIT_TOLERANCE:
        raise GridOverflow("width", left + grid_width, page_width)
    if top + grid_height > page_height + FIT_TOLERANCE:
        raise GridOverflow("height", top + grid_height, page_height)


def _snap_rect(unit: WorkingUnit, x: float, y: float, width: float, height: float) -> Rect:
    # Pixel rects snap their edges so neighbours never overlap or drift
    if not unit.integral:
        return Rect(x=x, y=y, width=width, height=height)
    left, top = round(x), round(y)
    right, bottom = round(x + width), round(y + height)
    return Rect(x=left, y=top, width=max(1, right - left), height=max(1, bottom - top))


def _centered_rect(unit: WorkingUnit, cx: float, cy: float, width: float, height: float) -> Rect:
    if not unit.integral:
        return Rect(x=cx - width / 2.0, y=cy - height / 2.0, width=width, height=height)
    width, height = max(1, round(width)), max(1, round(height))
    return Rect(x=round(cx) - width // 2, y=round(cy) - height // 2, width=width, height=height)


def _inset_rect(unit: WorkingUnit, outer: Rect, width: float, height: float) -> Rect:
    # Center a smaller box inside `outer`
    if unit.integral:
        dx, dy = (outer["width"] - width) // 2, (outer["height"] - height) // 2
    else:
        dx, dy = (outer["width"] - width) / 2.0, (outer["height"] - height) / 2.0
    return Rect(x=outer["x"] + dx, y=outer["y"] + dy, width=width, height=height)


def compute_layout(
    page: PageSpec,
    grid: GridSpec,
    settings: LayoutSettings,
    source_size: tuple[int, int],
    unit: WorkingUnit,
    page_count: int | None = None,
) -> PlacementRecord:
    """Compute every cell, stamp and decoration placement.

    Args:
        page: Physical page size
        grid: Grid columns/rows and cell size
        settings: Margins, gaps, repeat count, scale, padding, fit mode and toggles
        source_size: Intrinsic (width, height) of the source image in pixels
        unit: Working unit of the returned record
        page_count: Override for settings.page_count (raster callers pass 1)

    Returns:
        PlacementRecord with one PageRecord per page

    Raises:
        InvalidSpec: If any spec value is malformed
        GridOverflow: If the grid does not fit on the page

    Note:
        Fit validation compares exact converted values, before any pixel
        rounding, so a grid that fits in millimeters fits at every DPI.
    """
    pages_to_emit = settings.page_count if page_count is None else page_count
    check_specs(page, grid, settings, pages_to_emit)
    fit_mode = FitMode(settings.image_fit_mode)
    img_w, img_h = source_size

    # 1. Convert millimeters into the working unit
    page_w = unit.from_mm(page.width_mm)
    page_h = unit.from_mm(page.height_mm)
    cell_w = unit.from_mm(grid.cell_width_mm)
    cell_h = unit.from_mm(grid.cell_height_mm)
    left = unit.from_mm(settings.left_margin_mm)
    top = unit.from_mm(settings.top_margin_mm)
    col_gap = unit.from_mm(settings.col_gap_mm)
    row_gap = unit.from_mm(settings.row_gap_mm)
    pad = unit.from_mm(settings.img_pad_mm)

    # 2. Validate fit once, before generating anything
    grid_w = grid_extent(grid.columns, cell_w, col_gap)
    grid_h = grid_extent(grid.rows, cell_h, row_gap)
    validate_grid_fits(page_w, page_h, grid_w, grid_h, left, top)

    # Per-stamp geometry is identical for every cell
    repeat = settings.repeat_per_cell
    padding_y = max(unit.from_mm(STAMP_PAD_MIN_MM), STAMP_PAD_FRACTION * cell_h)
    usable_h = max(MIN_EXTENT, cell_h - 2 * padding_y)
    box_w = cell_w * settings.image_scale
    box_h = (cell_h / repeat) * settings.image_scale
    inner_w = max(MIN_EXTENT, box_w - 2 * pad)
    inner_h = max(MIN_EXTENT, box_h - 2 * pad)
    if unit.integral:
        inner_w, inner_h = max(1, round(inner_w)), max(1, round(inner_h))
    draw_w, draw_h = fit_box(img_w, img_h, inner_w, inner_h, fit_mode, integral=unit.integral)

    stamp_overlap = repeat > 1 and inner_h > usable_h / (repeat - 1) + FIT_TOLERANCE
    if stamp_overlap:
        logger.warning(
            f"Stamp boxes overlap: box height {inner_h:.2f} exceeds stamp pitch "
            f"{usable_h / (repeat - 1):.2f} ({unit.name}); lower image scale or repeat count"
        )

    border_stroke = unit.stroke(settings.stroke_width_pt) if settings.draw_cell_boxes else None
    debug_stroke = unit.stroke(settings.inner_box_stroke_pt) if settings.draw_inner_image_box else None
    cut_stroke = unit.stroke(settings.cut_line_stroke_pt) if settings.draw_cut_guide_line else None

    # 3. Emit identical pages
    pages: list[PageRecord] = []
    for page_index in range(pages_to_emit):
        cells: list[CellRecord] = []
        for row in range(grid.rows):
            for col in range(grid.columns):
                x = left + col * (cell_w + col_gap)
                y = top + row * (cell_h + row_gap)

                stamps: list[StampRecord] = []
                for i in range(repeat):
                    frac = stamp_fraction(i, repeat)
                    tx = x + cell_w / 2.0
                    ty = y + padding_y + usable_h * frac

                    target_box = _centered_rect(unit, tx, ty, inner_w, inner_h)
                    draw_box = _inset_rect(unit, target_box, draw_w, draw_h)
                    center_y = unit.snap(ty)

                    stamps.append(
                        StampRecord(
                            index=i,
                            frac=frac,
                            center_x=unit.snap(tx),
                            center_y=center_y,
                            target_box=target_box,
                            draw_box=draw_box,
                            debug_box=Rect(**target_box) if debug_stroke is not None else None,
                            debug_stroke=debug_stroke,
                            cut_line_y=center_y if cut_stroke is not None else None,
                            cut_stroke=cut_stroke,
                        )
                    )

                cells.append(
                    CellRecord(
                        row=row,
                        col=col,
                        rect=_snap_rect(unit, x, y, cell_w, cell_h),
                        border_stroke=border_stroke,
                        stamps=stamps,
                    )
                )
        pages.append(PageRecord(page_index=page_index, cells=cells))

    logger.debug(
        f"Layout: {pages_to_emit} page(s), {grid.columns}x{grid.rows} cells, "
        f"{repeat} stamp(s)/cell, unit={unit.name} dpi={unit.dpi}"
    )

    # 4. Return the full ordered record
    return PlacementRecord(
        schema_version=SCHEMA_VERSION,
        coordinate_system=COORDINATE_SYSTEM,
        unit=unit.name,
        dpi=unit.dpi,
        page_width=unit.snap(page_w),
        page_height=unit.snap(page_h),
        grid_bounds=_snap_rect(unit, left, top, grid_w, grid_h),
        fit_mode=fit_mode.value,
        source_size={"width": img_w, "height": img_h},
        stamp_overlap=stamp_overlap,
        pages=pages,
    )


def iter_stamps(page: PageRecord) -> Iterator[tuple[CellRecord, StampRecord]]:
    """Yield (cell, stamp) pairs of a page in record order."""
    for cell in page["cells"]:
        for stamp in cell["stamps"]:
            yield cell, stamp


def layout_summary(layout: PlacementRecord) -> dict[str, int]:
    """Count pages, cells and stamps in a layout."""
    first_page = layout["pages"][0] if layout["pages"] else None
    cells = len(first_page["cells"]) if first_page else 0
    stamps = sum(1 for _ in iter_stamps(first_page)) if first_page else 0
    return {
        "pages": len(layout["pages"]),
        "cells_per_page": cells,
        "stamps_per_page": stamps,
        "total_stamps": stamps * len(layout["pages"]),
    }


def check_rect_within_page(rect: Rect, page_width: float, page_height: float) -> bool:
    """Check if a rectangle is fully within page boundaries.

    Args:
        rect: Rectangle to check (top-left origin)
        page_width: Page width in the rectangle's unit
        page_height: Page height in the rectangle's unit

    Returns:
        True if the rectangle is fully within the page, False otherwise
    """
    return (
        rect["x"] >= -FIT_TOLERANCE
        and rect["y"] >= -FIT_TOLERANCE
        and rect["x"] + rect["width"] <= page_width + FIT_TOLERANCE
        and rect["y"] + rect["height"] <= page_height + FIT_TOLERANCE
    )


def rects_overlap(rect1: Rect, rect2: Rect) -> bool:
    """Check whether two rectangles share any area (touching edges do not count)."""
    x1_inter = max(rect1["x"], rect2["x"])
    y1_inter = max(rect1["y"], rect2["y"])
    x2_inter = min(rect1["x"] + rect1["width"], rect2["x"] + rect2["width"])
    y2_inter = min(rect1["y"] + rect1["height"], rect2["y"] + rect2["height"])
    return x2_inter > x1_inter and y2_inter > y1_inter


def write_layout_json(layout: PlacementRecord, output_path: str | Path) -> Path:
    """Save a layout as pretty-printed JSON.

    Args:
        layout: Placement record to save
        output_path: Destination path; parent directories are created

    Returns:
        Path of the written file
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(layout, indent=2))
    logger.info(f"Saved layout to {path}")
    return path
