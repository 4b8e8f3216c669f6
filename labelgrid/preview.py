"""Raster proof rendering from placement records.

This module handles:
- Compositing a single page onto a white Pillow canvas at a caller DPI
- Full-page or cropped-to-grid canvases
- Cover (center crop) and contain (letterboxed on white) stamp tiles
- JPEG encoding of the proof
"""

import io
import logging

from PIL import Image, ImageDraw

from labelgrid.config import JPEG_QUALITY, PREVIEW_MARGIN_MM
from labelgrid.coordinates import WorkingUnit, mm_to_px
from labelgrid.errors import RenderEncodingFailure
from labelgrid.fitting import FitMode, cover_crop_box
from labelgrid.imaging import decode_source
from labelgrid.layout import PlacementRecord, Rect, StampRecord, compute_layout, iter_stamps
from labelgrid.validation import GridSpec, LayoutSettings, PageSpec, PreviewSettings, SourceImage

logger = logging.getLogger(__name__)


def build_stamp_tile(source: Image.Image, stamp: StampRecord, fit_mode: FitMode) -> Image.Image:
    """Build the target-box-sized tile for one stamp.

    Args:
        source: Decoded RGB source image
        stamp: Stamp record in pixels
        fit_mode: Cover or contain

    Returns:
        RGB image exactly the size of the stamp's target box

    Note:
        - "cover": center crop to the target aspect ratio, then resize
        - "contain": resize to the fitted box and paste it centered on white
    """
    target = stamp["target_box"]
    target_size = (int(target["width"]), int(target["height"]))

    if fit_mode == FitMode.COVER:
        crop_rect = cover_crop_box(source.width, source.height, *target_size)
        return source.crop(crop_rect).resize(target_size, Image.Resampling.LANCZOS)

    box = stamp["draw_box"]
    fitted = source.resize((int(box["width"]), int(box["height"])), Image.Resampling.LANCZOS)
    tile = Image.new("RGB", target_size, (255, 255, 255))
    tile.paste(fitted, (int(box["x"] - target["x"]), int(box["y"] - target["y"])))
    return tile


def _outline(draw: ImageDraw.ImageDraw, rect: Rect, stroke: float, offset: tuple[int, int]) -> None:
    left = int(rect["x"]) + offset[0]
    top = int(rect["y"]) + offset[1]
    right = left + int(rect["width"]) - 1
    bottom = top + int(rect["height"]) - 1
    draw.rectangle([(left, top), (right, bottom)], outline=(0, 0, 0), width=int(stroke))


def render_preview(
    layout: PlacementRecord,
    image_bytes: bytes,
    full_page: bool = False,
    quality: int = JPEG_QUALITY,
) -> bytes:
    """Composite a one-page placement record into a JPEG proof.

    Args:
        layout: Placement record computed in pixels, exactly one page
        image_bytes: Encoded source image
        full_page: Canvas covers the whole page instead of the grid plus margin
        quality: JPEG quality

    Returns:
        Encoded JPEG bytes

    Raises:
        ValueError: If the layout is not in pixels or does not hold exactly one page
        RenderEncodingFailure: If decoding or encoding fails

    Note:
        Compositing order is cell borders, inner debug boxes, cut guide
        lines, then image stamps, so stamps are never covered by their
        own decorations.
    """
    if layout["unit"] != "px" or layout["dpi"] is None:
        raise ValueError(f"Preview rendering needs a layout in pixels, got '{layout['unit']}'")
    if len(layout["pages"]) != 1:
        raise ValueError(f"Preview renders exactly one page, layout has {len(layout['pages'])}")

    source = decode_source(image_bytes)
    fit_mode = FitMode(layout["fit_mode"])
    page = layout["pages"][0]

    if full_page:
        size = (int(layout["page_width"]), int(layout["page_height"]))
        offset = (0, 0)
    else:
        # Tight crop around the grid with a white margin on every side
        margin = mm_to_px(PREVIEW_MARGIN_MM, layout["dpi"])
        bounds = layout["grid_bounds"]
        size = (int(bounds["width"]) + 2 * margin, int(bounds["height"]) + 2 * margin)
        offset = (margin - int(bounds["x"]), margin - int(bounds["y"]))

    canvas = Image.new("RGB", size, (255, 255, 255))
    draw = ImageDraw.Draw(canvas)

    for cell in page["cells"]:
        if cell["border_stroke"] is not None:
            _outline(draw, cell["rect"], cell["border_stroke"], offset)

    for _, stamp in iter_stamps(page):
        if stamp["debug_box"] is not None and stamp["debug_stroke"] is not None:
            _outline(draw, stamp["debug_box"], stamp["debug_stroke"], offset)

    for cell, stamp in iter_stamps(page):
        if stamp["cut_line_y"] is not None and stamp["cut_stroke"] is not None:
            rect = cell["rect"]
            left = int(rect["x"]) + offset[0]
            line_y = int(stamp["cut_line_y"]) + offset[1]
            draw.line(
                [(left, line_y), (left + int(rect["width"]) - 1, line_y)],
                fill=(0, 0, 0),
                width=int(stamp["cut_stroke"]),
            )

    # Every stamp shares one geometry, so tiles are built once per size
    tiles: dict[tuple[float, float, float, float], Image.Image] = {}
    for _, stamp in iter_stamps(page):
        target = stamp["target_box"]
        box = stamp["draw_box"]
        key = (target["width"], target["height"], box["width"], box["height"])
        if key not in tiles:
            tiles[key] = build_stamp_tile(source, stamp, fit_mode)
        canvas.paste(tiles[key], (int(target["x"]) + offset[0], int(target["y"]) + offset[1]))

    buffer = io.BytesIO()
    try:
        canvas.save(buffer, "JPEG", quality=quality)
    except OSError as e:
        raise RenderEncodingFailure(f"JPEG encoding failed: {e}") from e

    logger.info(f"Rendered preview: {size[0]}x{size[1]}px at {layout['dpi']} DPI")
    return buffer.getvalue()


def render_preview_jpg(
    source: SourceImage,
    page: PageSpec,
    grid: GridSpec,
    settings: LayoutSettings,
    preview: PreviewSettings,
) -> bytes:
    """Compute a one-page layout in pixels and render it as a JPEG proof.

    Args:
        source: Source image (dimensions and bytes)
        page: Page size
        grid: Grid spec
        settings: Layout settings; page_count is ignored (always one page)
        preview: DPI and canvas options

    Returns:
        Encoded JPEG bytes

    Raises:
        InvalidSpec: If any spec value is malformed
        GridOverflow: If the grid does not fit on the page
        RenderEncodingFailure: If decoding or encoding fails
    """
    layout = compute_layout(
        page,
        grid,
        settings,
        (source.width_px, source.height_px),
        WorkingUnit.pixels(preview.dpi),
        page_count=1,
    )
    return render_preview(layout, source.data, full_page=preview.full_page)
