"""PDF rendering from placement records.

This module handles:
- Drawing cell borders, debug boxes, cut guides and image stamps with ReportLab
- Drawing the source image once into a form and reusing it for every stamp on every page
- Clipping cover-fit stamps to their target box
- Rasterizing rendered pages to PNG for print checks
"""

import io
import logging
from pathlib import Path

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from labelgrid.coordinates import WorkingUnit, rasterize_pdf, top_left_to_bottom_left
from labelgrid.errors import RenderEncodingFailure
from labelgrid.fitting import FitMode, cover_scaled_size
from labelgrid.imaging import decode_source
from labelgrid.layout import CellRecord, PlacementRecord, Rect, StampRecord, compute_layout
from labelgrid.validation import GridSpec, LayoutSettings, PageSpec, SourceImage

logger = logging.getLogger(__name__)

STAMP_FORM = "stamp"


def _stroke_rect(c: canvas.Canvas, rect: Rect, stroke: float, page_height: float) -> None:
    c.setLineWidth(stroke)
    c.rect(
        rect["x"],
        top_left_to_bottom_left(rect["y"], rect["height"], page_height),
        rect["width"],
        rect["height"],
        stroke=1,
        fill=0,
    )


def _define_stamp_form(c: canvas.Canvas, image: ImageReader) -> None:
    """Draw the image once into a unit-square form XObject.

    Each stamp then places the form with translate/scale, so the image
    data is read and hashed a single time per document.
    """
    c.beginForm(STAMP_FORM, 0, 0, 1, 1)
    c.drawImage(image, 0, 0, width=1, height=1, preserveAspectRatio=False)
    c.endForm()


def _place_stamp_form(c: canvas.Canvas, x: float, y: float, width: float, height: float) -> None:
    c.saveState()
    c.translate(x, y)
    c.scale(width, height)
    c.doForm(STAMP_FORM)
    c.restoreState()


def _draw_stamp_image(
    c: canvas.Canvas,
    image_size: tuple[int, int],
    stamp: StampRecord,
    fit_mode: FitMode,
    page_height: float,
) -> None:
    if fit_mode == FitMode.COVER:
        # Scale to cover the target, then clip away the overflow
        target = stamp["target_box"]
        width, height = cover_scaled_size(*image_size, target["width"], target["height"])
        target_y = top_left_to_bottom_left(target["y"], target["height"], page_height)

        c.saveState()
        path = c.beginPath()
        path.rect(target["x"], target_y, target["width"], target["height"])
        c.clipPath(path, stroke=0, fill=0)
        _place_stamp_form(
            c,
            target["x"] + (target["width"] - width) / 2.0,
            target_y + (target["height"] - height) / 2.0,
            width,
            height,
        )
        c.restoreState()
        return

    # Fit already resolved by the layout
    box = stamp["draw_box"]
    _place_stamp_form(
        c,
        box["x"],
        top_left_to_bottom_left(box["y"], box["height"], page_height),
        box["width"],
        box["height"],
    )


def _draw_cell(
    c: canvas.Canvas,
    image_size: tuple[int, int],
    cell: CellRecord,
    fit_mode: FitMode,
    page_height: float,
) -> None:
    rect = cell["rect"]
    if cell["border_stroke"] is not None:
        _stroke_rect(c, rect, cell["border_stroke"], page_height)

    for stamp in cell["stamps"]:
        if stamp["debug_box"] is not None and stamp["debug_stroke"] is not None:
            _stroke_rect(c, stamp["debug_box"], stamp["debug_stroke"], page_height)

        if stamp["cut_line_y"] is not None and stamp["cut_stroke"] is not None:
            line_y = page_height - stamp["cut_line_y"]
            c.setLineWidth(stamp["cut_stroke"])
            c.line(rect["x"], line_y, rect["x"] + rect["width"], line_y)

        _draw_stamp_image(c, image_size, stamp, fit_mode, page_height)


def render_pdf(layout: PlacementRecord, image_bytes: bytes) -> bytes:
    """Draw a placement record into a paginated PDF.

    Args:
        layout: Placement record computed in points
        image_bytes: Encoded source image (PNG or JPEG)

    Returns:
        Encoded PDF bytes, one page per PageRecord

    Raises:
        ValueError: If the layout was not computed in points
        RenderEncodingFailure: If the image cannot be decoded or the PDF not written

    Note:
        - PDF uses ReportLab's bottom-left origin (flipped from top-left records)
        - The source is decoded once with the same decoder as the JPEG proof
        - The image is drawn once into a form XObject; every stamp on every
          page references that form
    """
    if layout["unit"] != "pt":
        raise ValueError(f"PDF rendering needs a layout in points, got '{layout['unit']}'")

    source = decode_source(image_bytes)
    image = ImageReader(source)
    image_size = source.size

    fit_mode = FitMode(layout["fit_mode"])
    page_width = layout["page_width"]
    page_height = layout["page_height"]

    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=(page_width, page_height))

    try:
        _define_stamp_form(c, image)
        c.setStrokeColorRGB(0, 0, 0)
        for page in layout["pages"]:
            for cell in page["cells"]:
                _draw_cell(c, image_size, cell, fit_mode, page_height)
            c.showPage()
            # showPage resets graphics state
            c.setStrokeColorRGB(0, 0, 0)
        c.save()
    except Exception as e:
        raise RenderEncodingFailure(f"PDF encoding failed: {e}") from e

    logger.info(f"Rendered PDF: {len(layout['pages'])} page(s), {page_width:.1f}x{page_height:.1f}pt")
    return buffer.getvalue()


def generate_pdf_bytes(
    source: SourceImage,
    page: PageSpec,
    grid: GridSpec,
    settings: LayoutSettings,
) -> bytes:
    """Compute a layout in points and render it to PDF.

    Args:
        source: Source image (dimensions and bytes)
        page: Page size
        grid: Grid spec
        settings: Layout settings; settings.page_count pages are emitted

    Returns:
        Encoded PDF bytes

    Raises:
        InvalidSpec: If any spec value is malformed
        GridOverflow: If the grid does not fit on the page
        RenderEncodingFailure: If encoding fails
    """
    layout = compute_layout(
        page,
        grid,
        settings,
        (source.width_px, source.height_px),
        WorkingUnit.points(),
    )
    return render_pdf(layout, source.data)


def write_pdf(pdf_bytes: bytes, output_path: str | Path) -> Path:
    """Write PDF bytes to disk, creating parent directories."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(pdf_bytes)
    logger.info(f"Saved PDF to {path}")
    return path


def write_page_images(pdf_bytes: bytes, output_dir: str | Path, dpi: int) -> list[Path]:
    """Rasterize each PDF page and save it as PNG for a quick print check.

    Args:
        pdf_bytes: Encoded PDF document
        output_dir: Directory for page_001.png, page_002.png, ...
        dpi: Rasterization resolution

    Returns:
        Paths of the written images, in page order

    Raises:
        RenderEncodingFailure: If PyMuPDF cannot rasterize the PDF
    """
    try:
        pages = rasterize_pdf(pdf_bytes, dpi)
    except RuntimeError as e:
        raise RenderEncodingFailure(str(e)) from e

    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)

    paths: list[Path] = []
    for page_num, img in enumerate(pages, start=1):
        path = directory / f"page_{page_num:03d}.png"
        img.save(path, "PNG")
        paths.append(path)
        logger.debug(f"Saved page {page_num} image: {path}")

    logger.info(f"Rasterized {len(paths)} page(s) at {dpi} DPI to {directory}")
    return paths
