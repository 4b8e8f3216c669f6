"""Unit conversion and coordinate system utilities.

This module handles:
- Millimeter conversions (mm → PDF points, mm → pixels at a DPI)
- The working unit a layout is computed in (points or pixels)
- Coordinate system transforms (top-left layout → ReportLab bottom-left)
- PDF rasterization using PyMuPDF
"""

from dataclasses import dataclass

import fitz  # type: ignore[import-untyped]  # PyMuPDF lacks type stubs
from PIL import Image

from labelgrid.config import MM_PER_INCH, POINTS_PER_INCH


def mm_to_points(mm: float) -> float:
    """Convert millimeters to PDF points.

    Args:
        mm: Length in millimeters

    Returns:
        Length in points (1pt = 1/72 inch)
    """
    return (mm / MM_PER_INCH) * POINTS_PER_INCH


def mm_to_px(mm: float, dpi: int) -> int:
    """Convert millimeters to whole pixels.

    Args:
        mm: Length in millimeters
        dpi: Dots per inch (resolution)

    Returns:
        Length in pixels, never less than 1

    Note:
        The floor of 1 keeps primitives from collapsing to zero size.
    """
    return round(max(1.0, (mm / MM_PER_INCH) * dpi))


def points_to_px(pt: float, dpi: int) -> int:
    """Convert a point size (stroke width) to whole pixels, never less than 1."""
    return max(1, round((pt / POINTS_PER_INCH) * dpi))


@dataclass(frozen=True)
class WorkingUnit:
    """Length unit a layout is computed in.

    Attributes:
        name: "pt" for PDF points, "px" for device pixels
        dpi: Resolution for "px" units, None for points
    """

    name: str
    dpi: int | None = None

    @classmethod
    def points(cls) -> "WorkingUnit":
        return cls("pt")

    @classmethod
    def pixels(cls, dpi: int) -> "WorkingUnit":
        if dpi <= 0:
            raise ValueError(f"DPI must be positive, got {dpi}")
        return cls("px", dpi)

    @property
    def integral(self) -> bool:
        """Whether coordinates in this unit are whole numbers."""
        return self.name == "px"

    def from_mm(self, mm: float) -> float:
        """Exact (unrounded) conversion from millimeters."""
        if self.dpi is None:
            return mm_to_points(mm)
        return (mm / MM_PER_INCH) * self.dpi

    def stroke(self, pt: float) -> float:
        """Convert a stroke width given in points."""
        if self.dpi is None:
            return pt
        return points_to_px(pt, self.dpi)

    def snap(self, value: float) -> float:
        """Snap a coordinate to the unit's resolution."""
        if self.integral:
            return round(value)
        return value


def top_left_to_bottom_left(y: float, height: float, page_height: float) -> float:
    """Flip a top-origin rectangle into a bottom-left origin system.

    Args:
        y: Distance of the rectangle's top edge from the page top
        height: Rectangle height
        page_height: Page height in the same unit

    Returns:
        Y of the rectangle's bottom edge measured from the page bottom

    Note:
        ReportLab uses bottom-left origin, layout records use top-left.
    """
    return page_height - y - height


def rasterize_pdf(pdf_bytes: bytes, dpi: int) -> list[Image.Image]:
    """Rasterize every page of an in-memory PDF.

    Args:
        pdf_bytes: Encoded PDF document
        dpi: Resolution for rasterization

    Returns:
        One RGB Pillow image per page

    Raises:
        RuntimeError: If the PDF cannot be opened or a page fails to render
    """
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise RuntimeError(f"Failed to open PDF: {e}") from e

    # PyMuPDF default is 72 DPI, so zoom = target_dpi / 72
    zoom = dpi / POINTS_PER_INCH
    mat = fitz.Matrix(zoom, zoom)

    pages: list[Image.Image] = []
    try:
        for page_num in range(len(doc)):
            try:
                pix = doc[page_num].get_pixmap(matrix=mat, alpha=False)
            except Exception as e:
                raise RuntimeError(f"Failed to rasterize page {page_num + 1}: {e}") from e
            pages.append(Image.frombytes("RGB", (pix.width, pix.height), pix.samples))
    finally:
        doc.close()

    return pages
