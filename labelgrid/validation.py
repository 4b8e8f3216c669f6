"""Schema validation using Pydantic models.

This module defines:
- Pydantic models for page, grid, per-run layout and preview settings
- The read-only source image view handed to layout and renderers
- Boundary parsers that turn validation errors into InvalidSpec
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from labelgrid.config import (
    DEFAULT_GRID_SPEC,
    DEFAULT_LAYOUT_SETTINGS,
    DEFAULT_PAGE_SPEC,
    MAX_PREVIEW_DPI,
    MIN_PREVIEW_DPI,
    PREVIEW_DPI,
)
from labelgrid.errors import InvalidSpec
from labelgrid.fitting import FitMode

logger = logging.getLogger(__name__)


class PageSpec(BaseModel):
    """Physical page size in millimeters."""

    model_config = ConfigDict(frozen=True)

    width_mm: float = Field(default=DEFAULT_PAGE_SPEC["width_mm"], gt=0, description="Page width (mm)")
    height_mm: float = Field(default=DEFAULT_PAGE_SPEC["height_mm"], gt=0, description="Page height (mm)")


class GridSpec(BaseModel):
    """Grid of identical cells laid out on the page."""

    model_config = ConfigDict(frozen=True)

    columns: int = Field(default=DEFAULT_GRID_SPEC["columns"], ge=1, description="Column count")
    rows: int = Field(default=DEFAULT_GRID_SPEC["rows"], ge=1, description="Row count")
    cell_width_mm: float = Field(default=DEFAULT_GRID_SPEC["cell_width_mm"], gt=0, description="Cell width (mm)")
    cell_height_mm: float = Field(default=DEFAULT_GRID_SPEC["cell_height_mm"], gt=0, description="Cell height (mm)")


_defaults = DEFAULT_LAYOUT_SETTINGS


class LayoutSettings(BaseModel):
    """Configuration for one layout run.

    Stroke widths are in PDF points; every other length is in millimeters.
    """

    model_config = ConfigDict(frozen=True)

    page_count: int = Field(default=_defaults["page_count"], ge=1, description="Identical pages to emit")
    left_margin_mm: float = Field(default=_defaults["left_margin_mm"], ge=0)
    top_margin_mm: float = Field(default=_defaults["top_margin_mm"], ge=0)
    col_gap_mm: float = Field(default=_defaults["col_gap_mm"], ge=0)
    row_gap_mm: float = Field(default=_defaults["row_gap_mm"], ge=0)
    repeat_per_cell: int = Field(default=_defaults["repeat_per_cell"], ge=1, description="Stamps per cell")
    image_scale: float = Field(default=_defaults["image_scale"], gt=0, description="Share of the per-stamp box")
    img_pad_mm: float = Field(default=_defaults["img_pad_mm"], ge=0, description="Inward padding of the target box")
    image_fit_mode: FitMode = Field(default=FitMode(_defaults["image_fit_mode"]))

    draw_cell_boxes: bool = _defaults["draw_cell_boxes"]
    stroke_width_pt: float = Field(default=_defaults["stroke_width_pt"], gt=0)
    draw_inner_image_box: bool = _defaults["draw_inner_image_box"]
    inner_box_stroke_pt: float = Field(default=_defaults["inner_box_stroke_pt"], gt=0)
    draw_cut_guide_line: bool = _defaults["draw_cut_guide_line"]
    cut_line_stroke_pt: float = Field(default=_defaults["cut_line_stroke_pt"], gt=0)


class PreviewSettings(BaseModel):
    """Raster proof options."""

    model_config = ConfigDict(frozen=True)

    dpi: int = Field(default=PREVIEW_DPI, ge=MIN_PREVIEW_DPI, le=MAX_PREVIEW_DPI)
    full_page: bool = Field(default=False, description="Whole page canvas instead of grid crop")


class SourceImage(BaseModel):
    """Read-only view of a source image supplied by the registry."""

    model_config = ConfigDict(frozen=True)

    width_px: int = Field(gt=0, description="Intrinsic width in pixels")
    height_px: int = Field(gt=0, description="Intrinsic height in pixels")
    data: bytes = Field(repr=False, description="Encoded image bytes")

    @field_validator("data")
    @classmethod
    def check_not_empty(cls, v: bytes) -> bytes:
        """Reject empty byte blobs."""
        if not v:
            raise ValueError("Source image bytes are empty")
        return v


def _parse(model: type[BaseModel], data: dict[str, Any], label: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidSpec(f"Invalid {label}: {e}") from e


def parse_page_spec(data: dict[str, Any]) -> PageSpec:
    """Validate raw page values, raising InvalidSpec on bad input."""
    return _parse(PageSpec, data, "page spec")


def parse_grid_spec(data: dict[str, Any]) -> GridSpec:
    """Validate raw grid values, raising InvalidSpec on bad input."""
    return _parse(GridSpec, data, "grid spec")


def parse_layout_settings(data: dict[str, Any]) -> LayoutSettings:
    """Validate raw layout settings, raising InvalidSpec on bad input.

    Args:
        data: Mapping of LayoutSettings field names to values; missing
            fields take their defaults

    Returns:
        Frozen LayoutSettings

    Raises:
        InvalidSpec: If any value is out of range or the fit mode is unknown
    """
    return _parse(LayoutSettings, data, "layout settings")


def load_settings_file(path: str | Path) -> tuple[PageSpec, GridSpec, LayoutSettings]:
    """Load page, grid and layout settings from a JSON file.

    Args:
        path: JSON file with optional "page", "grid" and "settings" objects

    Returns:
        Tuple of (PageSpec, GridSpec, LayoutSettings)

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidSpec: If the JSON is malformed or any section fails validation

    Note:
        Example file content:
        {
            "page": {"width_mm": 95, "height_mm": 150},
            "grid": {"columns": 9, "rows": 3, "cell_width_mm": 10, "cell_height_mm": 50},
            "settings": {"repeat_per_cell": 4, "image_fit_mode": "cover"}
        }
    """
    settings_path = Path(path)
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    try:
        data = json.loads(settings_path.read_text())
    except json.JSONDecodeError as e:
        raise InvalidSpec(f"Invalid settings file {settings_path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidSpec(f"Settings file {settings_path} must contain a JSON object")

    logger.info(f"Loaded settings from: {settings_path}")
    return (
        parse_page_spec(data.get("page", {})),
        parse_grid_spec(data.get("grid", {})),
        parse_layout_settings(data.get("settings", {})),
    )
