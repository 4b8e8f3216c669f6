"""Fit calculations for placing a source image inside a target box.

This module handles:
- Contain fit (whole image visible, aspect preserved, may leave empty space)
- Cover fit (target box filled exactly, source cropped as needed)
- Centered crop rectangles for cover fit in pixel space
"""

from enum import Enum


class FitMode(str, Enum):
    """Image fit policy."""

    CONTAIN = "contain"
    COVER = "cover"


def fit_contain(
    img_w: float,
    img_h: float,
    box_w: float,
    box_h: float,
    integral: bool = False,
) -> tuple[float, float]:
    """Scale an image to fit within a box without cropping.

    Args:
        img_w: Source width (pixels)
        img_h: Source height (pixels)
        box_w: Target box width (working unit)
        box_h: Target box height (working unit)
        integral: Round to whole units (pixel output)

    Returns:
        (width, height) of the drawn image, never larger than the box

    Note:
        A source with a non-positive dimension is treated as an opaque box
        and gets the box dimensions back unchanged.
    """
    if img_w <= 0 or img_h <= 0:
        return box_w, box_h

    scale = min(box_w / img_w, box_h / img_h)
    width = img_w * scale
    height = img_h * scale

    if integral:
        # Rounding can push one side a pixel over the box
        width = min(box_w, max(1, round(width)))
        height = min(box_h, max(1, round(height)))
    return width, height


def fit_box(
    img_w: float,
    img_h: float,
    box_w: float,
    box_h: float,
    mode: FitMode,
    integral: bool = False,
) -> tuple[float, float]:
    """Resolve the drawn box size for a fit mode.

    Cover always returns the target box itself; the renderer crops the source.
    """
    if mode == FitMode.COVER:
        return box_w, box_h
    if mode == FitMode.CONTAIN:
        return fit_contain(img_w, img_h, box_w, box_h, integral=integral)
    raise ValueError(f"Unsupported fit mode: {mode}")


def cover_scaled_size(
    img_w: float,
    img_h: float,
    box_w: float,
    box_h: float,
) -> tuple[float, float]:
    """Size of the source scaled to cover the box completely (before clipping)."""
    if img_w <= 0 or img_h <= 0:
        return box_w, box_h
    scale = max(box_w / img_w, box_h / img_h)  # Use larger to cover
    return img_w * scale, img_h * scale


def cover_crop_box(
    img_w: int,
    img_h: int,
    box_w: float,
    box_h: float,
) -> tuple[int, int, int, int]:
    """Centered crop of the source matching the box aspect ratio.

    Args:
        img_w: Source width in pixels
        img_h: Source height in pixels
        box_w: Target width
        box_h: Target height

    Returns:
        Crop rectangle (left, top, right, bottom) in source pixel coordinates
    """
    scale_factor = max(box_w / img_w, box_h / img_h)

    # Crop rect is in source image coordinates (before scaling)
    crop_width = min(img_w, max(1, round(box_w / scale_factor)))
    crop_height = min(img_h, max(1, round(box_h / scale_factor)))
    crop_x = (img_w - crop_width) // 2
    crop_y = (img_h - crop_height) // 2

    return crop_x, crop_y, crop_x + crop_width, crop_y + crop_height
