"""Typed failures raised by layout, rendering and the item registry.

Every failure is reported synchronously to the immediate caller. None of them
are retried: layout is deterministic, so repeating a call with the same input
fails the same way.
"""


class LayoutError(Exception):
    """Base class for all labels-grid failures."""


class InvalidSpec(LayoutError, ValueError):
    """Page, grid or settings values are malformed (non-positive sizes, bad counts, unknown fit mode)."""


class GridOverflow(LayoutError, ValueError):
    """Requested grid plus margins and gaps does not fit on the page.

    Attributes:
        axis: "width" or "height"
        required: Margin + grid extent along the axis (working unit)
        available: Page extent along the axis (working unit)
    """

    def __init__(self, axis: str, required: float, available: float) -> None:
        self.axis = axis
        self.required = required
        self.available = available
        if axis == "width":
            hint = "reduce left margin or column gap"
        else:
            hint = "reduce top margin or row gap"
        super().__init__(
            f"Grid {axis} exceeds page: {required:.3f} > {available:.3f} ({hint})"
        )


class SourceImageUnavailable(LayoutError, FileNotFoundError):
    """The source image reference did not resolve to readable image bytes."""


class RenderEncodingFailure(LayoutError, RuntimeError):
    """The PDF or image encoder rejected the input."""
