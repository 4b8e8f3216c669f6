"""Centralized configuration constants for labels-grid."""

# Unit constants
MM_PER_INCH = 25.4
POINTS_PER_INCH = 72.0

# Default physical page and grid (configuration only, the engine accepts any size)
DEFAULT_PAGE_SPEC = {
    "width_mm": 95.0,
    "height_mm": 150.0,
}

DEFAULT_GRID_SPEC = {
    "columns": 9,
    "rows": 3,
    "cell_width_mm": 10.0,
    "cell_height_mm": 50.0,
}

# Default per-run layout settings
DEFAULT_LAYOUT_SETTINGS = {
    "page_count": 1,
    "left_margin_mm": 2.5,
    "top_margin_mm": 0.0,
    "col_gap_mm": 0.0,
    "row_gap_mm": 0.0,
    "repeat_per_cell": 4,
    "image_scale": 0.85,
    "img_pad_mm": 0.5,
    "image_fit_mode": "contain",
    "draw_cell_boxes": True,
    "stroke_width_pt": 0.7,
    "draw_inner_image_box": False,
    "inner_box_stroke_pt": 0.5,
    "draw_cut_guide_line": False,
    "cut_line_stroke_pt": 0.4,
}

# Layout geometry
MIN_EXTENT = 1.0  # Smallest usable height / box side, in working units
STAMP_PAD_MIN_MM = 2.0  # Minimum vertical inset of first/last stamp
STAMP_PAD_FRACTION = 0.08  # Inset as fraction of cell height
FIT_TOLERANCE = 0.001  # Grid-vs-page slack, in working units

# Preview (raster proof)
PREVIEW_DPI = 200
MIN_PREVIEW_DPI = 50
MAX_PREVIEW_DPI = 600
PREVIEW_MARGIN_MM = 5.0  # White margin around the grid on cropped previews
JPEG_QUALITY = 92

# Registry / storage
ITEMS_DIR = "data/items"
REGISTRY_FILE = "data/items_registry.json"
MAX_ITEM_NAME_LENGTH = 80
MAX_FILENAME_LENGTH = 60
MIN_IMAGE_BYTES = 8

# Placement record
SCHEMA_VERSION = "1.0.0"
COORDINATE_SYSTEM = "top_left"  # Origin: page top-left corner, units: working unit
