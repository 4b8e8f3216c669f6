"""Shared fixtures: in-memory source images and default specs."""

import io
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from labelgrid.validation import GridSpec, LayoutSettings, PageSpec, SourceImage


def make_png(width: int, height: int, mode: str = "RGB") -> bytes:
    """Encode a solid test image with a white border as PNG."""
    color = (100, 150, 200, 255) if mode == "RGBA" else (100, 150, 200)
    img = Image.new(mode, (width, height), color=color)
    draw = ImageDraw.Draw(img)
    draw.rectangle([(0, 0), (width - 1, height - 1)], outline="white", width=max(1, width // 40))
    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """800x600 landscape PNG."""
    return make_png(800, 600)


@pytest.fixture
def source_image(png_bytes: bytes) -> SourceImage:
    return SourceImage(width_px=800, height_px=600, data=png_bytes)


@pytest.fixture
def tall_source_image() -> SourceImage:
    """200x400 portrait PNG with an alpha channel."""
    return SourceImage(width_px=200, height_px=400, data=make_png(200, 400, mode="RGBA"))


@pytest.fixture
def page_spec() -> PageSpec:
    return PageSpec(width_mm=95.0, height_mm=150.0)


@pytest.fixture
def grid_spec() -> GridSpec:
    return GridSpec(columns=9, rows=3, cell_width_mm=10.0, cell_height_mm=50.0)


@pytest.fixture
def settings() -> LayoutSettings:
    return LayoutSettings(
        left_margin_mm=2.5,
        top_margin_mm=0.0,
        col_gap_mm=0.0,
        row_gap_mm=0.0,
        repeat_per_cell=4,
        image_scale=0.85,
        img_pad_mm=0.5,
    )


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def png_file(tmp_path: Path, png_bytes: bytes) -> Path:
    path = tmp_path / "label.png"
    path.write_bytes(png_bytes)
    return path
