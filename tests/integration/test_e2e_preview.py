"""Integration tests for JPEG proof rendering."""

import io

import pytest
from PIL import Image

from labelgrid.config import PREVIEW_MARGIN_MM
from labelgrid.coordinates import WorkingUnit, mm_to_px, rasterize_pdf
from labelgrid.errors import GridOverflow, RenderEncodingFailure
from labelgrid.fitting import FitMode
from labelgrid.imaging import decode_source
from labelgrid.layout import compute_layout, iter_stamps
from labelgrid.preview import build_stamp_tile, render_preview, render_preview_jpg
from labelgrid.rendering import generate_pdf_bytes
from labelgrid.validation import GridSpec, LayoutSettings, PageSpec, PreviewSettings, SourceImage

SOURCE_COLOR = (100, 150, 200)


def _close_to(pixel: tuple[int, ...], color: tuple[int, int, int], tolerance: int = 30) -> bool:
    return all(abs(p - c) <= tolerance for p, c in zip(pixel, color))


def _open_jpeg(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    assert img.format == "JPEG"
    return img.convert("RGB")


class TestPreviewCanvas:
    """Canvas size and placement of the proof."""

    def test_cropped_canvas_is_grid_plus_margin(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        dpi = 100
        jpeg = render_preview_jpg(source_image, page_spec, grid_spec, settings, PreviewSettings(dpi=dpi))
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(dpi))

        margin = mm_to_px(PREVIEW_MARGIN_MM, dpi)
        bounds = layout["grid_bounds"]
        assert _open_jpeg(jpeg).size == (bounds["width"] + 2 * margin, bounds["height"] + 2 * margin)

    def test_full_page_canvas(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        jpeg = render_preview_jpg(
            source_image, page_spec, grid_spec, settings, PreviewSettings(dpi=100, full_page=True)
        )
        assert _open_jpeg(jpeg).size == (mm_to_px(95.0, 100), mm_to_px(150.0, 100))

    def test_page_count_ignored(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        """Proofs always show a single page."""
        multi_page = settings.model_copy(update={"page_count": 5})
        jpeg = render_preview_jpg(source_image, page_spec, grid_spec, multi_page, PreviewSettings(dpi=60))
        assert _open_jpeg(jpeg).width > 0

    def test_stamps_and_background(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        """Stamp centers show the source, the margin stays white."""
        dpi = 200
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(dpi), page_count=1)
        img = _open_jpeg(render_preview(layout, source_image.data))

        margin = mm_to_px(PREVIEW_MARGIN_MM, dpi)
        offset_x = margin - layout["grid_bounds"]["x"]
        offset_y = margin - layout["grid_bounds"]["y"]

        assert _close_to(img.getpixel((2, 2)), (255, 255, 255), tolerance=10)
        for _, stamp in iter_stamps(layout["pages"][0]):
            center = (stamp["center_x"] + offset_x, stamp["center_y"] + offset_y)
            assert _close_to(img.getpixel(center), SOURCE_COLOR), f"Stamp missing at {center}"

    def test_cell_border_drawn(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(200), page_count=1)
        img = _open_jpeg(render_preview(layout, source_image.data, full_page=True))

        rect = layout["pages"][0]["cells"][0]["rect"]
        assert sum(img.getpixel((rect["x"], rect["y"] + rect["height"] // 2))) < 300

    def test_cut_line_outside_stamp(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec
    ) -> None:
        """The cut guide spans the cell width, visible beside the stamp."""
        settings = LayoutSettings(draw_cell_boxes=False, draw_cut_guide_line=True)
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(200), page_count=1)
        img = _open_jpeg(render_preview(layout, source_image.data, full_page=True))

        cell = layout["pages"][0]["cells"][0]
        stamp = cell["stamps"][1]
        assert stamp["target_box"]["x"] > cell["rect"]["x"] + 1
        assert sum(img.getpixel((cell["rect"]["x"] + 1, stamp["cut_line_y"]))) < 300

    def test_contain_letterbox_is_white(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        """Landscape source in a taller box leaves white bands above and below."""
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(200), page_count=1)
        stamp = layout["pages"][0]["cells"][0]["stamps"][0]
        assert stamp["draw_box"]["y"] - stamp["target_box"]["y"] >= 6

        img = _open_jpeg(render_preview(layout, source_image.data, full_page=True))
        band = (stamp["center_x"], stamp["target_box"]["y"] + 2)
        assert _close_to(img.getpixel(band), (255, 255, 255), tolerance=15)


class TestStampTiles:
    """Tile construction for cover and contain."""

    def _first_stamp(self, fit_mode: str, page_spec: PageSpec, grid_spec: GridSpec):
        settings = LayoutSettings(image_fit_mode=fit_mode)
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(200))
        return layout["pages"][0]["cells"][0]["stamps"][0]

    @pytest.mark.parametrize("fit_mode", ["cover", "contain"])
    def test_tile_matches_target(
        self, fit_mode: str, png_bytes: bytes, page_spec: PageSpec, grid_spec: GridSpec
    ) -> None:
        stamp = self._first_stamp(fit_mode, page_spec, grid_spec)
        tile = build_stamp_tile(decode_source(png_bytes), stamp, FitMode(fit_mode))
        assert tile.size == (stamp["target_box"]["width"], stamp["target_box"]["height"])
        assert tile.mode == "RGB"

    def test_cover_tile_has_no_letterbox(self, png_bytes: bytes, page_spec: PageSpec, grid_spec: GridSpec) -> None:
        """Cover fills the tile; the middle column is source color top to bottom."""
        stamp = self._first_stamp("cover", page_spec, grid_spec)
        tile = build_stamp_tile(decode_source(png_bytes), stamp, FitMode.COVER)
        mid_x = tile.width // 2
        assert _close_to(tile.getpixel((mid_x, tile.height // 4)), SOURCE_COLOR)
        assert _close_to(tile.getpixel((mid_x, 3 * tile.height // 4)), SOURCE_COLOR)


class TestDecodeSource:
    """Source decoding for raster output."""

    def test_transparency_flattened_on_white(self) -> None:
        buffer = io.BytesIO()
        Image.new("RGBA", (10, 10), (0, 0, 0, 0)).save(buffer, "PNG")

        img = decode_source(buffer.getvalue())
        assert img.mode == "RGB"
        assert img.getpixel((5, 5)) == (255, 255, 255)

    def test_opaque_rgba_kept(self, tall_source_image: SourceImage) -> None:
        img = decode_source(tall_source_image.data)
        assert img.size == (200, 400)
        assert img.getpixel((100, 200)) == SOURCE_COLOR

    def test_16bit_grayscale_scaled_to_8bit(self) -> None:
        """Wide grayscale is scaled down, not clipped to white."""
        buffer = io.BytesIO()
        Image.new("I;16", (10, 10), 30000).save(buffer, "PNG")

        img = decode_source(buffer.getvalue())
        assert img.mode == "RGB"
        assert img.getpixel((5, 5)) == (117, 117, 117)

    def test_16bit_grayscale_preview_stamp(self, page_spec: PageSpec, grid_spec: GridSpec) -> None:
        buffer = io.BytesIO()
        Image.new("I;16", (60, 60), 30000).save(buffer, "PNG")
        source = SourceImage(width_px=60, height_px=60, data=buffer.getvalue())

        layout = compute_layout(page_spec, grid_spec, LayoutSettings(), (60, 60), WorkingUnit.pixels(100), page_count=1)
        img = _open_jpeg(render_preview(layout, source.data, full_page=True))
        stamp = layout["pages"][0]["cells"][0]["stamps"][0]
        assert _close_to(img.getpixel((stamp["center_x"], stamp["center_y"])), (117, 117, 117), tolerance=10)

    def test_garbage_raises(self) -> None:
        with pytest.raises(RenderEncodingFailure, match="Cannot decode source image"):
            decode_source(b"not an image at all")


class TestPreviewErrors:
    """Failure paths of the raster adapter."""

    def test_overflow_produces_no_preview(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec
    ) -> None:
        with pytest.raises(GridOverflow, match="height"):
            render_preview_jpg(
                source_image, page_spec, grid_spec, LayoutSettings(top_margin_mm=1.0), PreviewSettings()
            )

    def test_multi_page_layout_rejected(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(100), page_count=2)
        with pytest.raises(ValueError, match="exactly one page"):
            render_preview(layout, source_image.data)

    def test_point_layout_rejected(
        self, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec, settings: LayoutSettings
    ) -> None:
        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.points())
        with pytest.raises(ValueError, match="layout in pixels"):
            render_preview(layout, source_image.data)


class TestAdapterAgreement:
    """PDF and JPEG outputs place stamps at the same spots."""

    @pytest.mark.parametrize("fit_mode", ["contain", "cover"])
    def test_rasterized_pdf_matches_preview(
        self, fit_mode: str, source_image: SourceImage, page_spec: PageSpec, grid_spec: GridSpec
    ) -> None:
        dpi = 150
        settings = LayoutSettings(image_fit_mode=fit_mode, draw_cell_boxes=False)

        pdf_page = rasterize_pdf(generate_pdf_bytes(source_image, page_spec, grid_spec, settings), dpi)[0]
        preview = _open_jpeg(
            render_preview_jpg(
                source_image, page_spec, grid_spec, settings, PreviewSettings(dpi=dpi, full_page=True)
            )
        )
        assert abs(pdf_page.width - preview.width) <= 1
        assert abs(pdf_page.height - preview.height) <= 1

        layout = compute_layout(page_spec, grid_spec, settings, (800, 600), WorkingUnit.pixels(dpi), page_count=1)
        for _, stamp in iter_stamps(layout["pages"][0]):
            center = (stamp["center_x"], stamp["center_y"])
            assert _close_to(pdf_page.getpixel(center), SOURCE_COLOR), f"PDF stamp missing at {center}"
            assert _close_to(preview.getpixel(center), SOURCE_COLOR), f"Preview stamp missing at {center}"
