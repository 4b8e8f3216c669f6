"""Source image decoding shared by the PDF and JPEG renderers."""

import io

from PIL import Image, UnidentifiedImageError

from labelgrid.errors import RenderEncodingFailure

# 16/32-bit integer modes Pillow opens high bit depth grayscale PNGs as
_WIDE_INT_MODES = ("I", "I;16", "I;16B", "I;16L", "I;16N")


def decode_source(image_bytes: bytes) -> Image.Image:
    """Decode image bytes into an 8-bit RGB image.

    Args:
        image_bytes: Encoded source image (PNG or JPEG)

    Returns:
        RGB Pillow image

    Raises:
        RenderEncodingFailure: If the bytes are not a readable image

    Note:
        - Transparency is flattened onto white
        - 16-bit grayscale is scaled down to 8 bits; a plain convert("RGB")
          would clip every value above 255 to white
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.load()
            if img.mode in _WIDE_INT_MODES:
                return img.convert("I").point(lambda v: v / 256).convert("L").convert("RGB")
            if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
                rgba = img.convert("RGBA")
                flat = Image.new("RGB", rgba.size, (255, 255, 255))
                flat.paste(rgba, mask=rgba.getchannel("A"))
                return flat
            return img.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise RenderEncodingFailure(f"Cannot decode source image: {e}") from e
