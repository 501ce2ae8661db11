"""
Image Compositing Service for smart crop and smart zoom.

Extracts the part of a source image that falls inside a crop rectangle and
composites it onto a fresh canvas of exactly the rectangle's size. Pure
Python/PIL implementation - no AI calls.

Anything the rectangle covers outside the source image is left as canvas
background: transparent for smart crop (PNG output), white for smart zoom
(JPEG output, later outpainted by the synthesis model). Source pixels are
never stretched or mirrored into the padding.
"""
import base64
import io
import logging
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from core.exceptions import CompositingFailure, InvalidImage
from services.crop_geometry import CropRectangle, round_half_up

logger = logging.getLogger(__name__)

TRANSPARENT = (255, 255, 255, 0)
OPAQUE_WHITE = (255, 255, 255, 255)


def load_image(image_data: str, max_bytes: Optional[int] = None) -> Image.Image:
    """
    Load image from base64 string (with or without data URL prefix).

    EXIF orientation is applied so pixel coordinates match what a viewer
    (and the object locator) sees.

    Raises:
        InvalidImage: if the payload is not decodable image data
    """
    if image_data.startswith("data:"):
        image_data = image_data.split(",", 1)[1] if "," in image_data else ""

    try:
        image_bytes = base64.b64decode(image_data)
    except ValueError as e:
        raise InvalidImage("Image data is not valid base64", details={"reason": str(e)}) from e

    if not image_bytes:
        raise InvalidImage("Image data is empty")
    if max_bytes and len(image_bytes) > max_bytes:
        raise InvalidImage(
            "Image is too large", details={"size_bytes": len(image_bytes), "max_bytes": max_bytes}
        )

    try:
        image = Image.open(io.BytesIO(image_bytes))
        image = ImageOps.exif_transpose(image)
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImage(details={"reason": str(e)}) from e

    return image


def composite_onto_canvas(
    image: Image.Image,
    rect: CropRectangle,
    background: Tuple[int, int, int, int] = TRANSPARENT,
) -> Image.Image:
    """
    Composite the part of ``image`` inside ``rect`` onto a new RGBA canvas.

    Args:
        image: Source image
        rect: Crop rectangle in source pixels, possibly partly out of bounds
        background: RGBA fill for canvas areas the source does not cover

    Returns:
        RGBA image of exactly (rect.width, rect.height)

    Raises:
        CompositingFailure: if the rectangle misses the image entirely or
            PIL fails during extraction
    """
    img_width, img_height = image.size

    # Valid source window: rect intersected with the image bounds
    src_left = max(0, rect.left)
    src_top = max(0, rect.top)
    src_right = min(img_width, rect.right)
    src_bottom = min(img_height, rect.bottom)

    if src_right <= src_left or src_bottom <= src_top:
        raise CompositingFailure(
            "Crop rectangle does not overlap the source image",
            details={"crop": rect.to_dict(), "image": {"width": img_width, "height": img_height}},
        )

    try:
        piece = image.crop((src_left, src_top, src_right, src_bottom)).convert("RGBA")
        canvas = Image.new("RGBA", (rect.width, rect.height), background)
        canvas.paste(piece, (src_left - rect.left, src_top - rect.top))
    except (OSError, ValueError) as e:
        raise CompositingFailure(details={"reason": str(e)}) from e

    logger.debug(
        f"[Composite] {src_right - src_left}x{src_bottom - src_top} source window "
        f"-> {rect.width}x{rect.height} canvas at ({src_left - rect.left}, {src_top - rect.top})"
    )
    return canvas


def fit_within(image: Image.Image, max_dimension: int) -> Image.Image:
    """Return an RGB copy whose longest side is at most ``max_dimension`` (never upscales)."""
    fitted = _flatten_to_rgb(image)
    if fitted is image:
        fitted = image.copy()
    if fitted.width > max_dimension or fitted.height > max_dimension:
        fitted.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
    return fitted


def resize_by(image: Image.Image, factor: float) -> Image.Image:
    """Resize by a uniform factor (at least 1px per side)."""
    width = max(1, round_half_up(image.width * factor))
    height = max(1, round_half_up(image.height * factor))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def encode_png_data_url(image: Image.Image) -> str:
    """Encode as PNG data URL (keeps the alpha channel)."""
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        raise CompositingFailure("Failed to encode PNG", details={"reason": str(e)}) from e
    return f"data:image/png;base64,{base64.b64encode(buffer.getvalue()).decode()}"


def encode_jpeg_base64(image: Image.Image, quality: int = 90) -> str:
    """Encode as raw base64 JPEG, flattening any transparency onto white."""
    buffer = io.BytesIO()
    try:
        _flatten_to_rgb(image).save(buffer, format="JPEG", quality=quality)
    except (OSError, ValueError) as e:
        raise CompositingFailure("Failed to encode JPEG", details={"reason": str(e)}) from e
    return base64.b64encode(buffer.getvalue()).decode()


def encode_jpeg_data_url(image: Image.Image, quality: int = 90) -> str:
    return f"data:image/jpeg;base64,{encode_jpeg_base64(image, quality)}"


def encode_for_analysis(image: Image.Image, max_dimension: int = 1024, quality: int = 90) -> str:
    """
    Prepare an image for the object locator.

    Downscales to fit a ``max_dimension`` square and encodes as raw base64
    JPEG. Normalized boxes are resolution independent, so the locator can
    work on the small copy while cropping uses the full image.
    """
    analysis_image = fit_within(image, max_dimension)
    logger.debug(f"[Analysis] {image.width}x{image.height} -> {analysis_image.width}x{analysis_image.height}")
    return encode_jpeg_base64(analysis_image, quality=quality)


def _flatten_to_rgb(image: Image.Image) -> Image.Image:
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        flattened = Image.new("RGB", rgba.size, OPAQUE_WHITE[:3])
        flattened.paste(rgba, mask=rgba.split()[3])
        return flattened
    return image.convert("RGB")
