"""
Camera framing preprocessor for synthesis inputs.

Simulates a camera zoom and hints at a viewing angle before an image is sent
to the image synthesis model. This is flat 2D framing only:

- zoom in (> 100%) crops around the centre and scales back up
- zoom out (< 100%) pads the image with white for the model to outpaint
- "Side" squeezes the frame horizontally onto a wider canvas

No perspective warp or 3D reprojection is performed. The actual change of
viewpoint comes from the synthesis model following its prompt; these
transforms only give it a differently framed starting image.

Also prepares outpainting canvases (image centred on neutral grey padding).
"""
import logging
from enum import Enum

from PIL import Image

from services.crop_geometry import AspectRatio, round_half_up

logger = logging.getLogger(__name__)

MIN_ZOOM_PERCENT = 50
MAX_ZOOM_PERCENT = 200

SIDE_CANVAS_WIDTH_FACTOR = 1.2
SIDE_SQUEEZE_FACTOR = 0.85

PADDING_COLOR = (255, 255, 255)
OUTPAINT_FILL_COLOR = (128, 128, 128)  # Read by the model as "unrendered space"


class ViewAngle(str, Enum):
    """Named camera angles understood by the synthesis prompt"""

    ORIGINAL = "Original"
    FRONT = "Front"
    SIDE = "Side"
    TOP = "Top"


def apply_camera_framing(
    image: Image.Image, view_angle: ViewAngle = ViewAngle.ORIGINAL, zoom_percent: float = 100
) -> Image.Image:
    """
    Frame an image for a requested zoom and view angle.

    Args:
        image: Source image
        view_angle: Target angle. Only SIDE changes geometry; FRONT and TOP
            rely entirely on the synthesis prompt.
        zoom_percent: 50-200, 100 = unchanged

    Returns:
        Framed RGB image, or ``image`` itself when nothing changes
    """
    view_angle = ViewAngle(view_angle)
    if not MIN_ZOOM_PERCENT <= zoom_percent <= MAX_ZOOM_PERCENT:
        raise ValueError(f"zoom_percent must be between {MIN_ZOOM_PERCENT} and {MAX_ZOOM_PERCENT}, got {zoom_percent}")

    if view_angle is ViewAngle.ORIGINAL and zoom_percent == 100:
        return image

    width, height = image.size
    framed = _apply_zoom(image.convert("RGB"), zoom_percent)

    if view_angle is ViewAngle.SIDE:
        framed = _side_angle_hint(framed, width, height)

    logger.info(f"[Framing] {view_angle.value} @ {zoom_percent}%: {width}x{height} -> {framed.width}x{framed.height}")
    return framed


def _apply_zoom(image: Image.Image, zoom_percent: float) -> Image.Image:
    width, height = image.size
    factor = 100 / zoom_percent

    if zoom_percent > 100:
        crop_width = max(1, round_half_up(width * factor))
        crop_height = max(1, round_half_up(height * factor))
        left = round_half_up((width - crop_width) / 2)
        top = round_half_up((height - crop_height) / 2)
        cropped = image.crop((left, top, left + crop_width, top + crop_height))
        return cropped.resize((width, height), Image.Resampling.LANCZOS)

    if zoom_percent < 100:
        pad_x = round_half_up((round_half_up(width * factor) - width) / 2)
        pad_y = round_half_up((round_half_up(height * factor) - height) / 2)
        canvas = Image.new("RGB", (width + 2 * pad_x, height + 2 * pad_y), PADDING_COLOR)
        canvas.paste(image, (pad_x, pad_y))
        return canvas

    return image


def _side_angle_hint(image: Image.Image, width: int, height: int) -> Image.Image:
    # Narrower frame flush right on a wider canvas; the model reads the blank
    # strip as room to swing the camera round
    canvas_width = round_half_up(width * SIDE_CANVAS_WIDTH_FACTOR)
    squeezed_width = round_half_up(width * SIDE_SQUEEZE_FACTOR)

    squeezed = image.resize((squeezed_width, height), Image.Resampling.LANCZOS)
    canvas = Image.new("RGB", (canvas_width, height), PADDING_COLOR)
    canvas.paste(squeezed, (canvas_width - squeezed_width, 0))
    return canvas


def prepare_outpaint_canvas(image: Image.Image, aspect_ratio: AspectRatio) -> Image.Image:
    """
    Centre the image on grey padding so the result reaches ``aspect_ratio``.

    The padding encloses the original: a wider target grows the width, a
    taller one grows the height. ORIGINAL returns the image unpadded.
    """
    aspect_ratio = AspectRatio(aspect_ratio)
    rgb = image.convert("RGB")
    if aspect_ratio.ratio is None:
        return rgb

    width, height = rgb.size
    target_ratio = aspect_ratio.ratio
    new_width, new_height = width, height

    if target_ratio > width / height:
        new_width = round_half_up(height * target_ratio)
    else:
        new_height = round_half_up(width / target_ratio)

    pad_x = max(0, round_half_up((new_width - width) / 2))
    pad_y = max(0, round_half_up((new_height - height) / 2))

    canvas = Image.new("RGB", (width + 2 * pad_x, height + 2 * pad_y), OUTPAINT_FILL_COLOR)
    canvas.paste(rgb, (pad_x, pad_y))

    logger.info(f"[Outpaint] {width}x{height} -> {canvas.width}x{canvas.height} for {aspect_ratio.value}")
    return canvas
