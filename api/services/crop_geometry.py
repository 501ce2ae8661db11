"""
Geometry for smart crop and smart zoom.

Turns an object locator's normalized bounding box into a pixel-space crop
rectangle. Everything here is pure arithmetic - no image I/O, no settings -
so the same inputs always resolve to the same rectangle.

Coordinate conventions:
- Bounding boxes are [ymin, xmin, ymax, xmax] on a 0-1000 scale
- Crop rectangles are (left, top, width, height) in source pixels
- A crop rectangle may extend past the image edges; the compositor pads
  whatever falls outside with the canvas background
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.exceptions import DetectionFailure, InvalidDetection, InvalidImage

NORMALIZED_SCALE = 1000.0

# Absorbs float error so a crop scaled to exactly fit (e.g. h * (H / h)) floors to H
_FLOOR_EPSILON = 1e-6


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 always rounding towards +inf."""
    return math.floor(value + 0.5)


class AspectRatio(str, Enum):
    """Output aspect ratios supported by smart crop and outpainting"""

    SQUARE = "1:1"
    STORY = "9:16"
    WIDESCREEN = "16:9"
    PORTRAIT = "4:5"
    ORIGINAL = "Original"

    @property
    def ratio(self) -> Optional[float]:
        """Width / height, or None when the source image decides."""
        if self is AspectRatio.ORIGINAL:
            return None
        width, height = self.value.split(":")
        return int(width) / int(height)

    def height_for(self, width: float, dims: "ImageDimensions") -> float:
        """Height matching ``width`` under this ratio."""
        if self is AspectRatio.ORIGINAL:
            return width * (dims.height / dims.width)
        return width / self.ratio


@dataclass(frozen=True)
class ImageDimensions:
    """Pixel size of a source image"""

    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InvalidImage(
                "Image has no pixels", details={"width": self.width, "height": self.height}
            )

    @classmethod
    def of(cls, image: Any) -> "ImageDimensions":
        """Read dimensions from anything with a PIL-style ``size``."""
        width, height = image.size
        return cls(width=width, height=height)

    def to_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class BoundingBox:
    """
    Detected object location, normalized to 0-1000.

    Construction validates the box: coordinates outside the normalized range
    or a zero/negative extent raise InvalidDetection, so any BoundingBox that
    exists has a positive area.
    """

    ymin: float
    xmin: float
    ymax: float
    xmax: float

    def __post_init__(self):
        values = self.to_list()
        if any(not math.isfinite(v) or v < 0 or v > NORMALIZED_SCALE for v in values):
            raise InvalidDetection(
                "Bounding box coordinates must lie within 0-1000", details={"bounding_box": values}
            )
        if self.xmax <= self.xmin or self.ymax <= self.ymin:
            raise InvalidDetection(
                "Bounding box has zero or negative extent", details={"bounding_box": values}
            )

    @classmethod
    def from_locator_result(cls, raw: Any) -> "BoundingBox":
        """
        Build a box from the locator's raw answer.

        Anything that is not a 4-element numeric sequence means the locator
        found nothing usable (DetectionFailure). A well-formed but degenerate
        box is a contract violation (InvalidDetection).
        """
        if not isinstance(raw, (list, tuple)) or len(raw) != 4:
            raise DetectionFailure(details={"locator_result": str(raw)[:100]})
        if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in raw):
            raise DetectionFailure(details={"locator_result": str(raw)[:100]})
        try:
            values = [float(v) for v in raw]
        except OverflowError as e:
            raise InvalidDetection(
                "Bounding box coordinates must lie within 0-1000", details={"locator_result": str(raw)[:100]}
            ) from e
        return cls(*values)

    def to_list(self) -> List[float]:
        return [self.ymin, self.xmin, self.ymax, self.xmax]

    def pixel_size(self, dims: ImageDimensions) -> Tuple[float, float]:
        width = (self.xmax - self.xmin) / NORMALIZED_SCALE * dims.width
        height = (self.ymax - self.ymin) / NORMALIZED_SCALE * dims.height
        return width, height

    def pixel_center(self, dims: ImageDimensions) -> Tuple[float, float]:
        center_x = (self.xmin + self.xmax) / (2 * NORMALIZED_SCALE) * dims.width
        center_y = (self.ymin + self.ymax) / (2 * NORMALIZED_SCALE) * dims.height
        return center_x, center_y


@dataclass(frozen=True)
class CropRectangle:
    """Crop region in source pixel space (may extend past the image)"""

    left: int
    top: int
    width: int
    height: int
    scale_factor: float = 1.0  # < 1.0 when the ideal crop was shrunk to fit

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.left + self.width / 2, self.top + self.height / 2

    def to_dict(self) -> Dict[str, int]:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}

    def scaled(self, factor: float) -> "CropRectangle":
        """Same rectangle in an image resized by ``factor``."""
        return CropRectangle(
            left=round_half_up(self.left * factor),
            top=round_half_up(self.top * factor),
            width=max(1, round_half_up(self.width * factor)),
            height=max(1, round_half_up(self.height * factor)),
            scale_factor=self.scale_factor * factor,
        )


def _check_fill_ratio(fill_ratio: float):
    if not 0 < fill_ratio <= 100:
        raise ValueError(f"fill_ratio must be in (0, 100], got {fill_ratio}")


def _ensure_pixels(width: int, height: int, box: BoundingBox):
    if width < 1 or height < 1:
        raise InvalidDetection(
            "Detected object is too small to crop around",
            details={"bounding_box": box.to_list(), "crop_width": width, "crop_height": height},
        )


def resolve_crop_rectangle(
    box: BoundingBox,
    dims: ImageDimensions,
    fill_ratio: float,
    aspect_ratio: AspectRatio = AspectRatio.SQUARE,
) -> CropRectangle:
    """
    Compute the smart-crop rectangle around a detected object.

    The crop is sized so the object spans ``fill_ratio`` percent of the crop
    width, with height set by ``aspect_ratio``. If that does not fit in the
    image, both sides shrink by the same factor: the aspect ratio is always
    kept, the fill ratio is what gives way. The rectangle is then centred on
    the object and pushed back inside the image near the edges.

    Args:
        box: Validated bounding box from the locator
        dims: Source image size in pixels
        fill_ratio: Percent (0, 100] of the crop width the object should fill
        aspect_ratio: Target output ratio

    Returns:
        CropRectangle that lies fully inside the image
    """
    _check_fill_ratio(fill_ratio)
    aspect_ratio = AspectRatio(aspect_ratio)

    object_width, _ = box.pixel_size(dims)
    center_x, center_y = box.pixel_center(dims)

    crop_width = object_width / (fill_ratio / 100)
    crop_height = aspect_ratio.height_for(crop_width, dims)

    scale_factor = min(1.0, dims.width / crop_width, dims.height / crop_height)
    crop_width *= scale_factor
    crop_height *= scale_factor

    width = math.floor(crop_width + _FLOOR_EPSILON)
    height = math.floor(crop_height + _FLOOR_EPSILON)
    _ensure_pixels(width, height, box)

    # Clamp against the floored size so extraction and canvas agree
    left = round_half_up(center_x - crop_width / 2)
    top = round_half_up(center_y - crop_height / 2)
    left = max(0, min(left, dims.width - width))
    top = max(0, min(top, dims.height - height))

    return CropRectangle(left=left, top=top, width=width, height=height, scale_factor=scale_factor)


def resolve_zoom_window(box: BoundingBox, dims: ImageDimensions, fill_ratio: float) -> CropRectangle:
    """
    Compute the smart-zoom window used to prepare a generation input.

    Like smart crop, the object ends up filling ``fill_ratio`` percent of the
    width, but the window keeps the source aspect ratio and is neither shrunk
    nor clamped. A window larger than the image is a zoom out: the caller
    composites it onto a padded canvas for the synthesis model to outpaint.
    """
    _check_fill_ratio(fill_ratio)

    object_width, _ = box.pixel_size(dims)
    center_x, center_y = box.pixel_center(dims)

    target_width = object_width / (fill_ratio / 100)
    target_height = target_width / (dims.width / dims.height)

    width = round_half_up(target_width)
    height = round_half_up(target_height)
    _ensure_pixels(width, height, box)

    return CropRectangle(
        left=round_half_up(center_x - target_width / 2),
        top=round_half_up(center_y - target_height / 2),
        width=width,
        height=height,
    )
