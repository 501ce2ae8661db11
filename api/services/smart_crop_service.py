"""
Smart crop service: locate -> resolve -> composite.

1. Decode the source image
2. Ask the object locator where the named object is (one attempt)
3. Resolve a crop rectangle around it
4. Composite the covered region onto a canvas of exactly that size

Every failure is fail-fast and typed (see core.exceptions); nothing falls
back to returning the uncropped image.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict

from PIL import Image

from core.config import Settings, settings
from core.exceptions import DetectionFailure
from services.crop_geometry import (
    AspectRatio,
    BoundingBox,
    CropRectangle,
    ImageDimensions,
    resolve_crop_rectangle,
    resolve_zoom_window,
)
from services.image_compositing_service import (
    OPAQUE_WHITE,
    composite_onto_canvas,
    encode_for_analysis,
    encode_jpeg_data_url,
    encode_png_data_url,
    fit_within,
    load_image,
    resize_by,
)
from services.object_locator import ObjectLocator

logger = logging.getLogger(__name__)


@dataclass
class SmartCropResult:
    """Result from smart crop / smart zoom."""

    image: str  # Data URL (PNG for crop, JPEG for zoom)
    bounding_box: BoundingBox
    crop: CropRectangle
    source_dimensions: ImageDimensions
    processing_time: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_image": self.image,
            "bounding_box": self.bounding_box.to_list(),
            "crop": self.crop.to_dict(),
            "source_dimensions": self.source_dimensions.to_dict(),
            "processing_time": self.processing_time,
        }


class SmartCropService:
    """
    Reframes images around a named object.

    The object locator is passed in, so callers (and tests) decide which
    detection backend is used.
    """

    def __init__(self, locator: ObjectLocator, config: Settings = settings):
        self.locator = locator
        self.config = config

    async def smart_crop(
        self,
        image_data: str,
        object_name: str,
        fill_ratio: float,
        aspect_ratio: AspectRatio = AspectRatio.SQUARE,
    ) -> SmartCropResult:
        """
        Crop an image around a detected object.

        Args:
            image_data: Base64 image, with or without data URL prefix
            object_name: What to centre the crop on
            fill_ratio: Percent of the output width the object should fill
            aspect_ratio: Output aspect ratio

        Returns:
            SmartCropResult with a PNG data URL of exactly crop.width x crop.height

        Raises:
            DetectionFailure: object not found
            InvalidDetection: locator returned a degenerate box
            CompositingFailure: image could not be decoded, cropped or encoded
        """
        start_time = time.time()

        image = load_image(image_data, max_bytes=self.config.max_image_bytes)
        dims = ImageDimensions.of(image)
        logger.info(f"[SmartCrop] Source {dims.width}x{dims.height}, looking for '{object_name}'")

        box = await self._detect(image, object_name)
        crop = resolve_crop_rectangle(box, dims, fill_ratio, aspect_ratio)
        logger.info(
            f"[SmartCrop] Box {box.to_list()} -> crop {crop.to_dict()} "
            f"(aspect={AspectRatio(aspect_ratio).value}, fill={fill_ratio}%, scale={crop.scale_factor:.3f})"
        )

        canvas = composite_onto_canvas(image, crop)
        result_image = encode_png_data_url(canvas)

        processing_time = time.time() - start_time
        logger.info(f"[SmartCrop] Complete: {crop.width}x{crop.height} in {processing_time:.2f}s")

        return SmartCropResult(
            image=result_image,
            bounding_box=box,
            crop=crop,
            source_dimensions=dims,
            processing_time=processing_time,
        )

    async def smart_zoom(self, image_data: str, object_name: str, fill_ratio: float) -> SmartCropResult:
        """
        Prepare a generation input where the object fills ``fill_ratio`` of the width.

        Works on the analysis-sized image (what the synthesis model receives).
        The zoom window keeps the source aspect ratio and may extend past the
        image; that part is padded white for the model to outpaint. Windows
        longer than ``max_output_dimension`` are scaled down together with the
        working image, so crop and source_dimensions describe the scaled pair.

        Returns:
            SmartCropResult with a JPEG data URL
        """
        start_time = time.time()

        image = load_image(image_data, max_bytes=self.config.max_image_bytes)
        working = fit_within(image, self.config.analysis_max_dimension)
        dims = ImageDimensions.of(working)
        logger.info(f"[SmartZoom] Working image {dims.width}x{dims.height}, looking for '{object_name}'")

        box = await self._detect(working, object_name)
        window = resolve_zoom_window(box, dims, fill_ratio)
        logger.info(f"[SmartZoom] Box {box.to_list()} -> window {window.to_dict()} (fill={fill_ratio}%)")

        # Zooming far out grows the canvas with 1/fill_ratio; shrink image and window together
        longest_side = max(window.width, window.height)
        if longest_side > self.config.max_output_dimension:
            factor = self.config.max_output_dimension / longest_side
            working = resize_by(working, factor)
            window = window.scaled(factor)
            dims = ImageDimensions.of(working)
            logger.info(
                f"[SmartZoom] Window capped at {self.config.max_output_dimension}px (x{factor:.3f}): {window.to_dict()}"
            )

        canvas = composite_onto_canvas(working, window, background=OPAQUE_WHITE)
        result_image = encode_jpeg_data_url(canvas, quality=self.config.preprocess_jpeg_quality)

        return SmartCropResult(
            image=result_image,
            bounding_box=box,
            crop=window,
            source_dimensions=dims,
            processing_time=time.time() - start_time,
        )

    async def _detect(self, image: Image.Image, object_name: str) -> BoundingBox:
        """Run the locator once on a downscaled JPEG and validate its answer."""
        analysis_b64 = encode_for_analysis(
            image, self.config.analysis_max_dimension, quality=self.config.analysis_jpeg_quality
        )

        raw_box = await self.locator.locate(analysis_b64, object_name)
        if raw_box is None:
            logger.warning(f"[SmartCrop] '{object_name}' not detected")
            raise DetectionFailure(
                f'Could not find "{object_name}" in the image', details={"object_name": object_name}
            )

        return BoundingBox.from_locator_result(raw_box)
