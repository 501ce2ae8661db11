"""
Pydantic schemas for smart crop and preprocessing endpoints
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from services.camera_framing_service import MAX_ZOOM_PERCENT, MIN_ZOOM_PERCENT, ViewAngle
from services.crop_geometry import AspectRatio

IMAGE_DATA_DESCRIPTION = "Base64 encoded image, with or without a data URL prefix"


class ObjectTargetMixin(BaseModel):
    """Fields shared by requests that reframe around a detected object"""

    image_data: str = Field(..., min_length=1, description=IMAGE_DATA_DESCRIPTION)
    object_name: str = Field(..., min_length=1, max_length=200, description="Object to centre on, e.g. 'sofa'")
    fill_ratio: float = Field(default=80, ge=10, le=100, description="Percent of output width the object fills")

    @field_validator("object_name")
    @classmethod
    def strip_object_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("object_name must not be blank")
        return value


class SmartCropRequest(ObjectTargetMixin):
    """Request to crop an image around a named object"""

    aspect_ratio: AspectRatio = AspectRatio.SQUARE

    class Config:
        json_schema_extra = {
            "example": {
                "image_data": "data:image/jpeg;base64,/9j/4AAQ...",
                "object_name": "armchair",
                "fill_ratio": 60,
                "aspect_ratio": "4:5",
            }
        }


class SmartZoomRequest(ObjectTargetMixin):
    """Request to prepare a generation input zoomed around a named object"""


class CameraFramingRequest(BaseModel):
    """Request to frame an image for a camera angle and zoom"""

    image_data: str = Field(..., min_length=1, description=IMAGE_DATA_DESCRIPTION)
    view_angle: ViewAngle = ViewAngle.ORIGINAL
    zoom: int = Field(default=100, ge=MIN_ZOOM_PERCENT, le=MAX_ZOOM_PERCENT, description="100 = unchanged")


class OutpaintCanvasRequest(BaseModel):
    """Request to pad an image to a new aspect ratio for outpainting"""

    image_data: str = Field(..., min_length=1, description=IMAGE_DATA_DESCRIPTION)
    aspect_ratio: AspectRatio


class CropRectangleSchema(BaseModel):
    left: int
    top: int
    width: int
    height: int


class ImageDimensionsSchema(BaseModel):
    width: int
    height: int


class SmartCropResponse(BaseModel):
    """Smart crop / smart zoom result"""

    success: bool = True
    generated_image: str
    bounding_box: List[float] = Field(..., description="[ymin, xmin, ymax, xmax] on a 0-1000 scale")
    crop: CropRectangleSchema
    source_dimensions: ImageDimensionsSchema
    processing_time: float


class PreprocessedImageResponse(BaseModel):
    """Image prepared for the synthesis model"""

    success: bool = True
    image: str
    dimensions: ImageDimensionsSchema


class ErrorResponse(BaseModel):
    """Shape of ``detail`` on error responses"""

    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class HTTPErrorResponse(BaseModel):
    """Error response body, as sent by FastAPI's HTTPException"""

    detail: ErrorResponse


# 422 is left to FastAPI, which documents it as a request validation error
ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {"model": HTTPErrorResponse, "description": "Image could not be decoded"},
    404: {"model": HTTPErrorResponse, "description": "Object not detected"},
    503: {"model": HTTPErrorResponse, "description": "Object detection not configured"},
}
