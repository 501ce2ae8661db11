"""
Error taxonomy for the smart-crop pipeline.

Each error carries the HTTP status it maps to, so routers can translate
failures without a lookup table:

    DetectionFailure    404  locator returned no usable box
    InvalidDetection    422  box present but degenerate / out of range
    CompositingFailure  500  extraction or encode failed
    InvalidImage        400  source image could not be decoded (a CompositingFailure)
    LocatorUnavailable  503  no vision client configured
"""
from typing import Any, Dict, Optional


class RoomFrameError(Exception):
    """Base exception for all application-specific errors."""

    default_message: str = "An unexpected error occurred"
    default_error_code: str = "INTERNAL_ERROR"
    default_status_code: int = 500

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.status_code = status_code or self.default_status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


class DetectionFailure(RoomFrameError):
    default_message = "Could not detect the specified object"
    default_error_code = "OBJECT_NOT_DETECTED"
    default_status_code = 404


class InvalidDetection(RoomFrameError):
    default_message = "Object detection returned a degenerate bounding box"
    default_error_code = "INVALID_DETECTION"
    default_status_code = 422


class CompositingFailure(RoomFrameError):
    default_message = "Failed to process image"
    default_error_code = "COMPOSITING_FAILED"
    default_status_code = 500


class InvalidImage(CompositingFailure):
    default_message = "Image data could not be decoded"
    default_error_code = "INVALID_IMAGE"
    default_status_code = 400


class LocatorUnavailable(RoomFrameError):
    default_message = "Object detection is not configured"
    default_error_code = "LOCATOR_UNAVAILABLE"
    default_status_code = 503
