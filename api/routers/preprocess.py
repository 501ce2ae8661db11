"""
Preprocessing API routes

Prepares images before they are sent to the image synthesis model:
camera framing (zoom / angle hint), smart zoom around an object, and
outpainting canvases. Outputs are data URLs ready to forward.
"""
from fastapi import APIRouter, Depends, HTTPException
from schemas.smart_crop import (
    ERROR_RESPONSES,
    CameraFramingRequest,
    OutpaintCanvasRequest,
    PreprocessedImageResponse,
    SmartCropResponse,
    SmartZoomRequest,
)

from core.config import settings
from core.dependencies import get_smart_crop_service
from core.exceptions import RoomFrameError
from middleware.logging_middleware import get_logger
from services.camera_framing_service import apply_camera_framing, prepare_outpaint_canvas
from services.image_compositing_service import encode_jpeg_data_url, encode_png_data_url, fit_within, load_image
from services.smart_crop_service import SmartCropService

logger = get_logger(__name__)
router = APIRouter(prefix="/preprocess", tags=["preprocess"])


def _raise_http(e: RoomFrameError, tag: str):
    logger.warning(f"[{tag}] {e.error_code}: {e.message}")
    raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/camera-framing", response_model=PreprocessedImageResponse, responses={400: ERROR_RESPONSES[400]})
async def camera_framing(request: CameraFramingRequest):
    """
    Frame an image for a camera angle and zoom level.

    Zoom in crops the centre, zoom out pads with white, and "Side" squeezes the
    frame onto a wider canvas. This is 2D framing only - the change of
    viewpoint itself is left to the synthesis model.
    """
    try:
        logger.info(f"[Framing] angle={request.view_angle.value} zoom={request.zoom}%")
        image = load_image(request.image_data, max_bytes=settings.max_image_bytes)
        working = fit_within(image, settings.analysis_max_dimension)
        framed = apply_camera_framing(working, request.view_angle, request.zoom)

        return PreprocessedImageResponse(
            image=encode_jpeg_data_url(framed, quality=settings.preprocess_jpeg_quality),
            dimensions={"width": framed.width, "height": framed.height},
        )

    except RoomFrameError as e:
        _raise_http(e, "Framing")
    except Exception as e:
        logger.exception(f"[Framing] Error: {str(e)}")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to frame image"})


@router.post("/smart-zoom", response_model=SmartCropResponse, responses=ERROR_RESPONSES)
async def smart_zoom(request: SmartZoomRequest, service: SmartCropService = Depends(get_smart_crop_service)):
    """
    Zoom the generation input so a named object fills ``fill_ratio`` of the width.

    Zooming out pads the image with white for the synthesis model to outpaint.
    """
    try:
        logger.info(f"[SmartZoom] '{request.object_name}' fill={request.fill_ratio}%")
        result = await service.smart_zoom(
            image_data=request.image_data,
            object_name=request.object_name,
            fill_ratio=request.fill_ratio,
        )
        return SmartCropResponse(**result.to_dict())

    except RoomFrameError as e:
        _raise_http(e, "SmartZoom")
    except Exception as e:
        logger.exception(f"[SmartZoom] Error: {str(e)}")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to zoom image"})


@router.post("/outpaint-canvas", response_model=PreprocessedImageResponse, responses={400: ERROR_RESPONSES[400]})
async def outpaint_canvas(request: OutpaintCanvasRequest):
    """
    Centre an image on grey padding to reach a new aspect ratio.

    The grey border marks the area the synthesis model should fill in.
    """
    try:
        logger.info(f"[Outpaint] Extending image to {request.aspect_ratio.value}")
        image = load_image(request.image_data, max_bytes=settings.max_image_bytes)
        canvas = prepare_outpaint_canvas(image, request.aspect_ratio)

        return PreprocessedImageResponse(
            image=encode_png_data_url(canvas),
            dimensions={"width": canvas.width, "height": canvas.height},
        )

    except RoomFrameError as e:
        _raise_http(e, "Outpaint")
    except Exception as e:
        logger.exception(f"[Outpaint] Error: {str(e)}")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to prepare canvas"})
