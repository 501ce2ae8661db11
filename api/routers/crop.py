"""
Smart crop API routes

Crops an uploaded photo around a named object (detected with Gemini vision),
at a requested fill ratio and aspect ratio.
"""
from fastapi import APIRouter, Depends, HTTPException
from schemas.smart_crop import ERROR_RESPONSES, SmartCropRequest, SmartCropResponse

from core.dependencies import get_smart_crop_service
from core.exceptions import RoomFrameError
from middleware.logging_middleware import get_logger
from services.smart_crop_service import SmartCropService

logger = get_logger(__name__)
router = APIRouter(prefix="/crop", tags=["crop"])


@router.post("/smart-crop", response_model=SmartCropResponse, responses=ERROR_RESPONSES)
async def smart_crop(request: SmartCropRequest, service: SmartCropService = Depends(get_smart_crop_service)):
    """
    Crop an image around a detected object.

    The object is centred (shifted only when it sits near an edge) and fills
    ``fill_ratio`` percent of the output width. If the ideal crop is larger
    than the photo, it is shrunk uniformly: the aspect ratio is kept exactly,
    the fill ratio is not.

    Returns:
        PNG data URL plus the crop rectangle and detected box
    """
    try:
        logger.info(
            f"[SmartCrop] '{request.object_name}' fill={request.fill_ratio}% aspect={request.aspect_ratio.value}"
        )
        result = await service.smart_crop(
            image_data=request.image_data,
            object_name=request.object_name,
            fill_ratio=request.fill_ratio,
            aspect_ratio=request.aspect_ratio,
        )
        return SmartCropResponse(**result.to_dict())

    except RoomFrameError as e:
        logger.warning(f"[SmartCrop] {e.error_code}: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception as e:
        logger.exception(f"[SmartCrop] Error: {str(e)}")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to perform smart crop"})
