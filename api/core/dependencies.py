"""
FastAPI dependencies for the smart-crop pipeline.

The object locator lives on ``app.state`` (created in the app lifespan), so
tests can swap it with ``app.dependency_overrides[get_object_locator]``.
"""
from fastapi import Depends, Request

from core.config import settings
from services.object_locator import GeminiObjectLocator, ObjectLocator
from services.smart_crop_service import SmartCropService


def get_object_locator(request: Request) -> ObjectLocator:
    """Locator for this app, created on first use if the lifespan did not run."""
    locator = getattr(request.app.state, "object_locator", None)
    if locator is None:
        locator = GeminiObjectLocator.from_settings(settings)
        request.app.state.object_locator = locator
    return locator


def get_smart_crop_service(locator: ObjectLocator = Depends(get_object_locator)) -> SmartCropService:
    return SmartCropService(locator, settings)
