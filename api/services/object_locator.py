"""
Object locator: finds a named object in an image with Gemini vision.

Contract consumed by the smart-crop pipeline:
    locate(image_base64, object_name) -> [ymin, xmin, ymax, xmax] on 0-1000, or None

The locator only extracts the model's answer; validating it is the caller's
job (see BoundingBox.from_locator_result). A single attempt is made - API
errors, timeouts and unparsable answers are logged and reported as None.
"""
import asyncio
import base64
import json
import logging
import re
import time
from typing import Any, List, Optional, Protocol, Sequence

from google import genai
from google.genai import types

from core.config import Settings
from core.exceptions import LocatorUnavailable
from core.logging import record_timing

logger = logging.getLogger(__name__)

DETECTION_PROMPT = """Locate the "{object_name}" in this image.

Return ONLY a JSON array with its bounding box as [ymin, xmin, ymax, xmax],
each coordinate normalized to a 0-1000 scale where (0, 0) is the top-left corner
and (1000, 1000) is the bottom-right corner.

RULES:
- If several match, return the most prominent one
- The box should tightly fit the object
- If the object is NOT in the image, return an empty array: []"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class ObjectLocator(Protocol):
    """Anything that can find an object's bounding box in an image."""

    async def locate(self, image_base64: str, object_name: str) -> Optional[Sequence[float]]:
        ...


def parse_box_response(text: Optional[str]) -> Optional[List[Any]]:
    """
    Pull the bounding box out of a model answer.

    Accepts a bare array, {"box_2d": [...]}, or a list of either (first wins),
    optionally wrapped in a markdown code fence. Returns the raw list, or None
    when there is nothing box-like to return.
    """
    if not text:
        return None

    cleaned = _CODE_FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning(f"[Locator] Unparsable detection response: {text[:200]}")
        return None

    if isinstance(data, list) and data and isinstance(data[0], (dict, list)):
        data = data[0]
    if isinstance(data, dict):
        data = data.get("box_2d")

    if not isinstance(data, list) or not data:
        return None
    return data


class GeminiObjectLocator:
    """ObjectLocator backed by the Google GenAI client"""

    def __init__(
        self,
        client: Optional[genai.Client],
        model: str = "gemini-2.5-flash",
        temperature: float = 0.1,
        timeout_seconds: float = 60.0,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, config: Settings) -> "GeminiObjectLocator":
        """Build a locator from settings (unconfigured if no API key is set)."""
        client = None
        if config.google_ai_api_key:
            client = genai.Client(api_key=config.google_ai_api_key)
            logger.info(f"[Locator] Google GenAI client initialized for {config.google_ai_detection_model}")
        else:
            logger.warning("[Locator] Google AI API key not configured - object detection will not be available")

        return cls(
            client,
            model=config.google_ai_detection_model,
            temperature=config.google_ai_detection_temperature,
            timeout_seconds=config.detection_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def locate(self, image_base64: str, object_name: str) -> Optional[List[Any]]:
        """
        Ask Gemini for the bounding box of ``object_name``.

        Args:
            image_base64: Raw base64 JPEG (no data URL prefix)
            object_name: Free-text object description

        Returns:
            Raw [ymin, xmin, ymax, xmax] list, or None if not found

        Raises:
            LocatorUnavailable: if no client is configured
        """
        if self.client is None:
            raise LocatorUnavailable()

        prompt = DETECTION_PROMPT.format(object_name=object_name)
        image_part = types.Part.from_bytes(data=base64.b64decode(image_base64), mime_type="image/jpeg")

        def _run_detect():
            """Run the blocking generate_content call in a worker thread"""
            response = self.client.models.generate_content(
                model=self.model,
                contents=[image_part, prompt],
                config=types.GenerateContentConfig(
                    temperature=self.temperature,
                    response_mime_type="application/json",
                ),
            )
            return response.text

        start_time = time.time()
        try:
            text = await asyncio.wait_for(asyncio.to_thread(_run_detect), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"[Locator] Detection of '{object_name}' timed out after {self.timeout_seconds}s")
            return None
        except Exception as e:
            logger.error(f"[Locator] Detection request failed: {e}")
            return None
        finally:
            record_timing("locator_ms", (time.time() - start_time) * 1000)

        box = parse_box_response(text)
        logger.info(f"[Locator] '{object_name}' -> {box} ({time.time() - start_time:.2f}s)")
        return box
