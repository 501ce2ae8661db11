"""
Pytest configuration and fixtures for RoomFrame API tests.
"""
import base64
import io
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image


def encode_image(img: Image.Image, fmt: str = "PNG", data_url: bool = True) -> str:
    """Encode a PIL image as base64 (data URL by default)."""
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    encoded = base64.b64encode(buffer.getvalue()).decode()
    if not data_url:
        return encoded
    return f"data:image/{fmt.lower()};base64,{encoded}"


def decode_data_url(data_url: str) -> Image.Image:
    """Decode a data URL back into a PIL image."""
    return Image.open(io.BytesIO(base64.b64decode(data_url.split(",", 1)[1])))


def make_pattern_image(width: int, height: int) -> Image.Image:
    """RGB image where every pixel encodes its position, for pixel-identity checks."""
    img = Image.new("RGB", (width, height))
    img.putdata([((x * 7) % 256, (y * 11) % 256, (x + y) % 256) for y in range(height) for x in range(width)])
    return img


@pytest.fixture
def room_image():
    """A 2000x1000 'room' with a brown sofa block in the middle."""
    from PIL import ImageDraw

    img = Image.new("RGB", (2000, 1000), color="lightgray")
    draw = ImageDraw.Draw(img)
    draw.rectangle([0, 800, 2000, 1000], fill="burlywood")  # Floor
    draw.rectangle([800, 400, 1199, 599], fill=(139, 69, 19))  # Sofa
    return img


@pytest.fixture
def room_image_base64(room_image):
    return encode_image(room_image, "PNG")


@pytest.fixture
def pattern_image():
    return make_pattern_image(120, 80)


@pytest.fixture
def mock_locator():
    """Object locator that finds the centre 20% of the image."""
    locator = MagicMock()
    locator.locate = AsyncMock(return_value=[400, 400, 600, 600])
    return locator
