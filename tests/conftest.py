"""
Pytest configuration and fixtures
"""
import os
import sys

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from calibration_engine.models.image import Image
from calibration_engine.models.settings import EngineSettings


def make_frame(width, height, rgb=(128, 128, 128), alpha=255) -> Image:
    """Uniform RGBA frame."""
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = rgb
    pixels[..., 3] = alpha
    return Image(pixels=pixels)


def paint(img: Image, x, y, w, h, rgb) -> Image:
    """Copy of `img` with a filled rectangle."""
    pixels = img.pixels.copy()
    pixels[y:y + h, x:x + w, :3] = rgb
    return Image(pixels=pixels)


def checkerboard(width, height, cell=1) -> Image:
    yy, xx = np.mgrid[0:height, 0:width]
    on = ((yy // cell + xx // cell) % 2).astype(bool)
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[on, :3] = 255
    pixels[..., 3] = 255
    return Image(pixels=pixels)


@pytest.fixture
def engine_settings():
    """Built-in defaults, independent of the caller's environment."""
    return EngineSettings()


@pytest.fixture
def neutral_frame():
    """Bright neutral grey (encoded 220, linear ~0.716) inside the default band."""
    return make_frame(64, 48, rgb=(220, 220, 220))


@pytest.fixture
def dark_frame():
    return make_frame(64, 48, rgb=(30, 30, 30))
