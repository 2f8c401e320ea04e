from __future__ import annotations
import logging

import cv2
import numpy as np

from ..exceptions import InvalidRegionError
from ..models.calibration import FocusVerdict
from ..models.image import Image
from ..models.region import Rect
from ..models.settings import FocusSettings
from . import colorimetric_codec as codec

logger = logging.getLogger(__name__)

# 8-neighbour discrete Laplacian
LAPLACIAN_KERNEL = np.array(
    [[-1, -1, -1],
     [-1,  8, -1],
     [-1, -1, -1]],
    dtype=np.float64,
)


class FocusService:
    """
    Soft-focus warning from the Laplacian variance of a centred crop.

    The score is relative: it depends on scene content and resolution, so the
    blur threshold is a tunable setting rather than an absolute sharpness unit.
    """

    def __init__(self, settings: FocusSettings | None = None):
        self.settings = settings or FocusSettings.from_env()

    def center_rect(self, width: int, height: int) -> Rect:
        frac = self.settings.crop_fraction
        crop_w = max(1, round(width * frac))
        crop_h = max(1, round(height * frac))
        rect = Rect((width - crop_w) // 2, (height - crop_h) // 2, crop_w, crop_h)
        return rect.clamp(width, height)

    @staticmethod
    def _to_grayscale(rgb: np.ndarray) -> np.ndarray:
        """Encoded (not linear) values weighted by BT.709, float64."""
        return rgb.astype(np.float64) @ codec.LUMA_WEIGHTS

    @staticmethod
    def laplacian_variance(gray: np.ndarray) -> float:
        """
        Population variance of the Laplacian response over interior pixels
        (1-pixel border excluded).
        """
        if gray.shape[0] < 3 or gray.shape[1] < 3:
            raise InvalidRegionError(f"Focus crop {gray.shape[1]}x{gray.shape[0]} is smaller than 3x3")
        response = cv2.filter2D(gray, cv2.CV_64F, LAPLACIAN_KERNEL)
        return float(response[1:-1, 1:-1].var())

    def get_sharpness_score(self, img: Image) -> float:
        rows, cols = self.center_rect(img.width, img.height).slices()
        gray = self._to_grayscale(img.rgb[rows, cols])
        return self.laplacian_variance(gray)

    def check_focus(self, img: Image) -> FocusVerdict:
        variance = self.get_sharpness_score(img)
        threshold = self.settings.blur_threshold
        verdict = FocusVerdict(blurry=variance < threshold, variance=variance, threshold=threshold)
        logger.debug("Focus variance %.1f (threshold %.1f) blurry=%s", variance, threshold, verdict.blurry)
        return verdict
