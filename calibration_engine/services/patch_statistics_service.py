from __future__ import annotations
import logging

import numpy as np

from ..models.calibration import PatchStatistics
from ..models.region import Rect
from . import colorimetric_codec as codec

logger = logging.getLogger(__name__)


class PatchStatisticsService:
    """
    Mean / population variance of linear channel values over a pixel region.
    Works on raw (H, W, C>=3) uint8 arrays so it serves both full frames and
    the locator's downsampled grid. Alpha is ignored.
    """

    def compute(
        self,
        pixels: np.ndarray,
        rect: Rect | None = None,
        *,
        with_variance: bool = True,
    ) -> PatchStatistics:
        """Raises InvalidRegionError when `rect` has no pixels inside the array."""
        height, width = pixels.shape[:2]
        if rect is None:
            rect = Rect(0, 0, width, height)
        rect = rect.clamp(width, height)

        rows, cols = rect.slices()
        linear = codec.decode_pixels(pixels[rows, cols, :3]).reshape(-1, 3)

        means = linear.mean(axis=0)
        variances = linear.var(axis=0) if with_variance else None

        logger.debug("Patch %s: means=%s variances=%s", rect, means, variances)
        return PatchStatistics(
            means=tuple(float(m) for m in means),
            variances=None if variances is None else tuple(float(v) for v in variances),
            pixel_count=int(linear.shape[0]),
        )
