from __future__ import annotations
import logging

import cv2
import numpy as np

from ..models.calibration import LocatedPatch
from ..models.image import Image
from ..models.region import PatchRegion, Rect
from ..models.settings import LocatorSettings
from .patch_statistics_service import PatchStatisticsService
from .patch_validator_service import PatchValidatorService
from . import colorimetric_codec as codec

logger = logging.getLogger(__name__)


class PatchLocatorService:
    """
    Hands-free calibration: finds the best neutral patch in a frame.

    The frame is area-averaged down to a small square grid so the search cost
    does not depend on the camera resolution. A square window slides over the
    grid; every window that passes validation is scored by
    luminance - sum(channel variances) and the highest score wins. Ties keep
    the first window in row-major scan order.
    """

    def __init__(
        self,
        settings: LocatorSettings | None = None,
        stats_service: PatchStatisticsService | None = None,
        validator: PatchValidatorService | None = None,
    ):
        self.settings = settings or LocatorSettings.from_env()
        self.stats_service = stats_service or PatchStatisticsService()
        self.validator = validator or PatchValidatorService()

    def downsample(self, img: Image) -> np.ndarray:
        """(grid, grid, 3) uint8 thumbnail of the frame's colour channels."""
        grid = self.settings.grid
        rgb = np.ascontiguousarray(img.rgb)
        return cv2.resize(rgb, (grid, grid), interpolation=cv2.INTER_AREA)

    def window_origins(self, grid_height: int, grid_width: int):
        """Top-left corners of all windows, row-major."""
        window, stride = self.settings.window, self.settings.stride
        for gy in range(0, grid_height - window + 1, stride):
            for gx in range(0, grid_width - window + 1, stride):
                yield gx, gy

    def search(self, grid: np.ndarray) -> LocatedPatch | None:
        """Scan a downsampled grid; None when no window validates."""
        window = self.settings.window
        grid_height, grid_width = grid.shape[:2]

        best: LocatedPatch | None = None
        scanned = accepted = 0
        for gx, gy in self.window_origins(grid_height, grid_width):
            rect = Rect(gx, gy, window, window)
            stats = self.stats_service.compute(grid, rect)
            verdict = self.validator.validate(stats)
            scanned += 1
            if not verdict.accepted:
                continue
            accepted += 1
            score = float(codec.luminance(stats.means)) - sum(stats.variances)
            if best is None or score > best.score:
                best = LocatedPatch(stats=stats, score=score, grid_rect=rect, region=None)

        logger.debug("Locator scanned %d windows, %d accepted", scanned, accepted)
        return best

    def locate(self, img: Image) -> LocatedPatch | None:
        """Downsample `img`, search it and map the winner back to frame pixels."""
        found = self.search(self.downsample(img))
        if found is None:
            return None
        return LocatedPatch(
            stats=found.stats,
            score=found.score,
            grid_rect=found.grid_rect,
            region=self.to_frame_region(found.grid_rect, img.width, img.height),
        )

    def to_frame_region(self, grid_rect: Rect, width: int, height: int) -> PatchRegion:
        grid = self.settings.grid
        scale_x = width / grid
        scale_y = height / grid
        return PatchRegion(
            x=round(grid_rect.x * scale_x),
            y=round(grid_rect.y * scale_y),
            size=max(1, round(grid_rect.width * min(scale_x, scale_y))),
        )
