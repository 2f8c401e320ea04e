from __future__ import annotations
import logging
import math

from ..exceptions import DegenerateGainError
from ..models.calibration import GainVector, PatchStatistics
from ..models.settings import GainSettings

logger = logging.getLogger(__name__)


class GainEstimatorService:
    """White-balance gains that map the patch means onto their own average."""

    def __init__(self, settings: GainSettings | None = None):
        self.settings = settings or GainSettings.from_env()

    def estimate(self, stats: PatchStatistics) -> GainVector:
        """
        Returns (t/r, t/g, t/b) with t = (r + g + b) / 3.

        Raises DegenerateGainError when a mean is not finite or under the floor;
        an accepted patch never gets here unless the thresholds are misconfigured.
        """
        means = stats.means
        if any(not math.isfinite(m) or m < self.settings.floor for m in means):
            raise DegenerateGainError(means, self.settings.floor)

        r, g, b = means
        target = (r + g + b) / 3.0
        gains = GainVector(target / r, target / g, target / b)
        logger.debug("Gains from means %s: %s", means, gains)
        return gains
