from __future__ import annotations
import logging

from ..models.calibration import PatchStatistics, RejectReason, ValidationVerdict
from ..models.settings import ValidatorSettings
from . import colorimetric_codec as codec

logger = logging.getLogger(__name__)


class PatchValidatorService:
    """
    Decides whether sampled statistics look like a usable neutral reference.

    Checks run in a fixed order and the first failure wins:
      - Luminance band (too_dim / overexposed)
      - Neutrality (not_neutral)
      - Texture / glare, only when variances are available (high_texture)
    Exposure comes first because it is the fix the user can make most easily.
    """

    def __init__(self, settings: ValidatorSettings | None = None):
        self.settings = settings or ValidatorSettings.from_env()

    @staticmethod
    def chroma(means) -> float:
        r, g, b = means
        return abs(r - g) + abs(g - b) + abs(b - r)

    def validate(self, stats: PatchStatistics) -> ValidationVerdict:
        s = self.settings
        lum = float(codec.luminance(stats.means))
        chroma = self.chroma(stats.means)
        texture = None
        if stats.variances is not None:
            texture = sum(stats.variances) / 3.0

        def reject(reason: RejectReason) -> ValidationVerdict:
            logger.debug("Patch rejected (%s): L=%.4f chroma=%.4f texture=%s",
                         reason.value, lum, chroma, texture)
            return ValidationVerdict(False, reason, lum, chroma, texture)

        if lum < s.lum_min:
            return reject(RejectReason.TOO_DIM)
        if lum > s.lum_max:
            return reject(RejectReason.OVEREXPOSED)
        if chroma > s.chroma_max:
            return reject(RejectReason.NOT_NEUTRAL)
        if texture is not None and texture > s.texture_max:
            return reject(RejectReason.HIGH_TEXTURE)

        return ValidationVerdict(True, None, lum, chroma, texture)
