"""
Frame pipeline: the entry points the capture application calls.

    calibrate(frame, region | None)  -> CalibrationResult
    render(frame, gains, matrix)     -> Image
    check_focus(frame)               -> FocusVerdict
    crop(frame, fractional rect)     -> Image
    capture(frame, session)          -> CaptureResult (focus None on tiny frames)

Rendering applies, per pixel and in this order: decode -> gains -> colour
matrix -> tone shaping -> encode. Alpha is copied through untouched.
"""
from __future__ import annotations
import logging

import numpy as np

from ..exceptions import DegenerateGainError, InvalidRegionError
from ..models.calibration import (
    CalibrationResult,
    CalibrationStatus,
    CaptureResult,
    FocusVerdict,
    GainVector,
    RejectReason,
)
from ..models.image import Image
from ..models.region import FractionalRect, PatchRegion
from ..models.settings import EngineSettings, ToneSettings
from ..services import colorimetric_codec as codec
from ..services.color_transform_service import ColorTransformService
from ..services.focus_service import FocusService
from ..services.gain_estimator_service import GainEstimatorService
from ..services.image_service import ImageService
from ..services.patch_locator_service import PatchLocatorService
from ..services.patch_statistics_service import PatchStatisticsService
from ..services.patch_validator_service import PatchValidatorService
from ..services.tone_shaper_service import ToneShaperService
from .calibration_session import CalibrationSession

logger = logging.getLogger(__name__)


class FramePipeline:
    """
    Stateless orchestration over the engine services. Gains and the colour
    matrix come in as arguments (or from the caller's CalibrationSession), so
    one pipeline instance can serve many sessions.
    """

    def __init__(self, settings: EngineSettings | None = None, *, band_rows: int = 256):
        self.settings = settings or EngineSettings.from_env()
        self.band_rows = band_rows

        s = self.settings
        self.stats_service = PatchStatisticsService()
        self.validator = PatchValidatorService(s.validator)
        self.gain_estimator = GainEstimatorService(s.gain)
        self.locator = PatchLocatorService(s.locator, self.stats_service, self.validator)
        self.color_transform = ColorTransformService(s.ccm_matrix())
        self.tone_shaper = ToneShaperService(s.tone)
        self.focus_service = FocusService(s.focus)
        self.image_service = ImageService()

    # ─── Calibration ───────────────────────────────────────────────
    def default_region(self, img: Image) -> PatchRegion:
        """Centre sampling box sized by the configured patch fraction."""
        return PatchRegion.centered(img.width, img.height, self.settings.patch_fraction)

    def calibrate(self, img: Image, region: PatchRegion | None = None) -> CalibrationResult:
        """
        Sample `region` (or auto-locate a patch when None), validate it and
        derive gains. Every outcome comes back as a CalibrationResult.
        """
        located = None
        if region is None:
            located = self.locator.locate(img)
            if located is None:
                logger.warning("Auto-search found no usable neutral patch")
                return CalibrationResult(CalibrationStatus.NOT_FOUND,
                                         detail="No neutral patch found; sample manually")
            stats = located.stats
        else:
            try:
                stats = self.stats_service.compute(img.pixels, region.to_rect())
            except InvalidRegionError as err:
                logger.warning("Invalid patch region: %s", err)
                return CalibrationResult(CalibrationStatus.INVALID_REGION, detail=str(err))

        verdict = self.validator.validate(stats)
        if not verdict.accepted:
            logger.warning("Patch rejected: %s (L=%.3f chroma=%.3f)",
                           verdict.reason.value, verdict.luminance, verdict.chroma)
            return CalibrationResult(CalibrationStatus.REJECTED, reason=verdict.reason,
                                     stats=stats, verdict=verdict, located=located)

        try:
            gains = self.gain_estimator.estimate(stats)
        except DegenerateGainError as err:
            logger.warning("Degenerate gain from an accepted patch, check thresholds: %s", err)
            return CalibrationResult(CalibrationStatus.DEGENERATE_GAIN, reason=RejectReason.TOO_DIM,
                                     stats=stats, verdict=verdict, located=located, detail=str(err))

        logger.info("Calibrated: gains r=%.4f g=%.4f b=%.4f", gains.r, gains.g, gains.b)
        return CalibrationResult(CalibrationStatus.CALIBRATED, gains=gains, stats=stats,
                                 verdict=verdict, located=located)

    # ─── Rendering ─────────────────────────────────────────────────
    def _tone_shaper_for(self, tone: ToneSettings | None) -> ToneShaperService:
        return self.tone_shaper if tone is None else ToneShaperService(tone)

    def render_rgb(self, rgb: np.ndarray, gains: GainVector, transform: ColorTransformService,
                   tone_shaper: ToneShaperService) -> np.ndarray:
        """Encoded (..., 3) uint8 -> corrected encoded (..., 3) uint8."""
        linear = codec.decode_pixels(rgb)
        linear = transform.transform(linear, gains)
        linear = tone_shaper.shape(linear)
        return codec.encode(linear)

    def render(
        self,
        img: Image,
        gains: GainVector | None = None,
        matrix: np.ndarray | None = None,
        *,
        tone: ToneSettings | None = None,
    ) -> Image:
        """
        Corrected copy of `img`. `matrix` defaults to the configured CCM and
        `tone` to the configured tone settings. Work is done in horizontal
        bands to bound memory on large frames.
        """
        gains = gains or GainVector()
        transform = self.color_transform if matrix is None else ColorTransformService(matrix)
        tone_shaper = self._tone_shaper_for(tone)

        out = np.empty_like(img.pixels)
        for top in range(0, img.height, self.band_rows):
            band = slice(top, top + self.band_rows)
            out[band, :, :3] = self.render_rgb(img.pixels[band, :, :3], gains, transform, tone_shaper)
        out[..., 3] = img.pixels[..., 3]

        logger.debug("Rendered %dx%d frame with gains %s", img.width, img.height, gains.as_tuple())
        return self.image_service.with_pixels(img, out, suffix="_corrected")

    # ─── Focus / crop ──────────────────────────────────────────────
    def check_focus(self, img: Image) -> FocusVerdict:
        return self.focus_service.check_focus(img)

    def focus_or_none(self, img: Image) -> FocusVerdict | None:
        """Focus verdict, or None when the frame is too small to judge."""
        try:
            return self.check_focus(img)
        except InvalidRegionError as err:
            logger.debug("Focus unknown: %s", err)
            return None

    def crop(self, img: Image, rect: FractionalRect | None = None) -> Image:
        """Crop to a fractional rectangle (default: configured output crop)."""
        rect = rect or self.settings.output_crop
        pixel_rect = rect.to_rect(img.width, img.height)
        return self.image_service.create_image(
            self.image_service.crop_pixels(img, pixel_rect), img.path
        )

    # ─── Capture flow ──────────────────────────────────────────────
    def capture(self, img: Image, session: CalibrationSession) -> CaptureResult:
        """Focus check on the raw frame, optional output crop, then render."""
        focus = self.focus_or_none(img)
        if focus is not None and focus.blurry:
            logger.warning("Soft focus (variance %.1f < %.1f)", focus.variance, focus.threshold)

        frame = self.crop(img) if self.settings.crop_output else img
        corrected = self.render(frame, session.gains)
        return CaptureResult(image=corrected, focus=focus, gains=session.gains)
