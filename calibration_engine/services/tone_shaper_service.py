from __future__ import annotations
import logging

import numpy as np

from ..models.settings import ToneSettings
from . import colorimetric_codec as codec

logger = logging.getLogger(__name__)


class ToneShaperService:
    """
    Post colour-correction tone shaping on (..., 3) linear triples:
    luminance-preserving highlight roll-off, a linear contrast curve around a
    pivot and an optional saturation clamp. Nothing is clipped here; the
    encoder saturates at the end.
    """

    def __init__(self, settings: ToneSettings | None = None):
        self.settings = settings or ToneSettings.from_env()

    @staticmethod
    def compress_highlights(rgb: np.ndarray) -> np.ndarray:
        """Scale each triple by L'/L with L' = L / (1 + L); L = 0 is left alone."""
        lum = codec.luminance(rgb)
        with np.errstate(divide="ignore", invalid="ignore"):
            scale = np.where(lum != 0, 1.0 / (1.0 + lum), 1.0)
        return rgb * scale[..., np.newaxis]

    @staticmethod
    def apply_contrast(rgb: np.ndarray, pivot: float, amount: float) -> np.ndarray:
        return (rgb - pivot) * (1.0 + amount) + pivot

    @staticmethod
    def clamp_saturation(rgb: np.ndarray, max_saturation: float, all_channels: bool = False) -> np.ndarray:
        """
        Bound each channel's deviation from luminance to +/- L * (max_saturation - 1).
        Only red is clamped unless `all_channels` is set.
        """
        lum = codec.luminance(rgb)[..., np.newaxis]
        bound = np.abs(lum) * (max_saturation - 1.0)
        clamped = lum + np.clip(rgb - lum, -bound, bound)
        if all_channels:
            return clamped
        out = rgb.copy()
        out[..., 0] = clamped[..., 0]
        return out

    def shape(self, rgb: np.ndarray) -> np.ndarray:
        s = self.settings
        out = np.asarray(rgb, dtype=np.float64)
        if s.highlight_compression:
            out = self.compress_highlights(out)
        if s.contrast != 0.0:
            out = self.apply_contrast(out, s.pivot, s.contrast)
        if s.max_saturation is not None:
            out = self.clamp_saturation(out, s.max_saturation, s.saturation_all_channels)
        return out
