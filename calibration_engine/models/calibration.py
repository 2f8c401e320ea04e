from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np

from .image import Image
from .region import PatchRegion, Rect


Triple = Tuple[float, float, float]


@dataclass(frozen=True)
class PatchStatistics:
    """Per-channel linear mean (and population variance) over a region."""
    means: Triple                   # (r, g, b) linear
    variances: Triple | None = None # (r, g, b) linear, divide-by-N
    pixel_count: int = 0


@dataclass(frozen=True)
class GainVector:
    """Per-channel multiplicative white-balance gains."""
    r: float = 1.0
    g: float = 1.0
    b: float = 1.0

    def as_array(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b], dtype=np.float64)

    def as_tuple(self) -> Triple:
        return (self.r, self.g, self.b)


class RejectReason(str, Enum):
    TOO_DIM = "too_dim"
    OVEREXPOSED = "overexposed"
    NOT_NEUTRAL = "not_neutral"
    HIGH_TEXTURE = "high_texture"


@dataclass(frozen=True)
class ValidationVerdict:
    accepted: bool
    reason: RejectReason | None = None
    luminance: float = 0.0
    chroma: float = 0.0
    texture: float | None = None # mean channel variance, None in lenient mode

    def __bool__(self) -> bool:
        return self.accepted


@dataclass(frozen=True)
class LocatedPatch:
    """Best window found by the auto-search."""
    stats: PatchStatistics
    score: float
    grid_rect: Rect            # window in downsampled-grid coordinates
    region: PatchRegion | None # same window mapped onto the full frame


@dataclass(frozen=True)
class FocusVerdict:
    blurry: bool
    variance: float  # Laplacian variance on the 8-bit luminance scale
    threshold: float

    @property
    def message(self) -> str:
        return "Focus soft. Adjust distance or hold steadier." if self.blurry else ""


class CalibrationStatus(str, Enum):
    CALIBRATED = "calibrated"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    INVALID_REGION = "invalid_region"
    DEGENERATE_GAIN = "degenerate_gain"


@dataclass(frozen=True)
class CalibrationResult:
    """
    Outcome of one calibration attempt. Only CALIBRATED carries gains;
    every other status tells the caller what to do next (re-sample, fall back
    to manual sampling, pick another region).
    """
    status: CalibrationStatus
    gains: GainVector | None = None
    reason: RejectReason | None = None
    stats: PatchStatistics | None = None
    verdict: ValidationVerdict | None = None
    located: LocatedPatch | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is CalibrationStatus.CALIBRATED

    def to_dict(self) -> dict:
        out: dict = {"status": self.status.value}
        if self.gains is not None:
            out["gains"] = list(self.gains.as_tuple())
        if self.reason is not None:
            out["reason"] = self.reason.value
        if self.stats is not None:
            out["means"] = list(self.stats.means)
            if self.stats.variances is not None:
                out["variances"] = list(self.stats.variances)
        if self.verdict is not None:
            out["luminance"] = self.verdict.luminance
            out["chroma"] = self.verdict.chroma
        if self.located is not None and self.located.region is not None:
            r = self.located.region
            out["region"] = {"x": r.x, "y": r.y, "size": r.size}
        if self.detail:
            out["detail"] = self.detail
        return out


@dataclass(frozen=True)
class CaptureResult:
    """Corrected frame plus the focus verdict taken on the raw frame."""
    image: Image
    focus: FocusVerdict | None  # None when the frame is too small to judge
    gains: GainVector
