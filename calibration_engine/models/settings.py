"""
Engine settings.

Every value can be overridden through environment variables (a `.env` file in
the working directory is honoured) or by constructing the dataclasses directly.
Defaults are the values of the latest tuned capture flow.
"""
from __future__ import annotations
from dataclasses import dataclass, field
import os

import numpy as np
from dotenv import load_dotenv

from ..exceptions import ConfigurationError
from .region import FractionalRect

# Load environment variables
load_dotenv()

DEFAULT_CCM = (
    (1.06, -0.04, -0.02),
    (-0.03, 1.05, -0.02),
    (-0.01, -0.05, 1.06),
)
DEFAULT_OUTPUT_CROP = FractionalRect(0.10, 0.12, 0.80, 0.64)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ValidatorSettings:
    lum_min: float = 0.60
    lum_max: float = 0.80
    chroma_max: float = 0.06
    texture_max: float = 0.015

    def __post_init__(self):
        if not self.lum_min < self.lum_max:
            raise ConfigurationError(
                f"Empty luminance band [{self.lum_min}, {self.lum_max}]"
            )

    @classmethod
    def from_env(cls) -> "ValidatorSettings":
        return cls(
            lum_min=_env_float("CALIBRATION_LUM_MIN", 0.60),
            lum_max=_env_float("CALIBRATION_LUM_MAX", 0.80),
            chroma_max=_env_float("CALIBRATION_CHROMA_MAX", 0.06),
            texture_max=_env_float("CALIBRATION_TEXTURE_MAX", 0.015),
        )


@dataclass(frozen=True)
class GainSettings:
    floor: float = 1e-4 # smallest channel mean a gain may be derived from

    @classmethod
    def from_env(cls) -> "GainSettings":
        return cls(floor=_env_float("CALIBRATION_GAIN_FLOOR", 1e-4))


@dataclass(frozen=True)
class LocatorSettings:
    grid: int = 40
    window: int = 6
    stride: int = 3

    def __post_init__(self):
        if self.window < 1 or self.stride < 1 or self.grid < self.window:
            raise ConfigurationError(
                f"Invalid locator geometry grid={self.grid} "
                f"window={self.window} stride={self.stride}"
            )

    @classmethod
    def from_env(cls) -> "LocatorSettings":
        return cls(
            grid=_env_int("LOCATOR_GRID", 40),
            window=_env_int("LOCATOR_WINDOW", 6),
            stride=_env_int("LOCATOR_STRIDE", 3),
        )


@dataclass(frozen=True)
class ToneSettings:
    highlight_compression: bool = True
    pivot: float = 0.18
    contrast: float = 0.20
    max_saturation: float | None = 1.10 # None disables the clamp
    saturation_all_channels: bool = False

    @classmethod
    def neutral(cls) -> "ToneSettings":
        """Settings under which the tone shaper is the identity."""
        return cls(highlight_compression=False, contrast=0.0, max_saturation=None)

    @classmethod
    def from_env(cls) -> "ToneSettings":
        max_sat = _env_float("TONE_MAX_SATURATION", 1.10)
        return cls(
            highlight_compression=_env_bool("TONE_HIGHLIGHT_COMPRESSION", True),
            pivot=_env_float("TONE_PIVOT", 0.18),
            contrast=_env_float("TONE_CONTRAST", 0.20),
            max_saturation=max_sat if max_sat > 0 else None,
            saturation_all_channels=_env_bool("TONE_SATURATION_ALL_CHANNELS", False),
        )


@dataclass(frozen=True)
class FocusSettings:
    blur_threshold: float = 2500.0
    crop_fraction: float = 0.25

    @classmethod
    def from_env(cls) -> "FocusSettings":
        return cls(
            blur_threshold=_env_float("FOCUS_BLUR_THRESHOLD", 2500.0),
            crop_fraction=_env_float("FOCUS_CROP_FRACTION", 0.25),
        )


def parse_ccm(text: str) -> np.ndarray:
    """Nine comma-separated reals, row-major -> (3, 3) matrix."""
    try:
        values = [float(v) for v in text.split(",")]
    except ValueError:
        raise ConfigurationError(f"CCM entries must be numbers: {text!r}") from None
    if len(values) != 9:
        raise ConfigurationError(f"CCM needs 9 entries, got {len(values)}")
    return np.array(values, dtype=np.float64).reshape(3, 3)


@dataclass(frozen=True)
class EngineSettings:
    validator: ValidatorSettings = field(default_factory=ValidatorSettings)
    gain: GainSettings = field(default_factory=GainSettings)
    locator: LocatorSettings = field(default_factory=LocatorSettings)
    tone: ToneSettings = field(default_factory=ToneSettings)
    focus: FocusSettings = field(default_factory=FocusSettings)
    ccm: tuple = DEFAULT_CCM
    patch_fraction: float = 0.12
    output_crop: FractionalRect = DEFAULT_OUTPUT_CROP
    crop_output: bool = False

    def ccm_matrix(self) -> np.ndarray:
        matrix = np.asarray(self.ccm, dtype=np.float64)
        if matrix.shape != (3, 3):
            raise ConfigurationError(f"CCM must be 3x3, got shape {matrix.shape}")
        return matrix

    @classmethod
    def from_env(cls) -> "EngineSettings":
        ccm_raw = os.getenv("CALIBRATION_CCM")
        ccm = DEFAULT_CCM
        if ccm_raw:
            ccm = tuple(tuple(row) for row in parse_ccm(ccm_raw).tolist())

        crop_raw = os.getenv("OUTPUT_CROP")
        crop = DEFAULT_OUTPUT_CROP
        if crop_raw:
            try:
                crop = FractionalRect.parse(crop_raw)
            except ValueError as err:
                raise ConfigurationError(f"OUTPUT_CROP: {err}") from None

        return cls(
            validator=ValidatorSettings.from_env(),
            gain=GainSettings.from_env(),
            locator=LocatorSettings.from_env(),
            tone=ToneSettings.from_env(),
            focus=FocusSettings.from_env(),
            ccm=ccm,
            patch_fraction=_env_float("PATCH_SIZE_FRACTION", 0.12),
            output_crop=crop,
            crop_output=_env_bool("OUTPUT_CROP_ENABLED", False),
        )
