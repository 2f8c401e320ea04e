"""
sRGB transfer function between 8-bit encoded samples and linear light.

Functions accept Python scalars or numpy arrays of any shape and are pure.
"""
from __future__ import annotations

import numpy as np

# ITU-R BT.709 luminance weights
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722], dtype=np.float64)

_DECODE_KNEE = 0.04045      # encoded, normalised
_ENCODE_KNEE = 0.0031308    # linear


def decode(encoded):
    """8-bit encoded value(s) in [0, 255] -> linear light in [0, 1]."""
    c = np.asarray(encoded, dtype=np.float64) / 255.0
    return np.where(
        c <= _DECODE_KNEE,
        c / 12.92,
        np.power((np.maximum(c, _DECODE_KNEE) + 0.055) / 1.055, 2.4),
    )


# Every possible input, decoded once.
DECODE_LUT = decode(np.arange(256))


def decode_pixels(pixels: np.ndarray) -> np.ndarray:
    """uint8 array -> float64 linear array of the same shape, via lookup."""
    return DECODE_LUT[np.asarray(pixels, dtype=np.uint8)]


def encode(linear):
    """
    Linear value(s) -> 8-bit encoded value(s), rounded and saturated to [0, 255].

    Out-of-range input is clipped, NaN maps to 0 and +/-inf to the nearest bound.
    """
    x = np.nan_to_num(np.asarray(linear, dtype=np.float64), nan=0.0, posinf=1.0, neginf=0.0)
    x = np.clip(x, 0.0, 1.0)
    c = np.where(
        x <= _ENCODE_KNEE,
        x * 12.92,
        1.055 * np.power(np.maximum(x, _ENCODE_KNEE), 1.0 / 2.4) - 0.055,
    )
    return np.clip(np.rint(c * 255.0), 0, 255).astype(np.uint8)


def luminance(rgb) -> np.ndarray:
    """BT.709 luminance of (..., 3) linear triples."""
    return np.asarray(rgb, dtype=np.float64) @ LUMA_WEIGHTS
