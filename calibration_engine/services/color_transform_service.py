from __future__ import annotations

import numpy as np

from ..models.calibration import GainVector


class ColorTransformService:
    """Gain correction followed by a fixed 3x3 colour correction matrix."""

    def __init__(self, matrix: np.ndarray):
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (3, 3):
            raise ValueError(f"Colour correction matrix must be 3x3, got {matrix.shape}")
        self.matrix = matrix

    @staticmethod
    def apply_gains(linear: np.ndarray, gains: GainVector) -> np.ndarray:
        return np.asarray(linear, dtype=np.float64) * gains.as_array()

    def apply_matrix(self, linear: np.ndarray) -> np.ndarray:
        """out[..., i] = sum_j M[i, j] * in[..., j]; no normalisation."""
        return np.asarray(linear, dtype=np.float64) @ self.matrix.T

    def transform(self, linear: np.ndarray, gains: GainVector) -> np.ndarray:
        return self.apply_matrix(self.apply_gains(linear, gains))
