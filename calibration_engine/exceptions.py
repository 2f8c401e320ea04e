"""
Error taxonomy of the calibration engine.

Patch rejection and "no patch found" are expected outcomes and are reported as
result values by the frame pipeline, not raised. The exceptions below are for
conditions the caller has to act on: an unusable region, a gain that would not
be finite, or a bad configuration.
"""


class CalibrationError(Exception):
    """Base class for all engine errors."""


class InvalidRegionError(CalibrationError, ValueError):
    """A rectangle has no pixels left after clamping to the buffer bounds."""


class DegenerateGainError(CalibrationError):
    """A channel mean is zero or below the numeric floor."""

    def __init__(self, means, floor: float):
        self.means = tuple(float(m) for m in means)
        self.floor = floor
        super().__init__(
            f"Channel mean below floor {floor:g}: "
            f"r={self.means[0]:.6f} g={self.means[1]:.6f} b={self.means[2]:.6f}"
        )


class ConfigurationError(CalibrationError, ValueError):
    """A setting could not be parsed or is out of range."""
