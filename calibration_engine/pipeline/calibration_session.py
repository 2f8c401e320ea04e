from __future__ import annotations
from dataclasses import dataclass, field
import logging
import uuid

from ..models.calibration import CalibrationResult, GainVector

logger = logging.getLogger(__name__)


@dataclass
class CalibrationSession:
    """
    Calibration state for one capture session. The caller owns it and passes
    it into the pipeline; gains only change on a successful calibration.
    Reset it whenever the camera or its facing mode changes.
    """
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    gains: GainVector = field(default_factory=GainVector)
    last_result: CalibrationResult | None = None
    calibrations: int = 0

    @property
    def is_calibrated(self) -> bool:
        return self.calibrations > 0

    def apply(self, result: CalibrationResult) -> bool:
        """Record `result`; adopt its gains if it succeeded. Returns True on adoption."""
        self.last_result = result
        if not result.ok:
            return False
        self.gains = result.gains
        self.calibrations += 1
        logger.info("Session %s gains locked: r=%.4f g=%.4f b=%.4f",
                    self.session_id, self.gains.r, self.gains.g, self.gains.b)
        return True

    def reset(self) -> None:
        self.gains = GainVector()
        self.last_result = None
        self.calibrations = 0
