"""
Test neutral patch acceptance rules
"""
import pytest

from calibration_engine.exceptions import ConfigurationError
from calibration_engine.models.calibration import PatchStatistics, RejectReason
from calibration_engine.models.settings import ValidatorSettings
from calibration_engine.services.patch_validator_service import PatchValidatorService


def grey(level, variance=0.0):
    return PatchStatistics(means=(level, level, level), variances=(variance,) * 3)


def tinted(delta, level=0.7):
    """chroma = 4 * delta, luminance stays near `level`."""
    return PatchStatistics(means=(level + delta, level, level - delta), variances=(0.0,) * 3)


@pytest.fixture
def validator():
    return PatchValidatorService(ValidatorSettings())


class TestLuminanceBand:
    def test_just_below_low_threshold(self, validator):
        verdict = validator.validate(grey(0.59))
        assert not verdict.accepted
        assert verdict.reason is RejectReason.TOO_DIM

    def test_just_above_low_threshold(self, validator):
        assert validator.validate(grey(0.61)).accepted

    def test_just_below_high_threshold(self, validator):
        assert validator.validate(grey(0.79)).accepted

    def test_just_above_high_threshold(self, validator):
        verdict = validator.validate(grey(0.81))
        assert verdict.reason is RejectReason.OVEREXPOSED

    def test_exactly_at_low_threshold_is_accepted(self, validator):
        verdict = validator.validate(grey(0.60))
        assert verdict.accepted
        assert verdict.reason is None
        assert validator.validate(grey(0.60)) == verdict

    def test_exactly_at_high_threshold_is_accepted(self, validator):
        verdict = validator.validate(grey(0.80))
        assert verdict.accepted
        assert verdict.reason is None

    def test_reports_luminance(self, validator):
        assert validator.validate(grey(0.7)).luminance == pytest.approx(0.7)


class TestNeutrality:
    def test_just_below_chroma_threshold(self, validator):
        verdict = validator.validate(tinted(0.014))
        assert verdict.accepted
        assert verdict.chroma == pytest.approx(0.056)

    def test_just_above_chroma_threshold(self, validator):
        verdict = validator.validate(tinted(0.016))
        assert verdict.reason is RejectReason.NOT_NEUTRAL


class TestTexture:
    def test_just_below_texture_threshold(self, validator):
        assert validator.validate(grey(0.7, variance=0.014)).accepted

    def test_just_above_texture_threshold(self, validator):
        verdict = validator.validate(grey(0.7, variance=0.016))
        assert verdict.reason is RejectReason.HIGH_TEXTURE
        assert verdict.texture == pytest.approx(0.016)

    def test_lenient_mode_skips_texture(self, validator):
        stats = PatchStatistics(means=(0.7, 0.7, 0.7), variances=None)
        verdict = validator.validate(stats)
        assert verdict.accepted
        assert verdict.texture is None


class TestOrdering:
    def test_overexposed_before_not_neutral(self, validator):
        stats = PatchStatistics(means=(0.95, 0.85, 0.75), variances=(0.0,) * 3)
        assert validator.validate(stats).reason is RejectReason.OVEREXPOSED

    def test_too_dim_before_high_texture(self, validator):
        assert validator.validate(grey(0.2, variance=0.5)).reason is RejectReason.TOO_DIM

    def test_not_neutral_before_high_texture(self, validator):
        stats = PatchStatistics(means=(0.8, 0.7, 0.6), variances=(0.5,) * 3)
        assert validator.validate(stats).reason is RejectReason.NOT_NEUTRAL


class TestConfiguration:
    def test_custom_band(self):
        validator = PatchValidatorService(ValidatorSettings(lum_min=0.4, lum_max=0.9))
        assert validator.validate(grey(0.45)).accepted
        assert validator.validate(grey(0.85)).accepted

    def test_empty_band_rejected(self):
        with pytest.raises(ConfigurationError):
            ValidatorSettings(lum_min=0.8, lum_max=0.6)
