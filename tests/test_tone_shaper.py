"""
Test highlight compression, contrast and the saturation guard
"""
import numpy as np
import pytest

from calibration_engine.models.settings import ToneSettings
from calibration_engine.services import colorimetric_codec as codec
from calibration_engine.services.tone_shaper_service import ToneShaperService


class TestHighlightCompression:
    def test_grey(self):
        out = ToneShaperService.compress_highlights(np.array([0.5, 0.5, 0.5]))
        np.testing.assert_allclose(out, [1 / 3] * 3)

    def test_luminance_follows_reinhard(self):
        rgb = np.array([1.2, 0.9, 0.4])
        lum = float(codec.luminance(rgb))
        out = ToneShaperService.compress_highlights(rgb)
        assert float(codec.luminance(out)) == pytest.approx(lum / (1 + lum))

    def test_preserves_channel_ratios(self):
        out = ToneShaperService.compress_highlights(np.array([0.8, 0.4, 0.2]))
        assert out[0] / out[1] == pytest.approx(2.0)
        assert out[1] / out[2] == pytest.approx(2.0)

    def test_black_untouched(self):
        out = ToneShaperService.compress_highlights(np.zeros((2, 2, 3)))
        assert np.all(out == 0)
        assert np.all(np.isfinite(out))


class TestContrast:
    def test_pivot_is_fixed_point(self):
        out = ToneShaperService.apply_contrast(np.array([0.18] * 3), 0.18, 0.2)
        np.testing.assert_allclose(out, [0.18] * 3)

    def test_expands_around_pivot(self):
        out = ToneShaperService.apply_contrast(np.array([0.5, 0.1, 0.18]), 0.18, 0.2)
        np.testing.assert_allclose(out, [0.564, 0.084, 0.18])

    def test_not_clamped(self):
        out = ToneShaperService.apply_contrast(np.array([0.0, 1.0, 1.0]), 0.18, 0.2)
        assert out[0] < 0
        assert out[1] > 1


class TestSaturationClamp:
    def test_red_only(self):
        rgb = np.array([0.9, 0.3, 0.3])
        lum = float(codec.luminance(rgb))
        out = ToneShaperService.clamp_saturation(rgb, 1.10)
        assert out[0] == pytest.approx(lum + 0.1 * lum)
        assert out[1] == pytest.approx(0.3)
        assert out[2] == pytest.approx(0.3)

    def test_all_channels(self):
        rgb = np.array([0.9, 0.3, 0.3])
        lum = float(codec.luminance(rgb))
        out = ToneShaperService.clamp_saturation(rgb, 1.10, all_channels=True)
        assert out[1] == pytest.approx(lum - 0.1 * lum)
        assert np.all(np.abs(out - lum) <= 0.1 * lum + 1e-12)

    def test_small_deviation_kept(self):
        rgb = np.array([0.52, 0.5, 0.5])
        out = ToneShaperService.clamp_saturation(rgb, 1.10)
        np.testing.assert_allclose(out, rgb)

    def test_does_not_modify_input(self):
        rgb = np.array([0.9, 0.3, 0.3])
        ToneShaperService.clamp_saturation(rgb, 1.10)
        np.testing.assert_array_equal(rgb, [0.9, 0.3, 0.3])


class TestShape:
    def test_neutral_settings_are_identity(self):
        rgb = np.random.default_rng(1).random((4, 4, 3)) * 1.3
        out = ToneShaperService(ToneSettings.neutral()).shape(rgb)
        np.testing.assert_allclose(out, rgb)

    def test_grey_stays_grey(self):
        out = ToneShaperService(ToneSettings()).shape(np.array([0.4, 0.4, 0.4]))
        assert out[0] == pytest.approx(out[1])
        assert out[1] == pytest.approx(out[2])

    def test_default_chain(self):
        out = ToneShaperService(ToneSettings()).shape(np.array([0.5, 0.5, 0.5]))
        expected = (1 / 3 - 0.18) * 1.2 + 0.18
        np.testing.assert_allclose(out, [expected] * 3)
