"""
Test image file and buffer I/O
"""
import numpy as np
import pytest
from PIL import Image as PILImage

from calibration_engine.models.region import Rect
from calibration_engine.repositories.image_repository import ImageRepository
from calibration_engine.services.image_service import ImageService

from conftest import make_frame


@pytest.fixture
def repo():
    return ImageRepository()


class TestFromBuffer:
    def test_tight_rows(self, repo):
        data = bytes(range(2 * 3 * 4))
        img = repo.from_buffer(data, width=3, height=2)
        assert img.pixels.shape == (2, 3, 4)
        assert list(img.pixels[1, 0]) == [12, 13, 14, 15]

    def test_padded_rows(self, repo):
        row = bytes([10, 20, 30, 255, 40, 50, 60, 255]) + b"\x00" * 8
        img = repo.from_buffer(row * 2, width=2, height=2, stride=16)
        assert list(img.pixels[1, 1]) == [40, 50, 60, 255]
        assert img.pixels.flags.writeable

    def test_short_buffer(self, repo):
        with pytest.raises(ValueError):
            repo.from_buffer(b"\x00" * 10, width=2, height=2)

    def test_stride_too_small(self, repo):
        with pytest.raises(ValueError):
            repo.from_buffer(b"\x00" * 64, width=4, height=2, stride=8)


class TestCreateImage:
    def test_rgb_gets_opaque_alpha(self, repo):
        rgb = np.full((4, 5, 3), (10, 20, 30), dtype=np.uint8)
        img = repo.create_image(rgb)
        assert img.pixels.shape == (4, 5, 4)
        assert list(img.pixels[0, 0]) == [10, 20, 30, 255]

    def test_grayscale(self, repo):
        img = repo.create_image(np.full((3, 3), 99, dtype=np.uint8))
        assert list(img.pixels[1, 1]) == [99, 99, 99, 255]

    def test_rejects_float(self, repo):
        with pytest.raises(ValueError):
            repo.create_image(np.zeros((2, 2, 3), dtype=np.float32))


class TestFiles:
    def test_png_round_trip(self, repo, tmp_path):
        img = make_frame(7, 5, rgb=(12, 140, 250), alpha=200)
        img.path = tmp_path / "out" / "frame.png"
        repo.save(img)
        loaded = repo.load(img.path)
        np.testing.assert_array_equal(loaded.pixels, img.pixels)

    def test_load_rgb_file(self, repo, tmp_path):
        path = tmp_path / "rgb.png"
        PILImage.new("RGB", (4, 3), color=(200, 100, 50)).save(path)
        loaded = repo.load(path)
        assert list(loaded.pixels[0, 0]) == [200, 100, 50, 255]

    def test_missing_file(self, repo, tmp_path):
        with pytest.raises(FileNotFoundError):
            repo.load(tmp_path / "nope.png")

    def test_encode_decode_bytes(self, repo):
        img = make_frame(6, 6, rgb=(1, 2, 3))
        restored = repo.decode_bytes(repo.encode_png(img))
        np.testing.assert_array_equal(restored.pixels, img.pixels)

    def test_iter_dir_filters_extensions(self, repo, tmp_path):
        PILImage.new("RGB", (4, 4)).save(tmp_path / "a.png")
        PILImage.new("RGB", (4, 4)).save(tmp_path / "b.jpg")
        (tmp_path / "notes.txt").write_text("hello")
        names = sorted(img.path.name for img in repo.iter_dir(tmp_path))
        assert names == ["a.png", "b.jpg"]
        assert [p.name for p in repo.list_dir(tmp_path)] == ["a.png", "b.jpg"]


class TestImageService:
    def test_crop_pixels_clamps(self):
        service = ImageService()
        out = service.crop_pixels(make_frame(10, 10), Rect(6, 6, 10, 10))
        assert out.shape == (4, 4, 4)

    def test_with_pixels_suffix(self, tmp_path):
        service = ImageService()
        img = make_frame(2, 2)
        img.path = tmp_path / "shot.png"
        out = service.with_pixels(img, img.pixels.copy(), suffix="_corrected")
        assert out.path.name == "shot_corrected.png"
