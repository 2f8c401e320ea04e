from pathlib import Path
from typing import Iterable, Iterator, Union
import logging

import numpy as np

from ..models.image import Image
from ..models.region import Rect
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


class ImageService:
    """I/O helpers and buffer bookkeeping.  No colour science here."""
    def __init__(self, image_repository: ImageRepository | None = None):
        self.image_repository = image_repository or ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def from_buffer(self, data: bytes, width: int, height: int, stride: int | None = None) -> Image:
        """Wrap a raw RGBA frame grab (row-major, 4 bytes per pixel)."""
        return self.image_repository.from_buffer(data, width, height, stride)

    def load(self, path: str | Path) -> Image:
        """Load a single image from disk into an Image object."""
        return self.image_repository.load(path)

    def decode_bytes(self, data: bytes) -> Image:
        return self.image_repository.decode_bytes(data)

    def to_png_bytes(self, image: Image) -> bytes:
        return self.image_repository.encode_png(image)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder, recursive=recursive, exts=exts)

    def list_gallery(self, folder: Union[str, Path], *, recursive: bool = False) -> list[Path]:
        return self.image_repository.list_dir(folder, recursive=recursive)

    def save(self, image: Image) -> None:
        """
        Business-level method to save the image to its path (PNG keeps it lossless).
        """
        self.image_repository.save(image)

    def crop_pixels(self, img: Image, rect: Rect) -> np.ndarray:
        """Copy of the pixels inside `rect`, which is clamped to the image first."""
        rect = rect.clamp(img.width, img.height)
        logger.debug("Crop %dx%d -> %s", img.width, img.height, rect)
        rows, cols = rect.slices()
        return img.pixels[rows, cols].copy()

    def with_pixels(self, img: Image, new_pixels: np.ndarray, suffix: str = "") -> Image:
        """
        New Image holding `new_pixels`; the source pixels are kept as
        `original_pixels` for before/after comparison.
        """
        new_path = None
        if img.path is not None and suffix:
            new_path = Path(img.path).with_stem(Path(img.path).stem + suffix)
        elif img.path is not None:
            new_path = Path(img.path)
        original = img.original_pixels if img.original_pixels is not None else img.pixels
        return Image(pixels=new_pixels, path=new_path, original_pixels=original)
