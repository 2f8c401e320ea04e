from __future__ import annotations
from io import BytesIO
from pathlib import Path
from typing import Iterable, Iterator, List, Union
import logging
import os

import cv2
import numpy as np
from PIL import Image as PILImage
from dotenv import load_dotenv

from ..models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def _to_rgba(arr: np.ndarray, *, bgr: bool) -> np.ndarray:
    """Any 1/3/4-channel uint8 array -> contiguous (H, W, 4) RGBA."""
    if arr.dtype != np.uint8:
        raise ValueError(f"Expected 8-bit pixels, got {arr.dtype}")
    arr = np.ascontiguousarray(arr)
    if arr.ndim == 2:
        return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
    channels = arr.shape[2]
    if channels == 3:
        return cv2.cvtColor(arr, cv2.COLOR_BGR2RGBA if bgr else cv2.COLOR_RGB2RGBA)
    if channels == 4:
        return cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA) if bgr else np.ascontiguousarray(arr)
    raise ValueError(f"Unsupported channel count: {channels}")


class ImageRepository:
    """
    Handles file and buffer I/O for Image entities. Everything returned is RGBA.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg,.bmp,.tif,.tiff,.webp")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        pixels = _to_rgba(np.asarray(pixels), bgr=False)
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def from_buffer(data: bytes, width: int, height: int, stride: int | None = None) -> Image:
        """
        Wrap a row-major RGBA byte buffer. `stride` is the byte length of one
        row and may include padding after the last pixel.
        """
        if width < 1 or height < 1:
            raise ValueError(f"Invalid buffer size {width}x{height}")
        row_bytes = width * 4
        stride = stride or row_bytes
        if stride < row_bytes:
            raise ValueError(f"Stride {stride} shorter than a row of {width} RGBA pixels")
        if len(data) < stride * (height - 1) + row_bytes:
            raise ValueError(f"Buffer of {len(data)} bytes too small for {width}x{height} stride {stride}")

        flat = np.frombuffer(data, dtype=np.uint8)
        rows = np.lib.stride_tricks.as_strided(
            flat, shape=(height, row_bytes), strides=(stride, 1), writeable=False
        )
        return Image(pixels=rows.reshape(height, width, 4).copy())

    @staticmethod
    def load(path: Union[str, Path]) -> Image:
        path = Path(path)
        arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        if arr.dtype != np.uint8:
            # 16-bit PNG/TIFF: keep the top byte
            arr = (arr >> 8).astype(np.uint8)
        return Image(pixels=_to_rgba(arr, bgr=True), path=path)

    @staticmethod
    def decode_bytes(data: bytes) -> Image:
        """Decode an encoded file (PNG, JPEG, ...) held in memory."""
        arr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise ValueError("Unreadable image data")
        if arr.dtype != np.uint8:
            arr = (arr >> 8).astype(np.uint8)
        return Image(pixels=_to_rgba(arr, bgr=True))

    @staticmethod
    def encode_png(image: Image) -> bytes:
        buf = BytesIO()
        PILImage.fromarray(image.pixels).save(buf, format="PNG")
        return buf.getvalue()

    @staticmethod
    def save(image: Image) -> None:
        if image.path is None:
            raise ValueError("Image has no path to save to")
        Path(image.path).parent.mkdir(parents=True, exist_ok=True)
        PILImage.fromarray(image.pixels).save(image.path)

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if not p.is_file() or p.suffix.lower() not in allowed:
                logger.debug("Skipping %s", p)
                continue
            try:
                yield self.load(p)
            except (OSError, ValueError) as err:
                logger.warning("Skipping %s: %s", p.name, err)

    def list_dir(self, folder: Union[str, Path], *, recursive: bool = False) -> List[Path]:
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)
        pattern = "**/*" if recursive else "*"
        return [p for p in sorted(folder.glob(pattern))
                if p.is_file() and p.suffix.lower() in self.VALID_EXTS]
