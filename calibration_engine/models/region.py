from __future__ import annotations
from dataclasses import dataclass

from ..exceptions import InvalidRegionError


@dataclass(frozen=True)
class Rect:
    """Integer pixel rectangle (x, y, width, height) in buffer coordinates."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def clamp(self, buf_width: int, buf_height: int) -> "Rect":
        """
        Intersect with a (buf_width x buf_height) buffer.

        Raises InvalidRegionError if nothing of the rectangle is left, so the
        result always satisfies x, y >= 0, right <= W, bottom <= H and area >= 1.
        """
        left = max(0, self.x)
        top = max(0, self.y)
        right = min(buf_width, self.right)
        bottom = min(buf_height, self.bottom)
        if right - left < 1 or bottom - top < 1:
            raise InvalidRegionError(
                f"Region {self} has no pixels inside a {buf_width}x{buf_height} buffer"
            )
        return Rect(left, top, right - left, bottom - top)

    def slices(self) -> tuple[slice, slice]:
        """(rows, cols) slices for indexing an (H, W, C) array."""
        return slice(self.y, self.bottom), slice(self.x, self.right)


@dataclass(frozen=True)
class PatchRegion:
    """Square sampling patch: top-left corner plus edge length, in pixels."""
    x: int
    y: int
    size: int

    def to_rect(self) -> Rect:
        return Rect(self.x, self.y, self.size, self.size)

    @classmethod
    def centered(cls, width: int, height: int, fraction: float) -> "PatchRegion":
        """Patch in the middle of the frame, edge = fraction * min(W, H)."""
        size = max(1, round(fraction * min(width, height)))
        return cls(x=(width - size) // 2, y=(height - size) // 2, size=size)


@dataclass(frozen=True)
class FractionalRect:
    """Rectangle given as fractions of the frame size, e.g. an output crop."""
    x: float
    y: float
    w: float
    h: float

    def to_rect(self, width: int, height: int) -> Rect:
        """Scale to pixels and clamp; raises InvalidRegionError on zero area."""
        rect = Rect(
            x=round(self.x * width),
            y=round(self.y * height),
            width=round(self.w * width),
            height=round(self.h * height),
        )
        return rect.clamp(width, height)

    @classmethod
    def parse(cls, text: str) -> "FractionalRect":
        """Parse an 'x,y,w,h' string."""
        parts = [float(p) for p in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Expected 4 comma-separated fractions, got {text!r}")
        return cls(*parts)
