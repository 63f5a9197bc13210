"""RGBA pixel canvas and color type."""

from __future__ import annotations

from typing import Any, NamedTuple, Protocol, runtime_checkable

import numpy as np

__all__ = ["Color", "WHITE", "TRANSPARENT", "Canvas", "CanvasLike"]


class Color(NamedTuple):
    """8-bit RGBA color; hashable, used as a registry key."""

    r: int
    g: int
    b: int
    a: int = 255

    @classmethod
    def from_hex(cls, text: str) -> "Color":
        """Parse ``#rrggbb`` or ``#rrggbbaa``.

        >>> Color.from_hex("#ff8000")
        Color(r=255, g=128, b=0, a=255)
        """
        digits = text.strip().lstrip("#")
        if len(digits) not in (6, 8):
            raise ValueError(f"expected #rrggbb or #rrggbbaa, got {text!r}")
        try:
            channels = [int(digits[i : i + 2], 16) for i in range(0, len(digits), 2)]
        except ValueError:
            raise ValueError(f"invalid hex color {text!r}") from None
        return cls(*channels)

    @property
    def hex(self) -> str:
        return "#{:02x}{:02x}{:02x}{:02x}".format(*self)


WHITE = Color(255, 255, 255)
TRANSPARENT = Color(0, 0, 0, 0)


@runtime_checkable
class CanvasLike(Protocol):
    """Minimum surface the rasterizer draws on."""

    width: int
    height: int

    def set(self, x: int, y: int, color: Color) -> None:
        ...


class Canvas:
    """``width`` x ``height`` RGBA buffer, indexed ``(x, y)`` with ``y`` growing downwards.

    Pixels are stored as a ``uint8`` array of shape ``(height, width, 4)``.
    Writes outside the canvas are ignored.
    """

    def __init__(self, width: int, height: int) -> None:
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"canvas size must be positive, got {width}x{height}")
        self._pixels = np.zeros((height, width, 4), dtype=np.uint8)

    def __repr__(self) -> str:
        return f"Canvas({self.width}, {self.height})"

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    def set(self, x: int, y: int, color: Color) -> None:
        if 0 <= x < self.width and 0 <= y < self.height:
            self._pixels[y, x] = color

    def set_many(self, xs: Any, ys: Any, color: Color) -> None:
        """Set every ``(xs[i], ys[i])`` to *color*, skipping out-of-range pairs."""
        xs = np.asarray(xs, dtype=np.intp)
        ys = np.asarray(ys, dtype=np.intp)
        inside = (xs >= 0) & (xs < self.width) & (ys >= 0) & (ys < self.height)
        self._pixels[ys[inside], xs[inside]] = color

    def get(self, x: int, y: int) -> Color:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} canvas")
        return Color(*(int(c) for c in self._pixels[y, x]))

    def clear(self) -> None:
        self._pixels.fill(0)

    def lit_mask(self) -> np.ndarray:
        """Boolean ``(height, width)`` mask of pixels that are not fully cleared."""
        return np.any(self._pixels != 0, axis=-1)

    @property
    def pixels(self) -> np.ndarray:
        """Read-only view of the pixel array."""
        view = self._pixels.view()
        view.flags.writeable = False
        return view

    def copy(self) -> "Canvas":
        out = Canvas(self.width, self.height)
        out._pixels[...] = self._pixels
        return out
