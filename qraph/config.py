"""Session configuration and numeric input coercion."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import Any, Optional, Type, TypeVar

import sympy as sp

from .canvas import WHITE, Color
from .errors import InvalidPrecision

__all__ = ["SessionConfig", "coerce_number"]


T = TypeVar("T", int, float)


def coerce_number(obj: Any, dest_type: Type[T] = float, *, name: str = "value") -> T:
    """
    Convert `obj` to a finite real `dest_type` (float or int).

    Rules:
    - Numbers are cast via dest_type(obj); booleans are rejected.
    - Strings are tried as plain numbers first, then parsed as a SymPy
      expression and evaluated (``"1/100"``, ``"2*pi"``).
    - Conversion to int requires an exact integer (``3.0`` is fine, ``3.5`` is not).

    Raises
    ------
    ValueError
        If the value is not real, not finite, or cannot be converted.
    """
    if dest_type not in (float, int):
        raise NotImplementedError(f"Unsupported destination type: {dest_type!r}.")

    def _finish(value: complex) -> T:
        if value.imag != 0:
            raise ValueError(f"{name} must be real, got {obj!r}")
        real = float(value.real)
        if not math.isfinite(real):
            raise ValueError(f"{name} must be finite, got {obj!r}")
        if dest_type is int:
            if not real.is_integer():
                raise ValueError(f"{name} must be an integer, got {obj!r}")
            return int(real)  # type: ignore[return-value]
        return real  # type: ignore[return-value]

    if isinstance(obj, bool):
        raise ValueError(f"{name} must be a number, got {obj!r}")
    # Exact path for Python ints, which may exceed float range.
    if isinstance(obj, int) and dest_type is int:
        return obj  # type: ignore[return-value]

    if isinstance(obj, str):
        s = obj.strip()
        if s == "":
            raise ValueError(f"{name}: cannot convert empty string.")
        try:
            return _finish(complex(float(s)))
        except ValueError:
            pass
        try:
            val = complex(sp.sympify(s).evalf())
        except Exception as e:
            raise ValueError(f"{name}: could not convert {obj!r} (neither directly nor via SymPy).") from e
        return _finish(val)

    try:
        val = complex(obj)
    except Exception as e:
        raise ValueError(f"{name}: could not convert {obj!r} to {dest_type.__name__}.") from e
    return _finish(val)


@dataclass(frozen=True)
class SessionConfig:
    """Settings of one :class:`~qraph.session.RenderSession`.

    Numeric fields accept numbers or numeric strings (see :func:`coerce_number`).

    Attributes
    ----------
    width, height : int
        Canvas size in pixels.
    precision : float
        Step of the diagonal domain scan, in canvas units.
    chunk_size : int
        Samples evaluated per vectorized call; cancellation is checked between chunks.
    max_samples : int
        Upper bound on the samples of one scan.
    noise_cache_size : int
        Entries of the ``p1`` memo.
    color_attempts : int
        Random draws tried before color allocation gives up.
    axes : bool
        Add the two coordinate axes when the session starts.
    axis_color : Color
        Color of the axes entry.
    seed : int or None
        Seed shared by ``rnd()`` and color allocation; ``None`` for OS entropy.
    """

    width: int = 1200
    height: int = 1200
    precision: float = 0.01
    chunk_size: int = 8192
    max_samples: int = 50_000_000
    noise_cache_size: int = 65536
    color_attempts: int = 4096
    axes: bool = True
    axis_color: Color = WHITE
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        for field_name in ("width", "height", "chunk_size", "max_samples", "color_attempts"):
            value = coerce_number(getattr(self, field_name), int, name=field_name)
            if value <= 0:
                raise ValueError(f"{field_name} must be positive, got {value}")
            object.__setattr__(self, field_name, value)

        cache_size = coerce_number(self.noise_cache_size, int, name="noise_cache_size")
        if cache_size < 0:
            raise ValueError(f"noise_cache_size must be >= 0, got {cache_size}")
        object.__setattr__(self, "noise_cache_size", cache_size)

        try:
            precision = coerce_number(self.precision, float, name="precision")
        except ValueError as exc:
            raise InvalidPrecision(str(exc)) from exc
        if precision <= 0:
            raise InvalidPrecision(f"precision must be > 0, got {precision}")
        object.__setattr__(self, "precision", precision)

        if self.seed is not None:
            object.__setattr__(self, "seed", coerce_number(self.seed, int, name="seed"))

        axis_color = self.axis_color
        if isinstance(axis_color, str):
            axis_color = Color.from_hex(axis_color)
        object.__setattr__(self, "axis_color", Color(*axis_color))
        object.__setattr__(self, "axes", bool(self.axes))

    def replace(self, **changes: Any) -> "SessionConfig":
        """Return a copy with *changes* applied (validated like the constructor)."""
        return dataclasses.replace(self, **changes)
