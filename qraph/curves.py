"""Analytic graphs that need no parsing (used for the axes and as quick presets)."""

from __future__ import annotations

from typing import Any

import numpy as np

from .graph import BranchGraph

__all__ = [
    "linear",
    "quadratic",
    "cubic",
    "quartic",
    "exponential",
    "constant_x",
    "constant_y",
    "constant",
    "circle",
]


def _sample_x(x: Any, y: Any) -> Any:
    return x


def _sample_y(x: Any, y: Any) -> Any:
    return y


def _fixed(value: float):
    def member(x: Any, y: Any) -> float:
        return value

    return member


def linear(m: float, b: float) -> BranchGraph:
    """``y = m*x + b``"""
    return BranchGraph((_sample_x,), (lambda x, y: m * x + b,), label=f"linear({m}, {b})")


def quadratic(a: float, b: float, c: float) -> BranchGraph:
    """``y = a*x^2 + b*x + c``"""
    return BranchGraph((_sample_x,), (lambda x, y: a * x * x + b * x + c,), label=f"quadratic({a}, {b}, {c})")


def cubic(a: float, b: float, c: float, d: float) -> BranchGraph:
    """``y = a*x^3 + b*x^2 + c*x + d``"""

    def member(x: Any, y: Any) -> Any:
        return a * np.power(x, 3) + b * np.power(x, 2) + c * x + d

    return BranchGraph((_sample_x,), (member,), label=f"cubic({a}, {b}, {c}, {d})")


def quartic(a: float, b: float, c: float, d: float, e: float) -> BranchGraph:
    """``y = a*x^4 + b*x^3 + c*x^2 + d*x + e``"""

    def member(x: Any, y: Any) -> Any:
        return a * np.power(x, 4) + b * np.power(x, 3) + c * np.power(x, 2) + d * x + e

    return BranchGraph((_sample_x,), (member,), label=f"quartic({a}, {b}, {c}, {d}, {e})")


def exponential() -> BranchGraph:
    """``y = e^x``"""
    return BranchGraph((_sample_x,), (lambda x, y: np.exp(x),), label="exponential()")


def constant_x(cx: float) -> BranchGraph:
    """Vertical line ``x = cx``."""
    return BranchGraph((_fixed(cx),), (_sample_y,), label=f"constant_x({cx})")


def constant_y(cy: float) -> BranchGraph:
    """Horizontal line ``y = cy``."""
    return BranchGraph((_sample_x,), (_fixed(cy),), label=f"constant_y({cy})")


def constant(cx: float, cy: float) -> BranchGraph:
    """Single point ``(cx, cy)``."""
    return BranchGraph((_fixed(cx),), (_fixed(cy),), label=f"constant({cx}, {cy})")


def circle(h: float, k: float, r: float) -> BranchGraph:
    """Circle ``(x-h)^2 + (y-k)^2 = r^2``, drawn as its upper and lower halves."""

    def half(sign: float):
        def member(x: Any, y: Any) -> Any:
            return k + sign * np.sqrt(r * r - np.square(np.subtract(x, h)))

        return member

    return BranchGraph((_sample_x,), (half(1.0), half(-1.0)), label=f"circle({h}, {k}, {r})")
