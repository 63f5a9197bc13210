"""Gradient (Perlin) noise in one, two and three dimensions.

This is the classic alpha/beta formulation: each generator owns 256 random
gradients per dimension and a permutation table, and ``noiseNd`` sums ``n``
octaves where octave ``i`` samples the point scaled by ``beta**i`` and is
weighted by ``1 / alpha**i``.

All lattice arithmetic is done with NumPy so a whole chunk of samples is
evaluated per call. Scalar inputs return a Python ``float``.

Generators are deterministic for a given ``seed`` and are shared through
:func:`perlin_generator`, which caches one instance per parameter tuple.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import numpy as np

__all__ = ["MAX_OCTAVES", "Perlin", "perlin_generator"]


# Upper bound on the octave count of one generator.
MAX_OCTAVES = 64

_B = 0x100
_BM = 0xFF
_N = 0x1000
_TABLE_SIZE = _B + _B + 2
_SEED_MASK = 0xFFFFFFFFFFFFFFFF


def _s_curve(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


def _lerp(t: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + t * (b - a)


def _normalized(vectors: np.ndarray) -> np.ndarray:
    length = np.sqrt(np.sum(vectors * vectors, axis=1, keepdims=True))
    # Zero gradients stay zero instead of becoming NaN.
    return np.divide(vectors, length, out=np.zeros_like(vectors), where=length > 0)


def _lattice(coord: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(b0, b1, r0, r1)``: lattice indices and offsets around *coord*."""
    t = coord + _N
    whole = np.trunc(t)
    b0 = np.mod(whole, _B).astype(np.intp)
    b1 = (b0 + 1) & _BM
    r0 = t - whole
    return b0, b1, r0, r0 - 1.0


class Perlin:
    """Seeded noise generator.

    Parameters
    ----------
    alpha : float
        Weight divisor applied per octave (``2`` halves each octave's amplitude).
    beta : float
        Frequency multiplier applied per octave.
    n : int
        Number of octaves, at most :data:`MAX_OCTAVES`. ``n <= 0`` yields zero
        noise everywhere.
    seed : int
        Seed of the gradient and permutation tables.
    """

    def __init__(self, alpha: float, beta: float, n: int, seed: int) -> None:
        self.alpha = float(alpha)
        self.beta = float(beta)
        self.n = min(int(n), MAX_OCTAVES)
        self.seed = int(seed)

        rng = np.random.default_rng(self.seed & _SEED_MASK)
        g1 = (rng.integers(0, 2 * _B, size=_B) - _B) / _B
        g2 = _normalized((rng.integers(0, 2 * _B, size=(_B, 2)) - _B) / _B)
        g3 = _normalized((rng.integers(0, 2 * _B, size=(_B, 3)) - _B) / _B)
        perm = rng.permutation(_B)

        # Tables are extended so lookups of (index + offset) never wrap.
        self._p = np.concatenate([perm, perm[: _TABLE_SIZE - _B]])
        self._g1 = np.concatenate([g1, g1[: _TABLE_SIZE - _B]])
        self._g2 = np.concatenate([g2, g2[: _TABLE_SIZE - _B]])
        self._g3 = np.concatenate([g3, g3[: _TABLE_SIZE - _B]])

    def __repr__(self) -> str:
        return f"Perlin(alpha={self.alpha!r}, beta={self.beta!r}, n={self.n!r}, seed={self.seed!r})"

    # --- single-octave lattice noise -------------------------------------------------

    def _noise1(self, x: np.ndarray) -> np.ndarray:
        bx0, bx1, rx0, rx1 = _lattice(x)
        p, g = self._p, self._g1
        u = rx0 * g[p[bx0]]
        v = rx1 * g[p[bx1]]
        return _lerp(_s_curve(rx0), u, v)

    def _noise2(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        bx0, bx1, rx0, rx1 = _lattice(x)
        by0, by1, ry0, ry1 = _lattice(y)
        p, g = self._p, self._g2
        i, j = p[bx0], p[bx1]
        b00, b10 = p[i + by0], p[j + by0]
        b01, b11 = p[i + by1], p[j + by1]
        sx, sy = _s_curve(rx0), _s_curve(ry0)

        def dot(b: np.ndarray, rx: np.ndarray, ry: np.ndarray) -> np.ndarray:
            q = g[b]
            return rx * q[..., 0] + ry * q[..., 1]

        a = _lerp(sx, dot(b00, rx0, ry0), dot(b10, rx1, ry0))
        b = _lerp(sx, dot(b01, rx0, ry1), dot(b11, rx1, ry1))
        return _lerp(sy, a, b)

    def _noise3(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
        bx0, bx1, rx0, rx1 = _lattice(x)
        by0, by1, ry0, ry1 = _lattice(y)
        bz0, bz1, rz0, rz1 = _lattice(z)
        p, g = self._p, self._g3
        i, j = p[bx0], p[bx1]
        b00, b10 = p[i + by0], p[j + by0]
        b01, b11 = p[i + by1], p[j + by1]
        sx, sy, sz = _s_curve(rx0), _s_curve(ry0), _s_curve(rz0)

        def dot(b: np.ndarray, rx: np.ndarray, ry: np.ndarray, rz: np.ndarray) -> np.ndarray:
            q = g[b]
            return rx * q[..., 0] + ry * q[..., 1] + rz * q[..., 2]

        a = _lerp(sx, dot(b00 + bz0, rx0, ry0, rz0), dot(b10 + bz0, rx1, ry0, rz0))
        b = _lerp(sx, dot(b01 + bz0, rx0, ry1, rz0), dot(b11 + bz0, rx1, ry1, rz0))
        c = _lerp(sy, a, b)
        a = _lerp(sx, dot(b00 + bz1, rx0, ry0, rz1), dot(b10 + bz1, rx1, ry0, rz1))
        b = _lerp(sx, dot(b01 + bz1, rx0, ry1, rz1), dot(b11 + bz1, rx1, ry1, rz1))
        d = _lerp(sy, a, b)
        return _lerp(sz, c, d)

    # --- octave sums -----------------------------------------------------------------

    def _octaves(self, noise: Any, *coords: Any) -> Any:
        arrays = np.broadcast_arrays(*(np.asarray(c, dtype=float) for c in coords))
        scalar = arrays[0].ndim == 0
        finite = np.logical_and.reduce([np.isfinite(a) for a in arrays])
        points = [np.where(finite, a, 0.0) for a in arrays]

        total = np.zeros(arrays[0].shape, dtype=float)
        scale = 1.0
        with np.errstate(all="ignore"):
            for _ in range(self.n):
                total = total + noise(*points) / scale
                scale *= self.alpha
                # Coordinates that overflow under beta**i fold back to the origin.
                points = [np.nan_to_num(pt * self.beta, nan=0.0, posinf=0.0, neginf=0.0) for pt in points]
        total = np.where(finite, total, np.nan)
        return float(total) if scalar else total

    def noise1d(self, x: Any) -> Any:
        """Noise at ``x`` (scalar or array)."""
        return self._octaves(self._noise1, x)

    def noise2d(self, x: Any, y: Any) -> Any:
        """Noise at ``(x, y)``; arguments broadcast."""
        return self._octaves(self._noise2, x, y)

    def noise3d(self, x: Any, y: Any, z: Any) -> Any:
        """Noise at ``(x, y, z)``; arguments broadcast."""
        return self._octaves(self._noise3, x, y, z)


@lru_cache(maxsize=64)
def perlin_generator(alpha: float, beta: float, n: int, seed: int) -> Perlin:
    """Return the shared generator for one parameter tuple."""
    return Perlin(alpha, beta, n, seed)
