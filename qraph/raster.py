"""Rasterize graphs onto a canvas.

Domain scan
-----------
A single index ``i`` drives both sample coordinates::

    x_i = -W/2 + i * precision
    y_i = -H/2 + i * precision

and the scan stops as soon as either leaves the canvas. ``x`` and ``y`` advance
together along the diagonal, so graphs that depend on ``y`` (``x=...`` forms)
are sampled on the same pass as graphs that depend on ``x``.

Pixel mapping
-------------
A candidate point ``(x, y)`` lands at ``px = W/2 + x``, ``py = H/2 - y`` and
paints a five-pixel footprint (the point, one and two pixels right, one and two
pixels down). Each coordinate is truncated toward zero. Non-finite candidates
are skipped and writes outside the canvas are dropped.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Any, Iterator, Optional

import numpy as np

from .canvas import CanvasLike, Color
from .errors import InvalidPrecision, RenderCancelled
from .graph import Graph

__all__ = [
    "DEFAULT_PRECISION",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MAX_SAMPLES",
    "FOOTPRINT",
    "RenderProgress",
    "iter_sample_chunks",
    "paint",
    "plot_points",
    "sample_count",
    "sample_graph",
    "validate_precision",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


DEFAULT_PRECISION = 0.01
DEFAULT_CHUNK_SIZE = 8192
DEFAULT_MAX_SAMPLES = 50_000_000

FOOTPRINT: tuple[tuple[int, int], ...] = ((0, 0), (1, 0), (0, 1), (2, 0), (0, 2))


class RenderProgress:
    """Thread-safe counter of scanned samples for one render pass."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = 0
        self._total = 0

    def start(self, total: int) -> None:
        with self._lock:
            self._done = 0
            self._total = int(total)

    def advance(self, count: int) -> None:
        with self._lock:
            self._done += int(count)

    def finish(self) -> None:
        with self._lock:
            self._done = self._total

    @property
    def done(self) -> int:
        with self._lock:
            return self._done

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def fraction(self) -> float:
        with self._lock:
            if self._total <= 0:
                return 1.0
            return min(1.0, self._done / self._total)

    @property
    def percent(self) -> float:
        return 100.0 * self.fraction

    def __repr__(self) -> str:
        return f"RenderProgress({self.done}/{self.total})"


def validate_precision(precision: Any) -> float:
    """Return *precision* as a float, or raise :class:`InvalidPrecision`."""
    if isinstance(precision, bool):
        raise InvalidPrecision(f"precision must be a number, got {precision!r}")
    try:
        value = float(precision)
    except (TypeError, ValueError) as exc:
        raise InvalidPrecision(f"precision must be a number, got {precision!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise InvalidPrecision(f"precision must be finite and > 0, got {precision!r}")
    return value


def sample_count(width: int, height: int, precision: float, *, max_samples: Optional[int] = None) -> int:
    """Number of indices the diagonal scan visits (at most one more near the edge).

    Raises
    ------
    InvalidPrecision
        If *precision* is invalid or the scan would exceed *max_samples*.
    """
    precision = validate_precision(precision)
    count = math.ceil(min(width, height) / precision)
    if max_samples is not None and count > max_samples:
        raise InvalidPrecision(
            f"precision {precision!r} needs {count} samples on a {width}x{height} canvas "
            f"(limit {max_samples})"
        )
    return count


def iter_sample_chunks(
    width: int,
    height: int,
    precision: float,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_samples: Optional[int] = DEFAULT_MAX_SAMPLES,
) -> Iterator[tuple[np.ndarray, np.ndarray]]:
    """Yield the ``(xs, ys)`` samples of the diagonal scan in chunks."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    precision = validate_precision(precision)
    total = sample_count(width, height, precision, max_samples=max_samples)
    max_x, max_y = width / 2, height / 2
    for start in range(0, total, chunk_size):
        index = np.arange(start, min(start + chunk_size, total), dtype=float)
        xs = -max_x + index * precision
        ys = -max_y + index * precision
        inside = (xs < max_x) & (ys < max_y)
        if not inside.all():
            xs, ys = xs[inside], ys[inside]
        if xs.size:
            yield xs, ys


def _pairs(xs: list[np.ndarray], ys: list[np.ndarray]) -> tuple[np.ndarray, np.ndarray]:
    """Cross every x-candidate array with every y-candidate array of the same samples."""
    if not xs or not ys:
        return np.empty(0), np.empty(0)
    px = np.concatenate([x for x in xs for _ in ys])
    py = np.concatenate([y for _ in xs for y in ys])
    return px, py


def sample_graph(graph: Graph, xs: np.ndarray, ys: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Evaluate *graph* on a chunk and return all candidate point pairs."""
    evaluate_array = getattr(graph, "evaluate_array", None)
    if evaluate_array is not None:
        cand_x, cand_y = evaluate_array(xs, ys)
        return _pairs(list(cand_x), list(cand_y))

    px: list[float] = []
    py: list[float] = []
    for x, y in zip(xs.tolist(), ys.tolist()):
        try:
            cand_x, cand_y = graph.evaluate(x, y)
        except Exception as exc:
            logger.debug("graph %r failed at (%r, %r): %r", graph, x, y, exc)
            continue
        for x1 in cand_x:
            for y1 in cand_y:
                px.append(x1)
                py.append(y1)
    return np.asarray(px, dtype=float), np.asarray(py, dtype=float)


def plot_points(canvas: CanvasLike, xs: np.ndarray, ys: np.ndarray, color: Color) -> int:
    """Paint the footprint of every finite point; return how many points were plotted."""
    width, height = int(canvas.width), int(canvas.height)
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    finite = np.isfinite(xs) & np.isfinite(ys)
    if not finite.all():
        xs, ys = xs[finite], ys[finite]
    if not xs.size:
        return 0

    base_x = width / 2 + xs
    base_y = height / 2 - ys
    set_many = getattr(canvas, "set_many", None)
    for dx, dy in FOOTPRINT:
        # Clip before truncating so huge values cannot overflow the integer cast.
        px = np.trunc(np.clip(base_x + dx, -1.0, width)).astype(np.intp)
        py = np.trunc(np.clip(base_y + dy, -1.0, height)).astype(np.intp)
        inside = (px >= 0) & (px < width) & (py >= 0) & (py < height)
        px, py = px[inside], py[inside]
        if set_many is not None:
            set_many(px, py, color)
        else:
            for x, y in zip(px.tolist(), py.tolist()):
                canvas.set(x, y, color)
    return int(xs.size)


def paint(
    graph: Graph,
    canvas: CanvasLike,
    color: Color,
    *,
    precision: float = DEFAULT_PRECISION,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_samples: Optional[int] = DEFAULT_MAX_SAMPLES,
    cancel: Optional[threading.Event] = None,
    progress: Optional[RenderProgress] = None,
) -> int:
    """Scan the domain and paint every candidate point of *graph* in *color*.

    Parameters
    ----------
    graph : Graph
        Anything with ``evaluate(x, y)``; ``evaluate_array`` is used when present.
    canvas : CanvasLike
        Target surface; ``set_many`` is used when present.
    color : Color
        Color written for every footprint pixel.
    precision : float, optional
        Scan step; must be finite and positive.
    chunk_size : int, optional
        Samples per evaluation chunk.
    max_samples : int or None, optional
        Limit on the samples of the scan.
    cancel : threading.Event, optional
        Checked between chunks; when set the pass stops with :class:`RenderCancelled`.
    progress : RenderProgress, optional
        Advanced by the number of samples scanned.

    Returns
    -------
    int
        Number of candidate points plotted.
    """
    log_debug = logger.isEnabledFor(logging.DEBUG)
    t0: float | None = time.perf_counter() if log_debug else None

    width, height = int(canvas.width), int(canvas.height)
    plotted = 0
    chunks = iter_sample_chunks(width, height, precision, chunk_size=chunk_size, max_samples=max_samples)
    for xs, ys in chunks:
        if cancel is not None and cancel.is_set():
            raise RenderCancelled(f"render of {graph!r} cancelled")
        cand_x, cand_y = sample_graph(graph, xs, ys)
        plotted += plot_points(canvas, cand_x, cand_y, color)
        if progress is not None:
            progress.advance(xs.size)

    if t0 is not None:
        logger.debug("paint(%r): %d point(s) in %.2f ms", graph, plotted, 1000.0 * (time.perf_counter() - t0))
    return plotted
