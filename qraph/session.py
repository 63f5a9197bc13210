"""Rendering session: one canvas, one registry, one function library.

A session is the single owner of its mutable state. All canvas and registry
mutation happens under a re-entrant lock, so a session may be shared between
threads; expression evaluation itself holds no session state.

Examples
--------
>>> session = RenderSession(SessionConfig(width=64, height=64, precision=0.5, axes=False))
>>> color = session.add_equation("y=x")
>>> color in session.registry
True
>>> _ = session.remove(color)
>>> bool(session.canvas.lit_mask().any())
False
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Mapping, Optional

import numpy as np

from .canvas import Canvas, CanvasLike, Color
from .config import SessionConfig
from .curves import constant_x, constant_y
from .function_library import FunctionLibrary
from .graph import ExpressionGraph, Graph, compile_graph
from .raster import RenderProgress, paint, sample_count, validate_precision
from .registry import ColorAllocator, GraphRegistry

__all__ = ["RenderSession"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class RenderSession:
    """Owns the canvas, graph registry, function library and color allocator.

    Parameters
    ----------
    config : SessionConfig, optional
        Session settings; defaults to ``SessionConfig()``.
    canvas : CanvasLike, optional
        Host canvas. A :class:`~qraph.canvas.Canvas` of ``config.width`` x
        ``config.height`` is created when omitted. Full repaints need a
        ``clear()`` method.

    Notes
    -----
    With ``config.axes`` the two coordinate axes are added first, under
    ``config.axis_color``, as an ordinary registry entry.
    """

    def __init__(self, config: Optional[SessionConfig] = None, *, canvas: Optional[CanvasLike] = None) -> None:
        self.config = config if config is not None else SessionConfig()
        self.canvas: CanvasLike = canvas if canvas is not None else Canvas(self.config.width, self.config.height)
        self.registry = GraphRegistry()
        self.progress = RenderProgress()

        library_seed, color_seed = np.random.SeedSequence(self.config.seed).spawn(2)
        self.library = FunctionLibrary(noise_cache_size=self.config.noise_cache_size, seed=library_seed)
        self.allocator = ColorAllocator(
            self.registry,
            rng=np.random.default_rng(color_seed),
            max_attempts=self.config.color_attempts,
        )

        self._lock = threading.RLock()
        self._state_lock = threading.Lock()
        self._pending: set[threading.Event] = set()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False
        self._precision = validate_precision(self.config.precision)

        if self.config.axes:
            self.add_graph(constant_x(0.0), self.config.axis_color)
            self.add_graph(constant_y(0.0), self.config.axis_color)

    def __repr__(self) -> str:
        return f"RenderSession({self.canvas!r}, precision={self._precision!r}, registry={self.registry!r})"

    def __enter__(self) -> "RenderSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- state -----------------------------------------------------------------------

    @property
    def precision(self) -> float:
        return self._precision

    @precision.setter
    def precision(self, value: Any) -> None:
        precision = validate_precision(value)
        sample_count(self.canvas.width, self.canvas.height, precision, max_samples=self.config.max_samples)
        with self._lock:
            self._precision = precision

    @property
    def closed(self) -> bool:
        return self._closed

    def graphs(self) -> list[tuple[Color, tuple[Graph, ...]]]:
        """Registry snapshot in paint order."""
        with self._lock:
            return self.registry.items()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("RenderSession is closed")

    # --- render passes ---------------------------------------------------------------

    def _begin_pass(self) -> threading.Event:
        event = threading.Event()
        with self._state_lock:
            self._pending.add(event)
        return event

    def _end_pass(self, event: threading.Event) -> None:
        with self._state_lock:
            self._pending.discard(event)

    def _paint(self, graph: Graph, color: Color, cancel: threading.Event) -> int:
        return paint(
            graph,
            self.canvas,
            color,
            precision=self._precision,
            chunk_size=self.config.chunk_size,
            max_samples=self.config.max_samples,
            cancel=cancel,
            progress=self.progress,
        )

    def _scan_length(self) -> int:
        return sample_count(
            self.canvas.width, self.canvas.height, self._precision, max_samples=self.config.max_samples
        )

    def _reset(self, cancel: threading.Event) -> None:
        try:
            with self._lock:
                self._check_open()
                clear = getattr(self.canvas, "clear", None)
                if clear is None:
                    raise TypeError(f"{type(self.canvas).__name__} has no clear(); cannot repaint")
                entries = self.registry.items()
                self.progress.start(self._scan_length() * sum(len(graphs) for _, graphs in entries))

                t0 = time.perf_counter()
                clear()
                for color, graphs in entries:
                    for graph in graphs:
                        self._paint(graph, color, cancel)
                self.progress.finish()
                logger.debug(
                    "reset: repainted %d entries in %.2f ms", len(entries), 1000.0 * (time.perf_counter() - t0)
                )
        finally:
            self._end_pass(cancel)

    def reset(self) -> None:
        """Clear the canvas and repaint every registry entry in order.

        Raises
        ------
        RenderCancelled
            If :meth:`cancel` is called while the pass runs; the canvas is
            then partially painted.
        """
        self._reset(self._begin_pass())

    def submit_reset(self) -> "Future[None]":
        """Run :meth:`reset` on the session's worker thread."""
        self._check_open()
        cancel = self._begin_pass()
        with self._state_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="qraph-render")
            executor = self._executor
        return executor.submit(self._reset, cancel)

    def cancel(self) -> None:
        """Cancel every running or queued render pass."""
        with self._state_lock:
            pending = list(self._pending)
        for event in pending:
            event.set()
        if pending:
            logger.debug("cancel: signalled %d pending pass(es)", len(pending))

    # --- graphs ----------------------------------------------------------------------

    def compile(self, text: str, *, constants: Optional[Mapping[str, Any]] = None) -> ExpressionGraph:
        """Compile *text* with this session's library, without touching the registry."""
        return compile_graph(text, self.library, constants=constants)

    def add_graph(self, graph: Graph, color: Optional[Color] = None) -> Color:
        """Paint *graph* and register it under *color* (a new color when omitted)."""
        if not isinstance(graph, Graph):
            raise TypeError(f"expected a Graph with evaluate(x, y), got {type(graph).__name__}")
        cancel = self._begin_pass()
        try:
            with self._lock:
                self._check_open()
                color = self.allocator.next() if color is None else Color(*color)
                self.progress.start(self._scan_length())
                self._paint(graph, color, cancel)
                self.progress.finish()
                self.registry.add(color, graph)
                return color
        finally:
            self._end_pass(cancel)

    def add_equation(
        self,
        text: str,
        color: Optional[Color] = None,
        *,
        constants: Optional[Mapping[str, Any]] = None,
    ) -> Color:
        """Compile *text* and add it; parse errors leave the session unchanged."""
        graph = self.compile(text, constants=constants)
        return self.add_graph(graph, color)

    def remove(self, color: Color, *, repaint: bool = True) -> tuple[Graph, ...]:
        """Drop the entry for *color*; repaint unless ``repaint=False``.

        Raises
        ------
        KeyError
            If *color* has no entry.
        """
        with self._lock:
            self._check_open()
            removed = tuple(self.registry.remove(color))
            if repaint:
                self.reset()
            return removed

    def discard_graph(self, color: Color, graph: Graph, *, repaint: bool = True) -> bool:
        """Remove a single graph from the entry for *color*."""
        with self._lock:
            self._check_open()
            found = self.registry.discard(color, graph)
            if found and repaint:
                self.reset()
            return found

    def close(self) -> None:
        """Stop the worker and drop the registry along with cached library state."""
        self.cancel()
        with self._state_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        with self._lock:
            self._closed = True
            self.registry.clear()
            self.library.clear_noise_cache()
            self.library.clear_kernel_cache()
