"""Color-keyed registry of graphs and the allocator of unused colors."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

import numpy as np

from .canvas import Color
from .errors import ColorSpaceExhausted
from .graph import Graph

__all__ = ["GraphRegistry", "ColorAllocator", "COLOR_SPACE"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


# Opaque 24-bit RGB colors available to the allocator.
COLOR_SPACE = 1 << 24


class GraphRegistry:
    """Insertion-ordered mapping ``Color -> list[Graph]``.

    A color identifies one entry; adding another graph under the same color
    appends to that entry. Iteration follows the order in which colors were
    first added.
    """

    def __init__(self) -> None:
        self._entries: dict[Color, list[Graph]] = {}

    def __repr__(self) -> str:
        return f"GraphRegistry({len(self._entries)} color(s), {sum(map(len, self._entries.values()))} graph(s))"

    def __contains__(self, color: object) -> bool:
        return color in self._entries

    def __iter__(self) -> Iterator[Color]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, color: Color, graph: Graph) -> None:
        self._entries.setdefault(Color(*color), []).append(graph)

    def remove(self, color: Color) -> list[Graph]:
        """Drop the whole entry for *color* and return its graphs.

        Raises
        ------
        KeyError
            If *color* has no entry.
        """
        try:
            return self._entries.pop(color)
        except KeyError:
            raise KeyError(f"no graphs registered under {color!r}") from None

    def discard(self, color: Color, graph: Graph) -> bool:
        """Remove one graph from an entry; drop the entry once empty. Return True if found."""
        graphs = self._entries.get(color)
        if graphs is None:
            return False
        for index, candidate in enumerate(graphs):
            if candidate is graph:
                del graphs[index]
                if not graphs:
                    del self._entries[color]
                return True
        return False

    def graphs(self, color: Color) -> tuple[Graph, ...]:
        return tuple(self._entries.get(color, ()))

    def items(self) -> list[tuple[Color, tuple[Graph, ...]]]:
        """Snapshot of ``(color, graphs)`` pairs in registry order."""
        return [(color, tuple(graphs)) for color, graphs in self._entries.items()]

    def colors(self) -> tuple[Color, ...]:
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class ColorAllocator:
    """Draw random opaque colors that are not yet registry keys.

    Parameters
    ----------
    registry : GraphRegistry
        Registry whose keys must be avoided.
    rng : numpy.random.Generator, optional
        Source of randomness; built from *seed* when omitted.
    seed : int, optional
        Seed for a new generator.
    max_attempts : int, optional
        Draws tried before raising :class:`ColorSpaceExhausted`.
    """

    def __init__(
        self,
        registry: GraphRegistry,
        *,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        max_attempts: int = 4096,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self._registry = registry
        self._rng = rng if rng is not None else np.random.default_rng(seed)
        self._max_attempts = max_attempts

    def next(self) -> Color:
        if len(self._registry) >= COLOR_SPACE:
            raise ColorSpaceExhausted("every opaque color is already registered")
        for attempt in range(1, self._max_attempts + 1):
            r, g, b = (int(v) for v in self._rng.integers(0, 256, size=3))
            color = Color(r, g, b)
            if color not in self._registry:
                if attempt > 1:
                    logger.debug("ColorAllocator: %d draw(s) for %s", attempt, color.hex)
                return color
        raise ColorSpaceExhausted(f"no unused color after {self._max_attempts} attempts")
