"""Graphs: callables mapping a sample ``(x, y)`` to candidate point coordinates.

A graph returns two ordered candidate lists per sample, one for each branch.
The rasterizer pairs every x-candidate with every y-candidate, which is how a
single equation draws several curves (``{x},{sqrt(25-x^2),-sqrt(25-x^2)}``
draws both halves of a circle).

Two evaluation paths exist:

- :meth:`BranchGraph.evaluate` handles one sample and returns Python lists.
- :meth:`BranchGraph.evaluate_array` handles a whole chunk of samples with
  one NumPy call per member. Members that draw random numbers, or whose
  vectorized call fails, are evaluated sample by sample instead so both paths
  agree.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from .config import coerce_number
from .equation_split import SplitEquation, split_equation
from .expression import CompiledExpression, coerce_sample, compile_expression, variable_bindings
from .function_library import FunctionLibrary

__all__ = [
    "Graph",
    "Member",
    "BranchGraph",
    "ExpressionGraph",
    "coerce_sample",
    "compile_graph",
    "evaluate_member",
    "evaluate_member_array",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


Member = Callable[[Any, Any], Any]


@runtime_checkable
class Graph(Protocol):
    """Anything the rasterizer can draw."""

    def evaluate(self, x: float, y: float) -> tuple[Sequence[float], Sequence[float]]:
        ...


def evaluate_member(member: Member, x: float, y: float) -> float:
    """Evaluate one member at one sample; failures and non-real results give ``0.0``."""
    try:
        with np.errstate(all="ignore"):
            value = member(x, y)
    except Exception as exc:
        logger.debug("member %r failed at (%r, %r): %r", member, x, y, exc)
        return 0.0
    return coerce_sample(value)


def _per_sample(member: Member, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    samples = zip(xs.tolist(), ys.tolist())
    return np.fromiter((evaluate_member(member, x, y) for x, y in samples), dtype=float, count=xs.size)


def evaluate_member_array(member: Member, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Evaluate *member* over a chunk; the result has the shape of *xs*."""
    if getattr(member, "stochastic", False):
        return _per_sample(member, xs, ys)
    try:
        with np.errstate(all="ignore"):
            value = np.asarray(member(xs, ys))
        kind = value.dtype.kind
        if kind in "iuf":
            return np.broadcast_to(value.astype(float, copy=False), xs.shape)
        if kind in "bc":
            return np.zeros(xs.shape)
    except Exception as exc:
        logger.debug("vectorized evaluation of %r failed: %r; evaluating per sample", member, exc)
    else:
        logger.debug("vectorized evaluation of %r gave dtype %s; evaluating per sample", member, value.dtype)
    return _per_sample(member, xs, ys)


class BranchGraph:
    """Graph defined by explicit x-branch and y-branch member callables.

    Parameters
    ----------
    x_branch, y_branch : sequence of callables
        Each member is called as ``member(x, y)`` with scalars or arrays.
    label : str, optional
        Text used in ``repr``.
    """

    def __init__(self, x_branch: Sequence[Member], y_branch: Sequence[Member], *, label: str = "") -> None:
        self.x_branch = tuple(x_branch)
        self.y_branch = tuple(y_branch)
        if not self.x_branch or not self.y_branch:
            raise ValueError("a graph needs at least one member in each branch")
        self.label = label

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r})"

    def evaluate(self, x: float, y: float) -> tuple[list[float], list[float]]:
        xs = [evaluate_member(member, x, y) for member in self.x_branch]
        ys = [evaluate_member(member, x, y) for member in self.y_branch]
        return xs, ys

    def evaluate_array(self, xs: np.ndarray, ys: np.ndarray) -> tuple[list[np.ndarray], list[np.ndarray]]:
        xs = np.asarray(xs, dtype=float)
        ys = np.asarray(ys, dtype=float)
        return (
            [evaluate_member_array(member, xs, ys) for member in self.x_branch],
            [evaluate_member_array(member, xs, ys) for member in self.y_branch],
        )


class _BoundExpression:
    """Compiled member bound to a set of constant values."""

    __slots__ = ("expression", "constants")

    def __init__(self, expression: CompiledExpression, constants: Mapping[str, float]) -> None:
        self.expression = expression
        self.constants = constants

    @property
    def stochastic(self) -> bool:
        return self.expression.stochastic

    def __call__(self, x: Any, y: Any) -> Any:
        return self.expression(variable_bindings(x, y, self.constants))

    def __repr__(self) -> str:
        return repr(self.expression.source)


class ExpressionGraph(BranchGraph):
    """Graph compiled from equation text."""

    def __init__(
        self,
        text: str,
        split: SplitEquation,
        x_exprs: Sequence[CompiledExpression],
        y_exprs: Sequence[CompiledExpression],
        constants: Optional[Mapping[str, float]] = None,
    ) -> None:
        self.text = text
        self.split = split
        self.constants: dict[str, float] = dict(constants or {})
        super().__init__(
            [_BoundExpression(expr, self.constants) for expr in x_exprs],
            [_BoundExpression(expr, self.constants) for expr in y_exprs],
            label=text,
        )

    @property
    def expressions(self) -> tuple[tuple[CompiledExpression, ...], tuple[CompiledExpression, ...]]:
        return (
            tuple(m.expression for m in self.x_branch),
            tuple(m.expression for m in self.y_branch),
        )


def compile_graph(
    text: str,
    library: FunctionLibrary,
    *,
    constants: Optional[Mapping[str, Any]] = None,
) -> ExpressionGraph:
    """Split *text* and compile every member against *library*.

    Parameters
    ----------
    text : str
        Equation text (``y=...``, ``x=...`` or ``{...},{...}``).
    library : FunctionLibrary
        Function table of the owning session.
    constants : mapping, optional
        Extra named constants; values may be numbers or numeric strings.

    Raises
    ------
    MalformedEquation, EquationSyntaxError, ArityError
        Propagated from splitting and compiling.
    """
    values = {name: coerce_number(value, name=name) for name, value in (constants or {}).items()}
    split = split_equation(text)
    names = tuple(values)
    x_exprs = [compile_expression(raw, library, constants=names) for raw in split.x_branch]
    y_exprs = [compile_expression(raw, library, constants=names) for raw in split.y_branch]
    logger.debug("compile_graph(%r): %d x-member(s), %d y-member(s)", text, len(x_exprs), len(y_exprs))
    return ExpressionGraph(text, split, x_exprs, y_exprs, values)
