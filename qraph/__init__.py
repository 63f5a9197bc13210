"""qraph: draw multi-valued 2-D equations on a shared pixel canvas.

Typical use::

    from qraph import RenderSession, SessionConfig

    session = RenderSession(SessionConfig(width=800, height=800))
    color = session.add_equation("{x},{sqrt(25-x^2),-sqrt(25-x^2)}")
    session.remove(color)
"""

from __future__ import annotations

from .canvas import TRANSPARENT, WHITE, Canvas, CanvasLike, Color
from .config import SessionConfig, coerce_number
from .curves import circle, constant, constant_x, constant_y, cubic, exponential, linear, quadratic, quartic
from .equation_split import SplitEquation, split_equation, split_members
from .errors import (
    ArityError,
    ColorSpaceExhausted,
    EquationSyntaxError,
    InvalidPrecision,
    MalformedEquation,
    QraphError,
    RenderCancelled,
    TooManyBranches,
    UnknownNameError,
)
from .expression import BUILTIN_CONSTANTS, CompiledExpression, compile_expression, variable_bindings
from .function_library import LIBRARY_FUNCTIONS, FunctionLibrary
from .graph import BranchGraph, ExpressionGraph, Graph, compile_graph
from .NamedFunction import NamedFunction
from .numpify import numpify, numpify_cached
from .perlin import Perlin, perlin_generator
from .raster import RenderProgress, paint, sample_count
from .registry import ColorAllocator, GraphRegistry
from .session import RenderSession

__all__ = [
    "ArityError",
    "BUILTIN_CONSTANTS",
    "BranchGraph",
    "Canvas",
    "CanvasLike",
    "Color",
    "ColorAllocator",
    "ColorSpaceExhausted",
    "CompiledExpression",
    "EquationSyntaxError",
    "ExpressionGraph",
    "FunctionLibrary",
    "Graph",
    "GraphRegistry",
    "InvalidPrecision",
    "LIBRARY_FUNCTIONS",
    "MalformedEquation",
    "NamedFunction",
    "Perlin",
    "QraphError",
    "RenderCancelled",
    "RenderProgress",
    "RenderSession",
    "SessionConfig",
    "SplitEquation",
    "TRANSPARENT",
    "TooManyBranches",
    "UnknownNameError",
    "WHITE",
    "circle",
    "coerce_number",
    "compile_expression",
    "compile_graph",
    "constant",
    "constant_x",
    "constant_y",
    "cubic",
    "exponential",
    "linear",
    "numpify",
    "numpify_cached",
    "paint",
    "perlin_generator",
    "quadratic",
    "quartic",
    "sample_count",
    "split_equation",
    "split_members",
    "variable_bindings",
]
