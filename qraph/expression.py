"""Compile branch member text into reusable numeric expressions.

A member such as ``sqrt(25-x^2)`` is parsed once with SymPy against a closed
namespace and turned into a NumPy function by
:meth:`~qraph.function_library.FunctionLibrary.kernel`.
The namespace holds:

- the sample variables ``x`` and ``y``,
- the constants ``π``, ``e``, ``max64`` and ``min64``,
- optional user constants declared at compile time,
- the functions of a :class:`~qraph.function_library.FunctionLibrary`.

``^`` is exponentiation. Any other name is rejected at compile time, and so
is attribute access. Expressions are kept as written: ``x/x`` is not reduced
to ``1``, so it is NaN at ``x = 0``. Each ``rnd()`` call draws separately.
"""

from __future__ import annotations

import keyword
import logging
import math
import sys
import time
from dataclasses import dataclass, field
from tokenize import ENDMARKER, NAME, NEWLINE, NL, NUMBER, OP
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

import numpy as np
import sympy as sp
from sympy.core.function import AppliedUndef
from sympy.parsing.sympy_parser import convert_xor, parse_expr, standard_transformations

from .errors import ArityError, EquationSyntaxError, UnknownNameError
from .function_library import RND_CALL, FunctionLibrary
from .numpify import NumpifiedFunction

__all__ = [
    "BUILTIN_CONSTANTS",
    "BINDING_NAMES",
    "CompiledExpression",
    "coerce_sample",
    "compile_expression",
    "variable_bindings",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


X = sp.Symbol("x")
Y = sp.Symbol("y")

BUILTIN_CONSTANTS: Mapping[str, float] = MappingProxyType(
    {
        "π": math.pi,
        "e": math.e,
        "max64": sys.float_info.max,
        "min64": math.ulp(0.0),
    }
)

BINDING_NAMES: tuple[str, ...] = ("x", "y", *BUILTIN_CONSTANTS)

_OPERATORS = frozenset({"+", "-", "*", "/", "**", "^", "%", "(", ")", ",", "<", ">", "<=", ">=", "==", "!="})
_LAYOUT = frozenset({NEWLINE, NL, ENDMARKER})


def _screen_tokens(tokens: list[tuple[int, str]], local_dict: dict, global_dict: dict) -> list[tuple[int, str]]:
    """Admit names, numbers and arithmetic only, and number each ``rnd()`` call.

    Attribute access, literals and keywords are rejected before any code is
    evaluated. ``rnd()`` becomes ``_rnd(k)`` for the k-th call, so repeated
    calls are distinct terms.
    """
    result: list[tuple[int, str]] = []
    site = 0
    i = 0
    while i < len(tokens):
        kind, value = tokens[i][0], tokens[i][1]
        if kind == NAME:
            if keyword.iskeyword(value):
                raise EquationSyntaxError(f"keyword {value!r} is not allowed in an expression")
            if value == RND_CALL.__name__:
                raise UnknownNameError(f"unknown name {value!r}")
            if value == "rnd" and [tuple(t[:2]) for t in tokens[i + 1 : i + 3]] == [(OP, "("), (OP, ")")]:
                result += [(NAME, RND_CALL.__name__), (OP, "("), (NUMBER, str(site)), (OP, ")")]
                site += 1
                i += 3
                continue
        elif kind == OP:
            if value not in _OPERATORS:
                raise EquationSyntaxError(f"operator {value!r} is not allowed in an expression")
        elif kind != NUMBER and kind not in _LAYOUT:
            raise EquationSyntaxError(f"unexpected {value!r} in an expression")
        result.append((kind, value))
        i += 1
    return result


_TRANSFORMATIONS = (_screen_tokens,) + standard_transformations + (convert_xor,)

# Only the constructors emitted by the parser transformations are visible.
_PARSER_GLOBALS = {
    "Symbol": sp.Symbol,
    "Function": sp.Function,
    "Integer": sp.Integer,
    "Float": sp.Float,
    "Rational": sp.Rational,
    # unevaluated operators and comparisons
    "Add": sp.Add,
    "Mul": sp.Mul,
    "Pow": sp.Pow,
    "And": sp.And,
    "Or": sp.Or,
    "Not": sp.Not,
    "Eq": sp.Eq,
    "Ne": sp.Ne,
    "Lt": sp.Lt,
    "Le": sp.Le,
    "Gt": sp.Gt,
    "Ge": sp.Ge,
}


def variable_bindings(x: Any, y: Any, constants: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
    """Return a fresh binding of the sample variables, built-in and user constants."""
    bindings: dict[str, Any] = {"x": x, "y": y, **BUILTIN_CONSTANTS}
    if constants:
        bindings.update(constants)
    return bindings


def coerce_sample(value: Any) -> float:
    """Reduce one evaluation result to a float.

    Real numbers (including NaN and infinities) pass through; booleans,
    complex numbers, arrays and other objects become ``0.0``.
    """
    arr = np.asarray(value)
    if arr.ndim != 0 or arr.dtype.kind not in "iuf":
        return 0.0
    return float(arr)


@dataclass(frozen=True)
class CompiledExpression:
    """One parsed member expression bound to its generated NumPy function.

    Attributes
    ----------
    source : str
        The member text as written.
    symbolic : sympy.Basic
        Parsed expression.
    parameter_names : tuple[str, ...]
        Binding names, in the order the generated function takes them.
    stochastic : bool
        True when the expression calls ``rnd()``; such expressions must be
        evaluated one sample at a time.
    """

    source: str
    symbolic: sp.Basic
    parameter_names: tuple[str, ...]
    stochastic: bool
    _numeric: NumpifiedFunction = field(repr=False, compare=False)

    @property
    def code(self) -> str:
        """Generated Python source."""
        return self._numeric.source

    def _arguments(self, bindings: Mapping[str, Any]) -> list[Any]:
        return [bindings[name] for name in self.parameter_names]

    def __call__(self, bindings: Mapping[str, Any]) -> Any:
        """Evaluate with *bindings*; values may be arrays. Errors propagate."""
        args = self._arguments(bindings)
        with np.errstate(all="ignore"):
            return self._numeric(*args)

    def evaluate(self, bindings: Mapping[str, Any]) -> float:
        """Evaluate one sample; non-real results and evaluation errors give ``0.0``.

        Raises
        ------
        KeyError
            If *bindings* lacks a name the expression was compiled with.
        """
        args = self._arguments(bindings)
        try:
            with np.errstate(all="ignore"):
                value = self._numeric(*args)
        except Exception as exc:
            logger.debug("evaluate(%r) failed: %r; using 0.0", self.source, exc)
            return 0.0
        return coerce_sample(value)


def _constant_symbols(constants: Iterable[str], library: FunctionLibrary) -> tuple[sp.Symbol, ...]:
    symbols: list[sp.Symbol] = []
    for name in constants:
        if not isinstance(name, str) or not name.isidentifier():
            raise ValueError(f"constant name must be an identifier, got {name!r}")
        if name in BINDING_NAMES or name in library:
            raise ValueError(f"constant name {name!r} shadows a built-in name")
        if any(sym.name == name for sym in symbols):
            raise ValueError(f"duplicate constant name {name!r}")
        symbols.append(sp.Symbol(name))
    return tuple(symbols)


def _parse(raw: str, namespace: dict[str, Any]) -> sp.Basic:
    try:
        parsed = parse_expr(
            raw,
            local_dict=namespace,
            global_dict=dict(_PARSER_GLOBALS),
            transformations=_TRANSFORMATIONS,
            evaluate=False,
        )
        return parsed if isinstance(parsed, sp.Basic) else sp.sympify(parsed, strict=True)
    except (ArityError, EquationSyntaxError):
        raise
    except Exception as exc:
        raise EquationSyntaxError(f"cannot parse {raw!r}: {exc}") from exc


def compile_expression(
    raw: str,
    library: FunctionLibrary,
    *,
    constants: Iterable[str] = (),
) -> CompiledExpression:
    """Parse and compile one member expression.

    Parameters
    ----------
    raw : str
        Member text, e.g. ``"sqrt(25-x^2)"``.
    library : FunctionLibrary
        Function table supplying names and numeric bindings.
    constants : iterable of str, optional
        Extra constant names the expression may reference; their values are
        supplied in the evaluation bindings.

    Raises
    ------
    UnknownNameError
        For a variable or function outside the namespace.
    ArityError
        For a library call with the wrong number of arguments.
    EquationSyntaxError
        For any other parse or compile failure.
    ValueError
        For an invalid constant name.
    """
    log_debug = logger.isEnabledFor(logging.DEBUG)
    t0: float | None = time.perf_counter() if log_debug else None

    constant_syms = _constant_symbols(constants, library)
    builtin_syms = tuple(sp.Symbol(name) for name in BUILTIN_CONSTANTS)
    vars_tuple = (X, Y, *builtin_syms, *constant_syms)

    namespace: dict[str, Any] = {sym.name: sym for sym in vars_tuple}
    namespace.update(library.symbol_table())
    namespace[RND_CALL.__name__] = RND_CALL

    expr = _parse(raw, namespace)

    unknown_functions = sorted({app.func.__name__ for app in expr.atoms(AppliedUndef)})
    if unknown_functions:
        raise UnknownNameError(f"unknown function(s) in {raw!r}: {', '.join(unknown_functions)}")
    allowed = {sym.name for sym in vars_tuple}
    unknown_names = sorted(sym.name for sym in expr.free_symbols if sym.name not in allowed)
    if unknown_names:
        raise UnknownNameError(f"unknown name(s) in {raw!r}: {', '.join(unknown_names)}")

    try:
        numeric = library.kernel(expr, vars_tuple)
    except (TypeError, ValueError) as exc:
        raise EquationSyntaxError(f"cannot compile {raw!r}: {exc}") from exc

    compiled = CompiledExpression(
        source=raw,
        symbolic=expr,
        parameter_names=tuple(sym.name for sym in vars_tuple),
        stochastic=library.is_stochastic(expr),
        _numeric=numeric,
    )
    if t0 is not None:
        logger.debug("compile_expression(%r): %.2f ms", raw, 1000.0 * (time.perf_counter() - t0))
    return compiled
