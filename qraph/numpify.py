"""
numpify: turn parsed member expressions into NumPy kernels
==========================================================

A member such as ``sqrt(25 - x**2)`` is compiled once and then evaluated for
every chunk of a render pass. :func:`numpify` prints the SymPy expression with
SymPy's :class:`~sympy.printing.numpy.NumPyPrinter`, wraps the printed code in
a small generated function and ``exec``'s it.

The generated kernel

- takes the variables in ``vars`` order as positional arguments,
- passes each argument through ``numpy.asarray`` (``vectorize=True``) so a
  whole chunk of samples broadcasts through one call,
- calls library functions by their bare names; the implementations live in
  the kernel's globals,
- broadcasts constant expressions to the shape of its arguments.

Library functions reuse names that the NumPy printer knows (``sin``,
``floor``, ``atan2``...). Each bound name is registered as a printer
``user_function`` mapped to itself so it prints as ``sin(x)`` rather than
``numpy.sin(x)``; ``allow_unknown_functions`` covers the rest.

Bindings
--------
``f_numpy`` maps

- SymPy symbols to values injected into the kernel body, and
- SymPy function classes to numeric implementations.

A function class carrying a callable ``f_numpy`` attribute (see
:func:`~qraph.NamedFunction.NamedFunction`) is bound automatically. Anything
still unbound is reported before code generation.

Examples
--------
>>> import numpy as np
>>> import sympy as sp
>>> x, a = sp.symbols("x a")
>>> numpify(5, vars=x)(np.array([1, 2, 3]))
array([5., 5., 5.])
>>> numpify(a * x, vars=x, f_numpy={a: 2.0})(np.array([1, 2, 3]))
array([2., 4., 6.])
"""

from __future__ import annotations

import builtins
import keyword
import logging
import time
from functools import lru_cache
from typing import Any, Callable, Iterable, Mapping, NamedTuple, Optional, Union

import numpy as np
import sympy as sp
from sympy.core.function import FunctionClass
from sympy.printing.numpy import NumPyPrinter

__all__ = ["numpify", "numpify_cached", "NumpifiedFunction"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


BindingKey = Union[sp.Symbol, FunctionClass, sp.Function]
VarsLike = Optional[Union[sp.Symbol, Iterable[sp.Symbol]]]

_KERNEL_NAME = "_kernel"
_CONSTANTS_NAME = "_constants"
_CACHE_SIZE = 256


class NumpifiedFunction:
    """Generated kernel together with the expression and source it came from."""

    __slots__ = ("_fn", "symbolic", "call_signature", "source")

    def __init__(
        self,
        fn: Callable[..., Any],
        symbolic: sp.Basic,
        call_signature: tuple[tuple[sp.Symbol, str], ...],
        source: str,
    ) -> None:
        self._fn = fn
        self.symbolic = symbolic
        self.call_signature = call_signature
        self.source = source

    def __call__(self, *args: Any) -> Any:
        if len(args) != len(self.call_signature):
            raise TypeError(
                f"kernel takes {len(self.call_signature)} argument(s) "
                f"({', '.join(self.var_names)}), got {len(args)}"
            )
        return self._fn(*args)

    @property
    def vars(self) -> tuple[sp.Symbol, ...]:
        return tuple(sym for sym, _ in self.call_signature)

    @property
    def var_names(self) -> tuple[str, ...]:
        return tuple(name for _, name in self.call_signature)

    def __repr__(self) -> str:
        return f"NumpifiedFunction({self.symbolic!r}, vars=({', '.join(self.var_names)}))"


class _Bindings(NamedTuple):
    values: dict[str, Any]
    functions: dict[str, Callable[..., Any]]


def numpify(
    expr: Any,
    *,
    vars: VarsLike = None,
    f_numpy: Optional[Mapping[BindingKey, Any]] = None,
    vectorize: bool = True,
    cache: bool = True,
) -> NumpifiedFunction:
    """Compile *expr* into a NumPy kernel.

    Parameters
    ----------
    expr : sympy.Basic or sympifiable
        Expression to compile.
    vars : Symbol or iterable of Symbols, optional
        Positional arguments of the kernel, in order. Defaults to the free
        symbols of *expr* in SymPy's default sort order.
    f_numpy : mapping, optional
        Symbol values and function implementations (see module docstring).
    vectorize : bool, optional
        Convert every argument with ``numpy.asarray``.
    cache : bool, optional
        Reuse kernels through :func:`numpify_cached`; ``False`` forces a
        fresh compile.

    Raises
    ------
    TypeError
        For a non-SymPy expression, malformed *vars* or a non-callable
        function binding.
    ValueError
        For unbound symbols or functions, or symbol values that collide with
        *vars*.
    """
    if cache:
        return numpify_cached(expr, vars=vars, f_numpy=f_numpy, vectorize=vectorize)
    return _compile(_as_basic(expr), _normalize_vars(_as_basic(expr), vars), f_numpy, vectorize)


def _as_basic(expr: Any) -> sp.Basic:
    try:
        out = sp.sympify(expr)
    except Exception as exc:
        raise TypeError(f"numpify expects a SymPy expression, got {type(expr).__name__}") from exc
    if not isinstance(out, sp.Basic):
        raise TypeError(f"numpify expects a SymPy expression, got {type(out).__name__}")
    return out


def _normalize_vars(expr: sp.Basic, vars: VarsLike) -> tuple[sp.Symbol, ...]:
    if vars is None:
        return tuple(sorted(expr.free_symbols, key=sp.default_sort_key))
    if isinstance(vars, sp.Symbol):
        return (vars,)
    try:
        out = tuple(vars)
    except TypeError as exc:
        raise TypeError("vars must be a Symbol or an iterable of Symbols") from exc
    bad = [v for v in out if not isinstance(v, sp.Symbol)]
    if bad:
        raise TypeError(f"vars must contain only Symbols, got {type(bad[0]).__name__}")
    return out


def _function_name(key: Any) -> str:
    if isinstance(key, sp.Function):
        return key.func.__name__
    if isinstance(key, FunctionClass):
        return key.__name__
    raise TypeError(f"f_numpy keys must be Symbols or SymPy functions, got {type(key).__name__}")


def _collect_bindings(expr: sp.Basic, f_numpy: Optional[Mapping[BindingKey, Any]]) -> _Bindings:
    bindings = _Bindings({}, {})
    for key, value in (f_numpy or {}).items():
        if isinstance(key, sp.Symbol):
            bindings.values[key.name] = value
            continue
        name = _function_name(key)
        if not callable(value):
            raise TypeError(f"binding for {name} must be callable, got {type(value).__name__}")
        bindings.functions[name] = value
    for app in expr.atoms(sp.Function):
        impl = getattr(app.func, "f_numpy", None)
        if callable(impl):
            bindings.functions.setdefault(app.func.__name__, impl)
    return bindings


def _check_bound(expr: sp.Basic, vars_tuple: tuple[sp.Symbol, ...], bindings: _Bindings, printer: NumPyPrinter) -> None:
    arg_names = {sym.name for sym in vars_tuple}
    unbound = sorted({sym.name for sym in expr.free_symbols} - arg_names - set(bindings.values))
    if unbound:
        raise ValueError(
            f"expression has unbound symbols: {', '.join(unbound)} "
            f"(kernel arguments: {', '.join(sorted(arg_names)) or 'none'})"
        )
    clash = sorted(arg_names & set(bindings.values))
    if clash:
        raise ValueError(f"symbol values collide with kernel arguments: {', '.join(clash)}")

    missing = set()
    for app in expr.atoms(sp.Function):
        name = app.func.__name__
        if name in bindings.functions:
            continue
        try:
            printed = printer.doprint(app)
        except Exception:
            missing.add(name)
            continue
        if printed.lstrip().startswith(f"{name}("):
            missing.add(name)
    if missing:
        raise ValueError(
            f"no numeric implementation for: {', '.join(sorted(missing))}; "
            "give the class an f_numpy attribute or pass f_numpy={F: callable}"
        )


def _safe_identifier(name: str) -> str:
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    cleaned = "".join(ch if ch.isalnum() or ch == "_" else "_" for ch in name)
    if not cleaned or cleaned[0].isdigit():
        cleaned = "_" + cleaned
    return cleaned + "__" if keyword.iskeyword(cleaned) else cleaned


def _argument_names(vars_tuple: tuple[sp.Symbol, ...], taken: set[str]) -> tuple[tuple[sp.Symbol, str], ...]:
    used = set(taken)
    signature = []
    for sym in vars_tuple:
        base = _safe_identifier(sym.name)
        name, n = base, 0
        while name in used:
            name, n = f"{base}__{n}", n + 1
        used.add(name)
        signature.append((sym, name))
    return tuple(signature)


def _render(body: str, args: list[str], values: Iterable[str], vectorize: bool, constant: bool) -> str:
    lines = [f"def {_KERNEL_NAME}({', '.join(args)}):"]
    if vectorize:
        lines += [f"    {a} = numpy.asarray({a})" for a in args]
    lines += [f"    {v} = {_CONSTANTS_NAME}[{v!r}]" for v in sorted(values)]
    if vectorize and constant and args:
        lines.append(f"    return ({body}) + numpy.zeros(numpy.broadcast({', '.join(args)}).shape)")
    else:
        lines.append(f"    return {body}")
    return "\n".join(lines)


def _compile(
    expr: sp.Basic,
    vars_tuple: tuple[sp.Symbol, ...],
    f_numpy: Optional[Mapping[BindingKey, Any]],
    vectorize: bool,
) -> NumpifiedFunction:
    t0 = time.perf_counter() if logger.isEnabledFor(logging.DEBUG) else None

    bindings = _collect_bindings(expr, f_numpy)
    printer = NumPyPrinter(
        settings={
            "user_functions": {name: name for name in bindings.functions},
            "allow_unknown_functions": True,
        }
    )
    _check_bound(expr, vars_tuple, bindings, printer)

    taken = set(keyword.kwlist) | set(dir(builtins)) | {"numpy", _CONSTANTS_NAME, _KERNEL_NAME}
    taken |= set(bindings.values) | set(bindings.functions)
    signature = _argument_names(vars_tuple, taken)
    with sp.evaluate(False):
        renamed = expr.xreplace({sym: sp.Symbol(name) for sym, name in signature if sym.name != name})

    source = _render(
        printer.doprint(renamed),
        [name for _, name in signature],
        bindings.values,
        vectorize,
        constant=not expr.free_symbols,
    )
    namespace: dict[str, Any] = {"numpy": np, _CONSTANTS_NAME: bindings.values, **bindings.functions}
    exec(source, namespace)
    kernel = namespace[_KERNEL_NAME]
    kernel.__doc__ = f"NumPy kernel for {expr}"

    if t0 is not None:
        logger.debug("numpify(%s): compiled in %.2f ms", expr, 1000.0 * (time.perf_counter() - t0))
    return NumpifiedFunction(kernel, expr, signature, source)


# --- cache ---------------------------------------------------------------------------


def _binding_marker(key: Any, value: Any) -> tuple[Any, ...]:
    if isinstance(key, sp.Symbol):
        key_id: tuple[Any, ...] = ("symbol", key.name)
    else:
        cls = key.func if isinstance(key, sp.Function) else key
        key_id = ("function", getattr(cls, "__module__", ""), getattr(cls, "__qualname__", repr(cls)))
    try:
        hash(value)
    except TypeError:
        return key_id + ("id", id(value))
    return key_id + ("value", value)


class _FrozenFNumPy:
    """Hashable view of an ``f_numpy`` mapping.

    Bound methods of two libraries compare unequal, so sessions never share
    kernels.
    """

    __slots__ = ("mapping", "_key")

    def __init__(self, mapping: Optional[Mapping[BindingKey, Any]]) -> None:
        self.mapping = dict(mapping or {})
        self._key = tuple(sorted((_binding_marker(k, v) for k, v in self.mapping.items()), key=lambda m: m[:3]))

    def __hash__(self) -> int:
        return hash(self._key)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, _FrozenFNumPy) and self._key == other._key


@lru_cache(maxsize=_CACHE_SIZE)
def _cached_compile(
    expr: sp.Basic,
    vars_tuple: tuple[sp.Symbol, ...],
    frozen: _FrozenFNumPy,
    vectorize: bool,
) -> NumpifiedFunction:
    logger.debug("numpify_cached: miss for %s", expr)
    return _compile(expr, vars_tuple, frozen.mapping, vectorize)


def numpify_cached(
    expr: Any,
    *,
    vars: VarsLike = None,
    f_numpy: Optional[Mapping[BindingKey, Any]] = None,
    vectorize: bool = True,
) -> NumpifiedFunction:
    """:func:`numpify` through an LRU cache keyed on the expression, vars, bindings and *vectorize*.

    ``numpify_cached.cache_clear()`` drops every kernel.
    """
    expr = _as_basic(expr)
    return _cached_compile(expr, _normalize_vars(expr, vars), _FrozenFNumPy(f_numpy), vectorize)


numpify_cached.cache_info = _cached_compile.cache_info  # type: ignore[attr-defined]
numpify_cached.cache_clear = _cached_compile.cache_clear  # type: ignore[attr-defined]
