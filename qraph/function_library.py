"""Named numeric functions available inside equations.

Each entry is a SymPy function class generated by :func:`~qraph.NamedFunction.NamedFunction`,
so parsed expressions hold opaque, arity-checked applications such as
``sqrt(25 - x**2)``. The numeric side of every class (``f_numpy``) accepts
scalars or NumPy arrays and follows IEEE semantics for out-of-domain input:
``sqrt(-1)`` is NaN, ``acos(2)`` is NaN, ``mod(1, 0)`` is NaN.

:class:`FunctionLibrary` is the per-session view of this table. It supplies
the parse namespace and the numeric bindings used for code generation, and it
owns the two pieces of per-session state:

- the random generator behind ``rnd()``,
- the bounded memo of ``p1`` values keyed by ``(alpha, beta, n, seed, x)``,
- the compiled NumPy kernels of the expressions parsed against it.

The parser rewrites every ``rnd()`` call site into an application of the
hidden :data:`RND_CALL` class, numbered by position, so two calls in one
expression stay distinct terms and draw separately.

Examples
--------
>>> lib = FunctionLibrary(seed=1)
>>> float(lib.call("hypot", 3.0, 4.0))
5.0
>>> lib.arity("p2")
6
"""

from __future__ import annotations

import logging
import math
import threading
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

import numpy as np
import sympy as sp
from sympy.core.function import FunctionClass

from .NamedFunction import NamedFunction, arity_checked
from .numpify import NumpifiedFunction, numpify
from .perlin import perlin_generator

__all__ = [
    "FunctionLibrary",
    "LIBRARY_FUNCTIONS",
    "RND_CALL",
    "DEFAULT_NOISE_CACHE_SIZE",
    "DEFAULT_KERNEL_CACHE_SIZE",
]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


DEFAULT_NOISE_CACHE_SIZE = 65536
DEFAULT_KERNEL_CACHE_SIZE = 256


# === SECTION: Numeric helpers [id: helpers]===


def _unary(name: str, ufunc: np.ufunc) -> FunctionClass:
    def impl(x: Any) -> Any:
        return ufunc(x)

    impl.__doc__ = f"Elementwise ``numpy.{ufunc.__name__}``."
    return NamedFunction(impl, name=name)


def _ieee_remainder(x: float, y: float) -> float:
    try:
        return math.remainder(x, y)
    except ValueError:
        # remainder(inf, y) and remainder(x, 0) are NaN under IEEE 754.
        return math.nan


_remainder_ufunc = np.vectorize(_ieee_remainder, otypes=[float])


def _noise_params(alpha: float, beta: float, n: float, seed: float) -> Optional[tuple[float, float, int, int]]:
    """Normalize noise parameters; ``None`` when any of them is not finite."""
    values = (float(alpha), float(beta), float(n), float(seed))
    if not all(math.isfinite(v) for v in values):
        return None
    return values[0], values[1], int(values[2]), int(values[3])


def _elementwise(point: Callable[..., float], *args: Any) -> Any:
    """Apply a scalar function over broadcast arguments."""
    arrays = np.broadcast_arrays(*(np.asarray(a, dtype=float) for a in args))
    if arrays[0].ndim == 0:
        return point(*(float(a) for a in arrays))
    flat = zip(*(a.ravel().tolist() for a in arrays))
    out = np.fromiter((point(*values) for values in flat), dtype=float, count=arrays[0].size)
    return out.reshape(arrays[0].shape)


def _noise(method: str, alpha: Any, beta: Any, n: Any, seed: Any, *coords: Any) -> Any:
    """Evaluate ``Perlin.<method>`` for scalar parameters or elementwise otherwise."""
    params = (alpha, beta, n, seed)
    if all(np.ndim(p) == 0 for p in params):
        key = _noise_params(*params)
        if key is None:
            shape = np.broadcast(*coords).shape
            return np.full(shape, np.nan) if shape else math.nan
        return getattr(perlin_generator(*key), method)(*coords)

    def point(a: float, b: float, k: float, s: float, *c: float) -> float:
        key = _noise_params(a, b, k, s)
        if key is None:
            return math.nan
        return getattr(perlin_generator(*key), method)(*c)

    return _elementwise(point, alpha, beta, n, seed, *coords)


# === END SECTION: Numeric helpers ===


# === SECTION: Function table [id: table]===

sqrt = _unary("sqrt", np.sqrt)
abs_ = _unary("abs", np.abs)
acos = _unary("acos", np.arccos)
acosh = _unary("acosh", np.arccosh)
asin = _unary("asin", np.arcsin)
asinh = _unary("asinh", np.arcsinh)
atan = _unary("atan", np.arctan)
atanh = _unary("atanh", np.arctanh)
cbrt = _unary("cbrt", np.cbrt)
ceil = _unary("ceil", np.ceil)
cos = _unary("cos", np.cos)
cosh = _unary("cosh", np.cosh)
floor = _unary("floor", np.floor)
sin = _unary("sin", np.sin)
sinh = _unary("sinh", np.sinh)
tan = _unary("tan", np.tan)
tanh = _unary("tanh", np.tanh)


@NamedFunction(name="min")
def min_(a, b):
    """Smaller of ``a`` and ``b``; NaN if either is NaN."""
    return np.minimum(a, b)


@NamedFunction(name="max")
def max_(a, b):
    """Larger of ``a`` and ``b``; NaN if either is NaN."""
    return np.maximum(a, b)


@NamedFunction
def atan2(y, x):
    """Arc tangent of ``y/x`` using the signs of both to pick the quadrant."""
    return np.arctan2(y, x)


@NamedFunction
def dim(x, y):
    """Positive difference ``max(x - y, 0)``."""
    return np.maximum(np.subtract(x, y), 0.0)


@NamedFunction
def mod(x, y):
    """Floating-point remainder of ``x/y`` with the sign of ``x`` (C ``fmod``)."""
    return np.fmod(x, y)


@NamedFunction
def remainder(x, y):
    """IEEE 754 remainder: ``x - n*y`` with ``n`` the integer nearest ``x/y``."""
    return _remainder_ufunc(x, y)


@NamedFunction
def copysign(x, y):
    """Magnitude of ``x`` with the sign of ``y``."""
    return np.copysign(x, y)


@NamedFunction
def hypot(x, y):
    """``sqrt(x*x + y*y)`` without undue overflow."""
    return np.hypot(x, y)


@NamedFunction
def rnd():
    """Uniform random float in ``[0, 1)``; sessions bind their own generator."""
    return float(np.random.default_rng().random())


@NamedFunction(name="_rnd")
def rnd_call(site):
    """One ``rnd()`` call site; ``site`` numbers the calls of one expression."""
    return float(np.random.default_rng().random())


RND_CALL: FunctionClass = rnd_call


@NamedFunction
def p1(alpha, beta, n, seed, x):
    """1-D Perlin noise of ``n`` octaves."""
    return _noise("noise1d", alpha, beta, n, seed, x)


@NamedFunction
def p2(alpha, beta, n, seed, x, y):
    """2-D Perlin noise of ``n`` octaves."""
    return _noise("noise2d", alpha, beta, n, seed, x, y)


@NamedFunction
def p3(alpha, beta, n, seed, x, y, z):
    """3-D Perlin noise of ``n`` octaves."""
    return _noise("noise3d", alpha, beta, n, seed, x, y, z)


LIBRARY_FUNCTIONS: Mapping[str, FunctionClass] = MappingProxyType(
    {
        cls.__name__: cls
        for cls in (
            sqrt, abs_, acos, acosh, asin, asinh, atan, atanh, cbrt, ceil, cos, cosh,
            floor, sin, sinh, tan, tanh,
            min_, max_, atan2, dim, mod, remainder, copysign, hypot,
            rnd, p1, p2, p3,
        )
    }
)

# === END SECTION: Function table ===


class FunctionLibrary:
    """Per-session function table with its own ``rnd`` generator, ``p1`` memo and kernels.

    Parameters
    ----------
    noise_cache_size : int, optional
        Maximum number of memoized ``p1`` values (least recently used are
        evicted). ``0`` disables memoization.
    seed : int, numpy.random.SeedSequence or None, optional
        Seed of the ``rnd()`` generator; ``None`` draws fresh OS entropy.
    kernel_cache_size : int, optional
        Maximum number of compiled expression kernels kept by this library.
    """

    def __init__(
        self,
        *,
        noise_cache_size: int = DEFAULT_NOISE_CACHE_SIZE,
        seed: Any = None,
        kernel_cache_size: int = DEFAULT_KERNEL_CACHE_SIZE,
    ) -> None:
        if noise_cache_size < 0:
            raise ValueError(f"noise_cache_size must be >= 0, got {noise_cache_size}")
        if kernel_cache_size < 0:
            raise ValueError(f"kernel_cache_size must be >= 0, got {kernel_cache_size}")
        self._rng = np.random.default_rng(seed)
        self._rng_lock = threading.Lock()
        self._p1_cached = lru_cache(maxsize=noise_cache_size)(self._p1_uncached)
        self._kernels = lru_cache(maxsize=kernel_cache_size)(self._compile_kernel)

        overrides: Dict[str, Callable[..., Any]] = {"rnd": self._rnd, "p1": self._p1}
        self._numeric: Dict[str, Callable[..., Any]] = {}
        for name, cls in LIBRARY_FUNCTIONS.items():
            impl = overrides.get(name)
            self._numeric[name] = cls.f_numpy if impl is None else arity_checked(name, cls.parameters, impl)
        self._rnd_call = arity_checked(RND_CALL.__name__, RND_CALL.parameters, self._draw)

    def __repr__(self) -> str:
        return f"FunctionLibrary(functions={len(self._numeric)}, noise_cache={self.noise_cache_info()})"

    # --- per-session numeric implementations -----------------------------------------

    def _rnd(self) -> float:
        with self._rng_lock:
            return float(self._rng.random())

    def _draw(self, site: Any) -> float:
        return self._rnd()

    @staticmethod
    def _p1_uncached(alpha: float, beta: float, n: int, seed: int, x: float) -> float:
        return perlin_generator(alpha, beta, n, seed).noise1d(x)

    def _p1_point(self, alpha: float, beta: float, n: float, seed: float, x: float) -> float:
        key = _noise_params(alpha, beta, n, seed)
        if key is None or not math.isfinite(x):
            return math.nan
        return self._p1_cached(*key, x)

    def _p1(self, alpha: Any, beta: Any, n: Any, seed: Any, x: Any) -> Any:
        return _elementwise(self._p1_point, alpha, beta, n, seed, x)

    # --- lookup ----------------------------------------------------------------------

    @property
    def names(self) -> tuple[str, ...]:
        """Function names in table order."""
        return tuple(self._numeric)

    def __contains__(self, name: object) -> bool:
        return name in self._numeric

    def __getitem__(self, name: str) -> Callable[..., Any]:
        """Numeric (arity-checked) implementation of *name*."""
        try:
            return self._numeric[name]
        except KeyError:
            raise KeyError(f"unknown function {name!r}") from None

    def call(self, name: str, *args: Any) -> Any:
        """Evaluate *name* numerically with IEEE semantics (no floating-point warnings)."""
        impl = self[name]
        with np.errstate(all="ignore"):
            return impl(*args)

    def arity(self, name: str) -> int:
        return len(self.function_class(name).parameters)

    def function_class(self, name: str) -> FunctionClass:
        try:
            return LIBRARY_FUNCTIONS[name]
        except KeyError:
            raise KeyError(f"unknown function {name!r}") from None

    def symbol_table(self) -> Dict[str, FunctionClass]:
        """Name to SymPy class mapping used as parse namespace."""
        return dict(LIBRARY_FUNCTIONS)

    def bindings(self) -> Dict[FunctionClass, Callable[..., Any]]:
        """SymPy class to numeric implementation mapping used for code generation."""
        out: Dict[FunctionClass, Callable[..., Any]] = {
            LIBRARY_FUNCTIONS[name]: impl for name, impl in self._numeric.items()
        }
        out[RND_CALL] = self._rnd_call
        return out

    def is_stochastic(self, expr: sp.Basic) -> bool:
        """True when *expr* applies ``rnd`` anywhere."""
        return expr.has(LIBRARY_FUNCTIONS["rnd"], RND_CALL)

    # --- noise memo ------------------------------------------------------------------

    def noise_cache_info(self) -> Any:
        """``functools`` cache statistics of the ``p1`` memo."""
        return self._p1_cached.cache_info()

    def clear_noise_cache(self) -> None:
        self._p1_cached.cache_clear()
        logger.debug("FunctionLibrary: p1 memo cleared")

    # --- kernels ---------------------------------------------------------------------

    def _compile_kernel(self, expr: sp.Basic, vars: tuple[sp.Symbol, ...]) -> NumpifiedFunction:
        return numpify(expr, vars=vars, f_numpy=self.bindings(), cache=False)

    def kernel(self, expr: sp.Basic, vars: tuple[sp.Symbol, ...]) -> NumpifiedFunction:
        """NumPy kernel of *expr* over *vars*, compiled once per library.

        Kernels close over this library's bindings and are released with it.
        """
        return self._kernels(expr, tuple(vars))

    def kernel_cache_info(self) -> Any:
        return self._kernels.cache_info()

    def clear_kernel_cache(self) -> None:
        self._kernels.cache_clear()
        logger.debug("FunctionLibrary: kernel cache cleared")
