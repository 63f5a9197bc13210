from __future__ import annotations

import math
from unittest import mock

import numpy as np
import pytest
import sympy as sp

from qraph.errors import ArityError
from qraph.function_library import LIBRARY_FUNCTIONS, RND_CALL, FunctionLibrary
from qraph.NamedFunction import NamedFunction
from qraph.perlin import Perlin

EXPECTED_NAMES = {
    "sqrt", "abs", "acos", "acosh", "asin", "asinh", "atan", "atanh", "cbrt", "ceil",
    "cos", "cosh", "floor", "sin", "sinh", "tan", "tanh",
    "min", "max", "atan2", "dim", "mod", "remainder", "copysign", "hypot",
    "rnd", "p1", "p2", "p3",
}


def test_library_exposes_the_full_table(library: FunctionLibrary) -> None:
    assert set(library.names) == EXPECTED_NAMES
    assert set(LIBRARY_FUNCTIONS) == EXPECTED_NAMES
    assert "sqrt" in library
    assert "log" not in library


@pytest.mark.parametrize(
    "name, arity",
    [("sqrt", 1), ("tanh", 1), ("min", 2), ("remainder", 2), ("rnd", 0), ("p1", 5), ("p2", 6), ("p3", 7)],
)
def test_arity(library: FunctionLibrary, name: str, arity: int) -> None:
    assert library.arity(name) == arity


def test_symbolic_application_checks_arity() -> None:
    x = sp.Symbol("x")
    with pytest.raises(ArityError, match="sqrt must have 1 argument: x"):
        LIBRARY_FUNCTIONS["sqrt"](x, 1)
    with pytest.raises(ArityError, match="p1 must have 5 arguments: alpha, beta, n, seed, x"):
        LIBRARY_FUNCTIONS["p1"](1, 2)


def test_numeric_call_checks_arity(library: FunctionLibrary) -> None:
    with pytest.raises(ArityError) as info:
        library.call("p2", 1, 2, 3)
    assert info.value.expected == 6
    assert info.value.given == 3
    assert isinstance(info.value, TypeError)
    with pytest.raises(ArityError, match="rnd takes no arguments"):
        library.call("rnd", 1)


def test_applications_stay_opaque() -> None:
    app = LIBRARY_FUNCTIONS["sin"](sp.Integer(0))
    assert app.func is LIBRARY_FUNCTIONS["sin"]
    assert app.evalf() == app


def test_unknown_name_lookup(library: FunctionLibrary) -> None:
    with pytest.raises(KeyError):
        library["log"]
    with pytest.raises(KeyError):
        library.arity("log")


@pytest.mark.parametrize(
    "name, args, expected",
    [
        ("sqrt", (16.0,), 4.0),
        ("abs", (-2.5,), 2.5),
        ("cbrt", (-8.0,), -2.0),
        ("ceil", (1.2,), 2.0),
        ("floor", (-1.2,), -2.0),
        ("min", (3.0, -1.0), -1.0),
        ("max", (3.0, -1.0), 3.0),
        ("atan2", (1.0, 1.0), math.pi / 4),
        ("dim", (5.0, 3.0), 2.0),
        ("dim", (3.0, 5.0), 0.0),
        ("mod", (-7.0, 3.0), -1.0),
        ("remainder", (5.0, 3.0), -1.0),
        ("remainder", (7.0, 2.0), -1.0),
        ("copysign", (3.0, -0.5), -3.0),
        ("hypot", (3.0, 4.0), 5.0),
    ],
)
def test_numeric_values(library: FunctionLibrary, name: str, args: tuple, expected: float) -> None:
    assert float(library.call(name, *args)) == pytest.approx(expected)


@pytest.mark.parametrize(
    "name, args",
    [("sqrt", (-1.0,)), ("acos", (2.0,)), ("mod", (1.0, 0.0)), ("remainder", (1.0, 0.0)), ("remainder", (math.inf, 1.0))],
)
def test_out_of_domain_is_nan(library: FunctionLibrary, name: str, args: tuple) -> None:
    assert math.isnan(float(library.call(name, *args)))


def test_remainder_with_infinite_divisor_returns_dividend(library: FunctionLibrary) -> None:
    assert float(library.call("remainder", 2.5, math.inf)) == 2.5


def test_functions_accept_arrays(library: FunctionLibrary) -> None:
    np.testing.assert_allclose(library.call("sqrt", np.array([4.0, 9.0])), [2.0, 3.0])
    np.testing.assert_allclose(library.call("remainder", np.array([5.0, 7.0]), 3.0), [-1.0, 1.0])
    out = library.call("p1", 2, 2, 3, 7, np.array([0.5, 0.5, 1.5]))
    assert out.shape == (3,)
    assert out[0] == out[1]


def test_rnd_is_uniform_and_seeded() -> None:
    first = FunctionLibrary(seed=5)
    second = FunctionLibrary(seed=5)
    draws = [first.call("rnd") for _ in range(50)]
    assert all(0.0 <= value < 1.0 for value in draws)
    assert draws == [second.call("rnd") for _ in range(50)]
    assert len(set(draws)) > 1


def test_p1_is_memoized_per_key() -> None:
    library = FunctionLibrary()
    with mock.patch.object(Perlin, "noise1d", autospec=True, return_value=0.25) as noise:
        assert library.call("p1", 2, 2, 3, 7, 0.5) == 0.25
        assert library.call("p1", 2, 2, 3, 7, 0.5) == 0.25
        # Equal values of other numeric types share the key.
        assert library.call("p1", 2.0, 2, 3.0, 7, 0.5) == 0.25
    assert noise.call_count == 1
    info = library.noise_cache_info()
    assert info.hits == 2
    assert info.misses == 1


def test_p1_memo_is_per_library() -> None:
    with mock.patch.object(Perlin, "noise1d", autospec=True, return_value=0.0) as noise:
        FunctionLibrary().call("p1", 2, 2, 3, 11, 0.5)
        FunctionLibrary().call("p1", 2, 2, 3, 11, 0.5)
    assert noise.call_count == 2


def test_clear_noise_cache() -> None:
    library = FunctionLibrary()
    library.call("p1", 2, 2, 3, 7, 0.25)
    assert library.noise_cache_info().currsize == 1
    library.clear_noise_cache()
    assert library.noise_cache_info().currsize == 0


def test_noise_cache_is_bounded() -> None:
    library = FunctionLibrary(noise_cache_size=2)
    for x in (0.1, 0.2, 0.3, 0.4):
        library.call("p1", 2, 2, 3, 7, x)
    assert library.noise_cache_info().currsize == 2


def test_p2_is_not_memoized() -> None:
    library = FunctionLibrary()
    with mock.patch.object(Perlin, "noise2d", autospec=True, return_value=0.5) as noise:
        library.call("p2", 2, 2, 3, 7, 0.5, 0.5)
        library.call("p2", 2, 2, 3, 7, 0.5, 0.5)
    assert noise.call_count == 2


def test_noise_with_non_finite_parameters_is_nan(library: FunctionLibrary) -> None:
    assert math.isnan(library.call("p1", 2, 2, math.nan, 7, 0.5))
    assert math.isnan(library.call("p2", 2, 2, 3, math.inf, 0.5, 0.5))


def test_bindings_map_every_class(library: FunctionLibrary) -> None:
    bindings = library.bindings()
    assert set(bindings) == set(LIBRARY_FUNCTIONS.values()) | {RND_CALL}
    assert all(callable(impl) for impl in bindings.values())
    assert library.symbol_table()["hypot"] is LIBRARY_FUNCTIONS["hypot"]
    assert RND_CALL.__name__ not in library.symbol_table()


def test_rnd_call_sites_share_the_session_generator() -> None:
    seeded = FunctionLibrary(seed=9)
    reference = FunctionLibrary(seed=9)
    draw = seeded.bindings()[RND_CALL]
    assert [draw(0), draw(1), draw(0)] == [reference.call("rnd") for _ in range(3)]
    with pytest.raises(ArityError):
        draw()
    assert seeded.is_stochastic(RND_CALL(sp.Integer(0)))


def test_kernel_cache_is_bounded_and_validated() -> None:
    library = FunctionLibrary(kernel_cache_size=1)
    x = sp.Symbol("x")
    first = library.kernel(x + 1, (x,))
    assert library.kernel(x + 1, (x,)) is first
    library.kernel(x + 2, (x,))
    assert library.kernel_cache_info().currsize == 1
    assert library.kernel(x + 1, (x,)) is not first
    with pytest.raises(ValueError):
        FunctionLibrary(kernel_cache_size=-1)


def test_named_function_rejects_varargs_and_defaults() -> None:
    def varargs(*args):
        return 0

    def defaults(a, b=1):
        return a

    with pytest.raises(ValueError):
        NamedFunction(varargs)
    with pytest.raises(ValueError):
        NamedFunction(defaults)
    with pytest.raises(TypeError):
        NamedFunction(42)


def test_named_function_keeps_signature_and_numeric_impl() -> None:
    import inspect

    @NamedFunction
    def Twice(a):
        """Double the input."""
        return 2 * a

    assert list(inspect.signature(Twice).parameters) == ["a"]
    assert Twice.f_numpy(3) == 6
    assert "Double the input." in (Twice.__doc__ or "")
    with pytest.raises(ArityError):
        Twice.f_numpy(1, 2)
