from __future__ import annotations

import numpy as np
import pytest
import sympy as sp

from qraph.function_library import LIBRARY_FUNCTIONS
from qraph.numpify import numpify, numpify_cached


def test_numpify_uses_cache_by_default() -> None:
    x = sp.Symbol("x")
    numpify_cached.cache_clear()

    f1 = numpify(x + 1, vars=x)
    f2 = numpify(x + 1, vars=x)

    assert f1 is f2
    assert numpify_cached.cache_info().hits >= 1


def test_numpify_cache_false_forces_recompile() -> None:
    x = sp.Symbol("x")
    numpify_cached.cache_clear()

    f1 = numpify(x + 1, vars=x, cache=False)
    f2 = numpify(x + 1, vars=x, cache=False)

    assert f1 is not f2


def test_different_bindings_do_not_share_cache_entries() -> None:
    x = sp.Symbol("x")
    sin = LIBRARY_FUNCTIONS["sin"]

    f1 = numpify(sin(x), vars=(x,), f_numpy={sin: lambda v: v * 10})
    f2 = numpify(sin(x), vars=(x,), f_numpy={sin: lambda v: v * 20})

    assert f1 is not f2
    assert float(f1(2.0)) == 20.0
    assert float(f2(2.0)) == 40.0


def test_library_names_print_as_bare_calls() -> None:
    x = sp.Symbol("x")
    sin = LIBRARY_FUNCTIONS["sin"]
    floor = LIBRARY_FUNCTIONS["floor"]

    fn = numpify(sin(x) + floor(x), vars=(x,), f_numpy={sin: lambda v: v, floor: lambda v: 100 * v}, cache=False)

    assert "numpy.sin" not in fn.source
    assert "numpy.floor" not in fn.source
    assert float(fn(0.5)) == pytest.approx(50.5)


def test_auto_binds_f_numpy() -> None:
    x = sp.Symbol("x")
    hypot = LIBRARY_FUNCTIONS["hypot"]

    fn = numpify(hypot(x, 4), vars=(x,))

    assert float(fn(3.0)) == 5.0


def test_constant_expression_broadcasts() -> None:
    x = sp.Symbol("x")
    f = numpify(5, vars=x)
    np.testing.assert_array_equal(f(np.array([1, 2, 3])), [5.0, 5.0, 5.0])


def test_symbol_bindings_are_injected() -> None:
    x, a = sp.symbols("x a")
    g = numpify(a * x, vars=x, f_numpy={a: 2.0})
    np.testing.assert_array_equal(g(np.array([1, 2, 3])), [2.0, 4.0, 6.0])


def test_unbound_symbol_raises() -> None:
    x, y = sp.symbols("x y")
    with pytest.raises(ValueError, match="unbound symbols: y"):
        numpify(x + y, vars=x)


def test_unbound_function_raises() -> None:
    x = sp.Symbol("x")
    G = sp.Function("G")
    with pytest.raises(ValueError, match="G"):
        numpify(G(x), vars=x)


def test_non_identifier_symbol_names_are_mangled() -> None:
    pi = sp.Symbol("π")
    odd = sp.Symbol("a-b")
    fn = numpify(pi + odd, vars=(pi, odd), cache=False)
    assert fn.var_names[0] == "π"
    assert fn.var_names[1].isidentifier()
    assert float(fn(1.0, 2.0)) == 3.0


def test_wrong_positional_count_raises() -> None:
    x = sp.Symbol("x")
    fn = numpify(x, vars=(x,))
    with pytest.raises(TypeError):
        fn(1.0, 2.0)
