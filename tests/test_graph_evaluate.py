from __future__ import annotations

import math

import numpy as np
import pytest

from qraph import curves
from qraph.errors import EquationSyntaxError, TooManyBranches
from qraph.function_library import FunctionLibrary
from qraph.graph import BranchGraph, Graph, compile_graph, evaluate_member_array


def test_circle_equation_is_multi_valued(library: FunctionLibrary) -> None:
    graph = compile_graph("{x},{sqrt(25-x^2),-sqrt(25-x^2)}", library)
    assert graph.evaluate(3, 0) == ([3.0], [4.0, -4.0])


def test_multiple_x_members(library: FunctionLibrary) -> None:
    graph = compile_graph("{x,-x},{2}", library)
    assert graph.evaluate(1.5, 0) == ([1.5, -1.5], [2.0])


def test_x_shorthand_depends_on_y(library: FunctionLibrary) -> None:
    graph = compile_graph("x=y^2", library)
    assert graph.evaluate(0, 3) == ([9.0], [3.0])


def test_graph_keeps_split_and_text(library: FunctionLibrary) -> None:
    graph = compile_graph("y=x", library)
    assert graph.text == "y=x"
    assert graph.split.y_branch == ("x",)
    assert isinstance(graph, Graph)
    x_exprs, y_exprs = graph.expressions
    assert [e.source for e in x_exprs] == ["x"]
    assert [e.source for e in y_exprs] == ["x"]


def test_vectorized_and_scalar_paths_agree(library: FunctionLibrary) -> None:
    graph = compile_graph("{x,floor(y)},{sqrt(25-x^2),-sqrt(25-x^2),2}", library)
    xs = np.linspace(-6.0, 6.0, 13)
    ys = np.linspace(-3.0, 3.0, 13)
    vx, vy = graph.evaluate_array(xs, ys)
    for i, (x, y) in enumerate(zip(xs, ys)):
        sx, sy = graph.evaluate(float(x), float(y))
        np.testing.assert_array_equal([arr[i] for arr in vx], sx)
        np.testing.assert_array_equal([arr[i] for arr in vy], sy)


def test_constant_members_broadcast(library: FunctionLibrary) -> None:
    graph = compile_graph("{1},{π}", library)
    vx, vy = graph.evaluate_array(np.zeros(4), np.zeros(4))
    np.testing.assert_array_equal(vx[0], [1.0] * 4)
    np.testing.assert_array_equal(vy[0], [math.pi] * 4)


def test_stochastic_members_draw_per_sample(library: FunctionLibrary) -> None:
    graph = compile_graph("y=rnd()", library)
    _, (values,) = graph.evaluate_array(np.zeros(100), np.zeros(100))
    assert np.all((values >= 0.0) & (values < 1.0))
    assert len(set(values.tolist())) > 50


def test_boolean_members_become_zero(library: FunctionLibrary) -> None:
    graph = compile_graph("y=x>0", library)
    _, (values,) = graph.evaluate_array(np.array([-1.0, 1.0]), np.zeros(2))
    np.testing.assert_array_equal(values, [0.0, 0.0])


def test_failing_vector_call_falls_back_to_samples() -> None:
    graph = BranchGraph((lambda x, y: float(x),), (lambda x, y: 1.0,))
    xs = np.array([1.0, 2.0, 3.0])
    (vx,), (vy,) = graph.evaluate_array(xs, xs)
    np.testing.assert_array_equal(vx, xs)
    np.testing.assert_array_equal(vy, [1.0, 1.0, 1.0])


def test_member_errors_become_zero() -> None:
    def broken(x, y):
        raise ZeroDivisionError

    graph = BranchGraph((broken,), (broken,))
    assert graph.evaluate(1.0, 1.0) == ([0.0], [0.0])
    np.testing.assert_array_equal(evaluate_member_array(broken, np.ones(3), np.ones(3)), np.zeros(3))


def test_branch_graph_needs_members() -> None:
    with pytest.raises(ValueError):
        BranchGraph((), (lambda x, y: y,))


def test_user_constants_accept_numeric_strings(library: FunctionLibrary) -> None:
    graph = compile_graph("y=a*x", library, constants={"a": "1/2"})
    assert graph.evaluate(4, 0) == ([4.0], [2.0])
    assert graph.constants == {"a": 0.5}


def test_parse_errors_propagate(library: FunctionLibrary) -> None:
    with pytest.raises(TooManyBranches):
        compile_graph("{x},{y},{z}", library)
    with pytest.raises(EquationSyntaxError):
        compile_graph("y=sin(", library)


@pytest.mark.parametrize(
    "graph, x, expected",
    [
        (curves.linear(2, 1), 1.0, ([1.0], [3.0])),
        (curves.quadratic(1, 0, 0), 3.0, ([3.0], [9.0])),
        (curves.cubic(1, 0, 0, 0), 2.0, ([2.0], [8.0])),
        (curves.quartic(1, 0, 0, 0, 0), 2.0, ([2.0], [16.0])),
        (curves.exponential(), 0.0, ([0.0], [1.0])),
        (curves.constant_y(4), 5.0, ([5.0], [4.0])),
        (curves.constant(1, 2), 5.0, ([1.0], [2.0])),
        (curves.circle(0, 0, 5), 3.0, ([3.0], [4.0, -4.0])),
    ],
)
def test_curves(graph: BranchGraph, x: float, expected: tuple) -> None:
    assert graph.evaluate(x, 7.0) == expected


def test_constant_x_follows_y() -> None:
    assert curves.constant_x(0).evaluate(5.0, 7.0) == ([0.0], [7.0])


def test_circle_outside_radius_is_nan() -> None:
    xs, ys = curves.circle(0, 0, 1).evaluate(3.0, 0.0)
    assert xs == [3.0]
    assert all(math.isnan(v) for v in ys)
