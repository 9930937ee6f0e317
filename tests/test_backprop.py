"""
end-to-end reverse passes over small hand-wired graphs
"""

from __future__ import annotations

from typing import Hashable

import numpy as np
import pytest

from edgegrad import config, edges, llops, params, runtime, shapes

Graph = list[tuple[Hashable, edges.Edge]]


def run_forward(graph: Graph) -> dict[Hashable, llops.Matrix]:
    values: dict[Hashable, llops.Matrix] = {}
    for name, edge in graph:
        values[name] = edge.forward([values[t] for t in edge.tail])
    return values


def run_backward(graph: Graph, values: dict[Hashable, llops.Matrix], arena: params.ParameterArena) -> None:
    """reverse-order chain rule from the last node, which must be 1x1"""
    out_name, _ = graph[-1]
    assert llops.dim(values[out_name]).is_scalar
    grads = {out_name: llops.ones(shapes.Dim(1, 1))}
    for name, edge in reversed(graph):
        if name not in grads:
            continue
        xs = [values[t] for t in edge.tail]
        for i, t in enumerate(edge.tail):
            if not edges.is_differentiable(edge, i):
                continue
            dEdx = edge.backward(xs, values[name], grads[name], i)
            grads[t] = llops.add(grads[t], dEdx) if t in grads else dEdx
        if isinstance(edge, (edges.ParameterEdge, edges.LookupEdge)):
            arena.accumulate_grad(edge, grads[name])


def loss_of(graph: Graph) -> float:
    out_name, _ = graph[-1]
    return llops.at(run_forward(graph)[out_name], 0, 0)


def assert_matches_finite_differences(graph: Graph, handle: params.Handle, delta: float = 1e-6) -> None:
    entry = handle.get()
    analytic = np.array(llops.to_python(entry.grad))
    original = entry.values
    d = llops.dim(original)
    numeric = np.zeros((d.rows, d.cols))
    for row in range(d.rows):
        for col in range(d.cols):
            v = llops.at(original, row, col)
            entry.values = llops.with_element(original, row, col, v + delta)
            up = loss_of(graph)
            entry.values = llops.with_element(original, row, col, v - delta)
            down = loss_of(graph)
            numeric[row, col] = 0.5 * (up - down) / delta
    entry.values = original
    assert np.allclose(analytic, numeric, atol=1e-5, rtol=1e-4)


def test_matmul_identity_scenario(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        edge = edges.MatrixMultiply(("x1", "x2"))
        xs = [llops.read([[1, 2], [3, 4]]), llops.identity(2)]
        fx = edge.forward(xs)
        assert llops.to_python(fx) == [[1.0, 2.0], [3.0, 4.0]]
        assert llops.to_python(edge.backward(xs, fx, llops.ones(shapes.Dim(2, 2)), 0)) == [[1.0, 1.0]] * 2


def test_pick_element_scenario(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        edge = edges.PickElement(("p", "k"))
        xs = [llops.read([[0.1], [0.5], [0.4]]), llops.read([[1.0]])]
        fx = edge.forward(xs)
        assert llops.to_python(fx) == [[0.5]]
        assert llops.to_python(edge.backward(xs, fx, llops.ones(shapes.Dim(1, 1)), 0)) == [[0.0], [1.0], [0.0]]
        with pytest.raises(NotImplementedError):
            edge.backward(xs, fx, llops.ones(shapes.Dim(1, 1)), 1)


def test_cross_entropy_chain(arena: params.ParameterArena, engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        W, b = arena.add_parameters(3, 4), arena.add_parameters(3, 1)
        graph: Graph = [
            ("x", edges.InputEdge(arena.add_const(np.random.randn(4, 1).tolist()))),
            ("W", edges.ParameterEdge(W)),
            ("b", edges.ParameterEdge(b)),
            ("Wx", edges.MatrixMultiply(("W", "x"))),
            ("h", edges.Sum(("Wx", "b"))),
            ("a", edges.Tanh(("h",))),
            ("p", edges.LogSoftmax(("a",))),
            ("t", edges.InputEdge(arena.add_const([[2]]))),
            ("loss", edges.PickElement(("p", "t"))),
        ]
        run_backward(graph, run_forward(graph), arena)
        assert_matches_finite_differences(graph, W)
        assert_matches_finite_differences(graph, b)


def test_regression_chain_with_shared_input(arena: params.ParameterArena, engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        W1, W2 = arena.add_parameters(4, 2), arena.add_parameters(2, 4)
        graph: Graph = [
            ("x", edges.InputEdge(arena.add_const([[0.3], [-0.8]]))),
            ("y", edges.InputEdge(arena.add_const([[0.9], [0.1]]))),
            ("W1", edges.ParameterEdge(W1)),
            ("W2", edges.ParameterEdge(W2)),
            ("W1x", edges.MatrixMultiply(("W1", "x"))),
            ("sq", edges.Square(("W1x",))),
            ("z", edges.Sum(("W1x", "sq"))),
            ("s", edges.LogisticSigmoid(("z",))),
            ("out", edges.MatrixMultiply(("W2", "s"))),
            ("loss", edges.SquaredEuclideanDistance(("out", "y"))),
        ]
        run_backward(graph, run_forward(graph), arena)
        assert_matches_finite_differences(graph, W1)
        assert_matches_finite_differences(graph, W2)


def test_lookup_chain_accumulates_selected_row(arena: params.ParameterArena, engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        table = arena.add_lookup(5, 3)
        graph: Graph = [
            ("e", edges.LookupEdge(table, 3)),
            ("t", edges.InputEdge(arena.add_const([[1.0], [0.0], [-1.0]]))),
            ("loss", edges.SquaredEuclideanDistance(("e", "t"))),
        ]
        values = run_forward(graph)
        run_backward(graph, values, arena)
        expected = 2 * (np.array(llops.to_python(values["e"])) - np.array([[1.0], [0.0], [-1.0]]))
        assert table.get().touched == {3}
        assert np.allclose(llops.to_python(table.get().grads[3]), expected)


def test_reentrant_passes(arena: params.ParameterArena, engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        W = arena.add_parameters(1, 2)
        graph: Graph = [
            ("W", edges.ParameterEdge(W)),
            ("x", edges.InputEdge(arena.add_const([[1.0], [2.0]]))),
            ("loss", edges.MatrixMultiply(("W", "x"))),
        ]
        for _ in range(3):
            run_backward(graph, run_forward(graph), arena)
        assert llops.to_python(W.get().grad) == [[3.0, 6.0]]
