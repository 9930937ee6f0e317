"""
every compute edge's backward agrees with finite differences of its forward
"""

import numpy as np
import pytest

from edgegrad import config, edges, gradcheck, llops, runtime, shapes


def randn(rows: int, cols: int) -> llops.Matrix:
    return llops.read(np.random.randn(rows, cols).tolist())


CASES = {
    "matmul": (edges.MatrixMultiply(("a", "b")), lambda: [randn(3, 4), randn(4, 2)]),
    "matmul_vector": (edges.MatrixMultiply(("W", "x")), lambda: [randn(5, 3), randn(3, 1)]),
    "sum_one": (edges.Sum(("a",)), lambda: [randn(2, 3)]),
    "sum_three": (edges.Sum(("a", "b", "c")), lambda: [randn(2, 3), randn(2, 3), randn(2, 3)]),
    "squared_distance": (edges.SquaredEuclideanDistance(("y", "t")), lambda: [randn(4, 1), randn(4, 1)]),
    "sigmoid": (edges.LogisticSigmoid(("x",)), lambda: [randn(3, 2)]),
    "tanh": (edges.Tanh(("x",)), lambda: [randn(3, 2)]),
    "log_softmax": (edges.LogSoftmax(("x",)), lambda: [randn(5, 1)]),
    "pick": (edges.PickElement(("x", "i")), lambda: [randn(4, 1), llops.read([[2]])]),
    "square": (edges.Square(("x",)), lambda: [randn(2, 2)]),
}


@pytest.mark.parametrize("case", CASES)
def test_gradient_check_law(case: str, engine: runtime.Engine) -> None:
    edge, make_inputs = CASES[case]
    with config.Configuration(engine=engine):
        results = gradcheck.check_gradients(edge, make_inputs())
    assert results, f"no differentiable inputs checked for {case}"
    for result in results:
        assert result.passed, f"{case}: input {result.index} off by {result.max_abs_error}"


def test_gradient_check_stable_log_softmax(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine, stable_log_softmax=True):
        (result,) = gradcheck.check_gradients(edges.LogSoftmax(("x",)), [randn(6, 1)])
    assert result.passed


def test_pick_index_is_skipped(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        results = gradcheck.check_gradients(edges.PickElement(("x", "i")), [randn(3, 1), llops.read([[0]])])
    assert [r.index for r in results] == [0]


def test_explicit_dEdf(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        edge = edges.Square(("x",))
        results = gradcheck.check_gradients(edge, [randn(2, 3)], llops.ones(shapes.Dim(2, 3)))
    assert [r.index for r in results] == [0]
    assert results[0].max_abs_error < 1e-5


def test_numerical_gradient_square(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        x = llops.read([[1.0, -2.0], [0.5, 3.0]])
        grad = gradcheck.numerical_gradient(edges.Square(("x",)), [x], 0, llops.ones(shapes.Dim(2, 2)))
        assert np.allclose(llops.to_python(grad), [[2.0, -4.0], [1.0, 6.0]], atol=1e-5)
        assert llops.to_python(x) == [[1.0, -2.0], [0.5, 3.0]]


def test_numerical_gradient_second_input(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        x1, x2 = llops.read([[1.0, 2.0]]), llops.read([[3.0], [4.0]])
        grad = gradcheck.numerical_gradient(edges.MatrixMultiply(("a", "b")), [x1, x2], 1, llops.read([[2.0]]))
        assert np.allclose(llops.to_python(grad), [[2.0], [4.0]], atol=1e-5)


def test_detects_a_wrong_gradient(engine: runtime.Engine) -> None:
    with config.Configuration(engine=engine):
        x = llops.read([[1.0], [2.0]])
        edge = edges.Square(("x",))
        dEdf = llops.ones(shapes.Dim(2, 1))
        numeric = gradcheck.numerical_gradient(edge, [x], 0, dEdf)
        wrong = llops.scale(edge.backward([x], edge.forward([x]), dEdf, 0), 0.5)
        assert not np.allclose(llops.to_python(numeric), llops.to_python(wrong), atol=1e-5)
