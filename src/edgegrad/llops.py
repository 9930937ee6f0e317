"""
Dense matrix contract

Every edge computes through the functions below. They check shapes and indices against `Dim`, then
hand the work to the configured engine. All of them return new matrices and never mutate their inputs.
"""

from __future__ import annotations

import enum
from typing import Any, Sequence

from edgegrad import config, shapes

PyArrayRepr = int | float | bool | Sequence["PyArrayRepr"]
Matrix = Any  # engine buffer, np.ndarray for the NumPyEngine


class Ops(enum.Enum):
    """Low level matrix ops every engine has to provide"""

    READ = enum.auto()
    FULL = enum.auto()
    IDENTITY = enum.auto()
    COPY = enum.auto()
    TRANSPOSE = enum.auto()
    ADD = enum.auto()
    SUB = enum.auto()
    CWISE_PRODUCT = enum.auto()
    SCALE = enum.auto()
    MATMUL = enum.auto()
    INV = enum.auto()
    EXP = enum.auto()
    LOG = enum.auto()
    TANH = enum.auto()
    SQUARED_NORM = enum.auto()
    TOTAL = enum.auto()
    AMAX = enum.auto()
    GET = enum.auto()
    SET = enum.auto()


def _run(op: Ops, *args: Any) -> Any:
    return config.Configuration.engine.execute(op, *args)


### Construction ###
def read(data: PyArrayRepr | Matrix, /) -> Matrix:
    matrix = _run(Ops.READ, data)
    dim(matrix)  # NOTE: engines assert 2-D here
    return matrix


def full(d: shapes.Dim, value: float, /) -> Matrix:
    return _run(Ops.FULL, d, float(value))


def zeros(d: shapes.Dim, /) -> Matrix:
    return full(d, 0.0)


def ones(d: shapes.Dim, /) -> Matrix:
    return full(d, 1.0)


def identity(n: int, /) -> Matrix:
    assert n > 0, f"{n=} must be positive"
    return _run(Ops.IDENTITY, n)


def copy(m: Matrix, /) -> Matrix:
    return _run(Ops.COPY, m)


### Introspection ###
def dim(m: Matrix, /) -> shapes.Dim:
    return config.Configuration.engine.dim(m)


def to_python(m: Matrix, /) -> list[list[float]]:
    return config.Configuration.engine.to_python(m)


def at(m: Matrix, i: int, j: int, /) -> float:
    assert dim(m).contains(i, j), f"({i=}, {j=}) out of bounds for {dim(m)}"
    return _run(Ops.GET, m, i, j)


def with_element(m: Matrix, i: int, j: int, value: float, /) -> Matrix:
    assert dim(m).contains(i, j), f"({i=}, {j=}) out of bounds for {dim(m)}"
    return _run(Ops.SET, m, i, j, float(value))


### Linear algebra ###
def transpose(m: Matrix, /) -> Matrix:
    return _run(Ops.TRANSPOSE, m)


def add(m1: Matrix, m2: Matrix, /) -> Matrix:
    assert_dim_match(m1, m2)
    return _run(Ops.ADD, m1, m2)


def sub(m1: Matrix, m2: Matrix, /) -> Matrix:
    assert_dim_match(m1, m2)
    return _run(Ops.SUB, m1, m2)


def cwise_product(m1: Matrix, m2: Matrix, /) -> Matrix:
    assert_dim_match(m1, m2)
    return _run(Ops.CWISE_PRODUCT, m1, m2)


def scale(m: Matrix, factor: float, /) -> Matrix:
    return _run(Ops.SCALE, m, float(factor))


def matmul(m1: Matrix, m2: Matrix, /) -> Matrix:
    dim(m1).matmul(dim(m2))
    return _run(Ops.MATMUL, m1, m2)


### Pointwise ###
def reciprocal(m: Matrix, /) -> Matrix:
    return _run(Ops.INV, m)


def exp(m: Matrix, /) -> Matrix:
    return _run(Ops.EXP, m)


def log(m: Matrix, /) -> Matrix:
    return _run(Ops.LOG, m)


def tanh(m: Matrix, /) -> Matrix:
    return _run(Ops.TANH, m)


### Reductions (to python floats) ###
def squared_norm(m: Matrix, /) -> float:
    return _run(Ops.SQUARED_NORM, m)


def total(m: Matrix, /) -> float:
    return _run(Ops.TOTAL, m)


def amax(m: Matrix, /) -> float:
    assert dim(m).size > 0, f"amax of empty {dim(m)}"
    return _run(Ops.AMAX, m)


### Helpers ###
def assert_dim_match(*matrices: Matrix) -> None:
    dims = [dim(m) for m in matrices]
    assert all(dims[0] == d for d in dims[1:]), f"{dims=} do not match"
