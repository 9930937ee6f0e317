"""
Edges: the differentiable operations of a computation graph

The edge set is closed. Each variant is a frozen dataclass carrying only the data it needs, and the
executor-facing functions (`forward`, `backward`, `as_string`, `has_parameters`) dispatch over the
variants with a single `match`. Edges never own their inputs: `tail` holds identifiers the external
graph resolves, and `xs` are borrowed for the duration of a call.
"""

from __future__ import annotations

import dataclasses
import functools
import math
from typing import ClassVar, Hashable, Sequence

from edgegrad import config, llops, params, shapes


class Edge:
    """Uniform interface the graph executor talks to"""

    __slots__ = ()
    tail: tuple[Hashable, ...]

    def forward(self, xs: Sequence[llops.Matrix]) -> llops.Matrix:
        return forward(self, xs)

    def backward(
        self,
        xs: Sequence[llops.Matrix],
        fx: llops.Matrix,
        dEdf: llops.Matrix,
        i: int,
    ) -> llops.Matrix:
        return backward(self, xs, fx, dEdf, i)

    def as_string(self, arg_names: Sequence[str]) -> str:
        return as_string(self, arg_names)

    def has_parameters(self) -> bool:
        return has_parameters(self)


### Leaf edges ###
@dataclasses.dataclass(frozen=True, slots=True)
class ParameterEdge(Edge):
    """optimizable parameters"""

    params: params.Handle[params.Parameters]
    dim: shapes.Dim = dataclasses.field(init=False, compare=False)
    tail: ClassVar[tuple[Hashable, ...]] = ()

    def __post_init__(self) -> None:
        entry = self.params.get()
        assert isinstance(entry, params.Parameters), f"{self.params=} is not trainable"
        object.__setattr__(self, "dim", entry.dim)


@dataclasses.dataclass(frozen=True, slots=True)
class InputEdge(Edge):
    """constant inputs"""

    params: params.Handle[params.ConstParameters]
    dim: shapes.Dim = dataclasses.field(init=False, compare=False)
    tail: ClassVar[tuple[Hashable, ...]] = ()

    def __post_init__(self) -> None:
        entry = self.params.get()
        assert isinstance(entry, params.ConstParameters), f"{self.params=} is not a constant"
        object.__setattr__(self, "dim", entry.dim)


@dataclasses.dataclass(frozen=True, slots=True)
class LookupEdge(Edge):
    """embedding of one item of a discrete set (1-hot coding), selected by `index`"""

    params: params.Handle[params.LookupParameters]
    index: int
    dim: shapes.Dim = dataclasses.field(init=False, compare=False)
    tail: ClassVar[tuple[Hashable, ...]] = ()

    def __post_init__(self) -> None:
        table = self.params.get()
        assert isinstance(table, params.LookupParameters), f"{self.params=} is not a table"
        assert 0 <= self.index < len(table), f"{self.index=} out of bounds for lookup table with {len(table)} rows"
        object.__setattr__(self, "dim", table.dim)

    def with_index(self, index: int) -> LookupEdge:
        return dataclasses.replace(self, index=index)


### Compute edges ###
@dataclasses.dataclass(frozen=True, slots=True)
class _ComputeEdge(Edge):
    tail: tuple[Hashable, ...]
    arity: ClassVar[int | None] = None  # None: variadic, at least one input

    def __post_init__(self) -> None:
        object.__setattr__(self, "tail", tail := tuple(self.tail))
        if self.arity is None:
            assert len(tail) >= 1, f"{self.__class__.__name__} needs at least one input, got {tail=}"
        else:
            assert len(tail) == self.arity, f"{self.__class__.__name__} takes {self.arity} inputs, got {tail=}"


@dataclasses.dataclass(frozen=True, slots=True)
class MatrixMultiply(_ComputeEdge):
    """y = x_1 * x_2"""

    arity: ClassVar[int | None] = 2


@dataclasses.dataclass(frozen=True, slots=True)
class Sum(_ComputeEdge):
    """y = \\sum_i x_i"""


@dataclasses.dataclass(frozen=True, slots=True)
class SquaredEuclideanDistance(_ComputeEdge):
    """y = || x_1 - x_2 ||^2"""

    arity: ClassVar[int | None] = 2


@dataclasses.dataclass(frozen=True, slots=True)
class LogisticSigmoid(_ComputeEdge):
    """y = \\sigma(x_1)"""

    arity: ClassVar[int | None] = 1


@dataclasses.dataclass(frozen=True, slots=True)
class Tanh(_ComputeEdge):
    """y = tanh x_1"""

    arity: ClassVar[int | None] = 1


@dataclasses.dataclass(frozen=True, slots=True)
class LogSoftmax(_ComputeEdge):
    """y_i = (x_1)_i - \\log \\sum_j \\exp (x_1)_j, x_1 a column vector"""

    arity: ClassVar[int | None] = 1


@dataclasses.dataclass(frozen=True, slots=True)
class PickElement(_ComputeEdge):
    """
    y = (x_1)_{x_2}
    x_1 is a column vector, x_2 a 1x1 matrix holding the row index.
    Used to implement cross-entropy training.
    """

    arity: ClassVar[int | None] = 2


@dataclasses.dataclass(frozen=True, slots=True)
class Square(_ComputeEdge):
    """y = x_1 \\odot x_1"""

    arity: ClassVar[int | None] = 1


### Dispatch ###
def forward(edge: Edge, xs: Sequence[llops.Matrix]) -> llops.Matrix:
    assert len(xs) == len(edge.tail), f"{edge!r} expects {len(edge.tail)} inputs, got {len(xs)=}"
    fx = _forward(edge, xs)
    config.Configuration.on_forward(edge, xs, fx)
    return fx


def backward(
    edge: Edge,
    xs: Sequence[llops.Matrix],
    fx: llops.Matrix,
    dEdf: llops.Matrix,
    i: int,
) -> llops.Matrix:
    assert edge.tail, f"{edge!r} is a leaf and has no inputs to differentiate"
    assert len(xs) == len(edge.tail), f"{edge!r} expects {len(edge.tail)} inputs, got {len(xs)=}"
    assert 0 <= i < len(xs), f"{i=} out of range for {len(xs)} inputs"
    assert llops.dim(dEdf) == llops.dim(fx), f"{llops.dim(dEdf)=} != {llops.dim(fx)=}"
    dEdx = _backward(edge, xs, fx, dEdf, i)
    assert llops.dim(dEdx) == llops.dim(xs[i]), f"{llops.dim(dEdx)=} != {llops.dim(xs[i])=}"
    config.Configuration.on_backward(edge, i, dEdx)
    return dEdx


def as_string(edge: Edge, arg_names: Sequence[str]) -> str:
    assert len(arg_names) == len(edge.tail), f"{edge!r} needs {len(edge.tail)} names, got {arg_names=}"
    match edge, tuple(arg_names):
        case ParameterEdge(dim=d), ():
            return f"parameters({d.rows}x{d.cols})"
        case InputEdge(dim=d), ():
            return f"constant({d.rows}x{d.cols})"
        case LookupEdge(params=handle, index=index, dim=d), ():
            return f"lookup_parameters(|x|={len(handle.get())} --> {d.rows}x{d.cols})[{index}]"
        case MatrixMultiply(), (x1, x2):
            return f"{x1} * {x2}"
        case Sum(), names:
            return " + ".join(names)
        case SquaredEuclideanDistance(), (x1, x2):
            return f"|| {x1} - {x2} ||^2"
        case LogisticSigmoid(), (x,):
            return f"\\sigma({x})"
        case Tanh(), (x,):
            return f"tanh({x})"
        case LogSoftmax(), (x,):
            return f"log_softmax({x})"
        case PickElement(), (x, index):
            return f"pick({x}_{index})"
        case Square(), (x,):
            return f"square({x})"
        case _:
            raise TypeError(f"Unknown edge {edge!r}")


def has_parameters(edge: Edge) -> bool:
    match edge:
        case ParameterEdge():
            return True
        case Edge():
            return False
        case _:
            raise TypeError(f"Unknown edge {edge!r}")


def is_differentiable(edge: Edge, i: int) -> bool:
    """Whether `backward(..., i)` is defined for this edge"""
    match edge:
        case PickElement():
            return i == 0  # f is not smooth w.r.t. the index
        case _:
            return 0 <= i < len(edge.tail)


### Forward / backward defs ###
def _forward(edge: Edge, xs: Sequence[llops.Matrix]) -> llops.Matrix:
    match edge:
        case ParameterEdge(params=handle) | InputEdge(params=handle):
            return llops.copy(handle.get().values)
        case LookupEdge(params=handle, index=index):
            table = handle.get()
            assert 0 <= index < len(table), f"{index=} out of bounds for lookup table with {len(table)} rows"
            return llops.copy(table.values[index])
        case MatrixMultiply():
            x1, x2 = xs
            return llops.matmul(x1, x2)
        case Sum():
            return functools.reduce(llops.add, xs[1:], llops.copy(xs[0]))
        case SquaredEuclideanDistance():
            x1, x2 = xs
            return llops.full(shapes.Dim(1, 1), llops.squared_norm(llops.sub(x1, x2)))
        case LogisticSigmoid():
            (x,) = xs
            return llops.reciprocal(llops.add(llops.ones(llops.dim(x)), llops.exp(llops.scale(x, -1))))
        case Tanh():
            (x,) = xs
            return llops.tanh(x)
        case LogSoftmax():
            (x,) = xs
            assert llops.dim(x).is_column_vector, f"log_softmax expects a column vector, got {llops.dim(x)}"
            return llops.sub(x, llops.full(llops.dim(x), _logsumexp(x)))
        case PickElement():
            x, mindex = xs
            return llops.full(shapes.Dim(1, 1), llops.at(x, _pick_index(x, mindex), 0))
        case Square():
            (x,) = xs
            return llops.cwise_product(x, x)
        case _:
            raise TypeError(f"Unknown edge {edge!r}")


def _backward(
    edge: Edge,
    xs: Sequence[llops.Matrix],
    fx: llops.Matrix,
    dEdf: llops.Matrix,
    i: int,
) -> llops.Matrix:
    match edge:
        case MatrixMultiply():
            x1, x2 = xs
            return llops.matmul(dEdf, llops.transpose(x2)) if i == 0 else llops.matmul(llops.transpose(x1), dEdf)
        case Sum():
            return llops.copy(dEdf)
        case SquaredEuclideanDistance():
            x1, x2 = xs
            assert llops.dim(dEdf).is_scalar, f"{llops.dim(dEdf)=} must be 1x1"
            factor = 2 * llops.at(dEdf, 0, 0)
            return llops.scale(llops.sub(x1, x2), factor if i == 0 else -factor)
        case LogisticSigmoid():
            dfdx = llops.cwise_product(llops.sub(llops.ones(llops.dim(fx)), fx), fx)
            return llops.cwise_product(dfdx, dEdf)
        case Tanh():
            dfdx = llops.sub(llops.ones(llops.dim(fx)), llops.cwise_product(fx, fx))
            return llops.cwise_product(dfdx, dEdf)
        case LogSoftmax():
            return llops.sub(dEdf, llops.scale(llops.exp(fx), llops.total(dEdf)))
        case PickElement() if i == 1:
            raise NotImplementedError("No gradient defined for the pick index")
        case PickElement():
            x, mindex = xs
            assert llops.dim(dEdf).is_scalar, f"{llops.dim(dEdf)=} must be 1x1"
            return llops.with_element(llops.zeros(llops.dim(x)), _pick_index(x, mindex), 0, llops.at(dEdf, 0, 0))
        case Square():
            (x,) = xs
            return llops.scale(llops.cwise_product(dEdf, x), 2)
        case _:
            raise TypeError(f"Unknown edge {edge!r}")


### helpers ###
def _logsumexp(x: llops.Matrix) -> float:
    if config.Configuration.stable_log_softmax:
        shift = llops.amax(x)
        return shift + math.log(llops.total(llops.exp(llops.sub(x, llops.full(llops.dim(x), shift)))))
    z = llops.total(llops.exp(x))
    return -math.inf if z == 0 else math.log(z)


def _pick_index(x: llops.Matrix, mindex: llops.Matrix) -> int:
    assert llops.dim(x).is_column_vector, f"pick expects a column vector, got {llops.dim(x)}"
    assert llops.dim(mindex).is_scalar, f"pick index must be 1x1, got {llops.dim(mindex)}"
    raw = llops.at(mindex, 0, 0)
    assert raw.is_integer(), f"pick index {raw=} is not integral"
    index = int(raw)
    assert 0 <= index < llops.dim(x).rows, f"{index=} out of bounds for {llops.dim(x)}"
    return index
