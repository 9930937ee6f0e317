"""
Parameter arena

Owns the values leaf edges read and the gradient buffers the executor accumulates into. Leaf edges only
keep a `Handle`, a stable (arena, index) pair; the arena must outlive every edge built on it.
"""

from __future__ import annotations

import dataclasses
import math
from typing import Generic, TypeVar

import numpy as np

from edgegrad import edges, llops, shapes

EntryT = TypeVar("EntryT", "Parameters", "ConstParameters", "LookupParameters")


@dataclasses.dataclass(slots=True)
class Parameters:
    values: llops.Matrix
    grad: llops.Matrix

    @property
    def dim(self) -> shapes.Dim:
        return llops.dim(self.values)


@dataclasses.dataclass(slots=True)
class ConstParameters:
    values: llops.Matrix

    @property
    def dim(self) -> shapes.Dim:
        return llops.dim(self.values)


@dataclasses.dataclass(slots=True)
class LookupParameters:
    dim: shapes.Dim
    values: list[llops.Matrix]
    grads: list[llops.Matrix]
    touched: set[int] = dataclasses.field(default_factory=set)

    def __len__(self) -> int:
        return len(self.values)


@dataclasses.dataclass(frozen=True, slots=True)
class Handle(Generic[EntryT]):
    arena: ParameterArena
    index: int

    def get(self) -> EntryT:
        return self.arena[self]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.index})"


class ParameterArena:
    def __init__(self) -> None:
        self._entries: list[Parameters | ConstParameters | LookupParameters] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, handle: Handle[EntryT]) -> EntryT:
        assert handle.arena is self, f"{handle=} belongs to another arena"
        assert 0 <= handle.index < len(self._entries), f"{handle=} out of bounds for {len(self)} entries"
        return self._entries[handle.index]  # type: ignore

    def add_parameters(self, rows: int, cols: int) -> Handle[Parameters]:
        d = shapes.Dim(rows, cols)
        return self._insert(Parameters(glorot_uniform(d), llops.zeros(d)))

    def add_const(self, data: llops.PyArrayRepr | llops.Matrix) -> Handle[ConstParameters]:
        return self._insert(ConstParameters(llops.read(data)))

    def add_lookup(self, n: int, rows: int, cols: int = 1) -> Handle[LookupParameters]:
        assert n > 0, f"lookup table needs at least one row, got {n=}"
        d = shapes.Dim(rows, cols)
        values = [glorot_uniform(d) for _ in range(n)]
        return self._insert(LookupParameters(d, values, [llops.zeros(d) for _ in range(n)]))

    def accumulate_grad(self, edge: edges.Edge, dEdf: llops.Matrix) -> None:
        """Add the loss gradient w.r.t. a trainable leaf's output into its accumulator"""
        match edge:
            case edges.ParameterEdge(params=handle):
                entry = self[handle]
                assert llops.dim(dEdf) == edge.dim, f"{llops.dim(dEdf)=} != {edge.dim=}"
                entry.grad = llops.add(entry.grad, dEdf)
            case edges.LookupEdge(params=handle, index=index):
                table = self[handle]
                assert 0 <= index < len(table), f"{index=} out of bounds for lookup table with {len(table)} rows"
                assert llops.dim(dEdf) == edge.dim, f"{llops.dim(dEdf)=} != {edge.dim=}"
                table.grads[index] = llops.add(table.grads[index], dEdf)
                table.touched.add(index)
            case _:
                raise TypeError(f"{edge!r} carries no trainable state")

    def zero_grad(self) -> None:
        for entry in self._entries:
            match entry:
                case Parameters():
                    entry.grad = llops.zeros(entry.dim)
                case LookupParameters():
                    entry.grads = [llops.zeros(entry.dim) for _ in range(len(entry))]
                    entry.touched.clear()

    def _insert(self, entry: EntryT) -> Handle[EntryT]:
        self._entries.append(entry)
        return Handle(self, len(self._entries) - 1)


### helpers ###
def glorot_uniform(d: shapes.Dim) -> llops.Matrix:
    glorot_ub = math.sqrt(6 / (d.rows + d.cols))
    return llops.read(np.random.uniform(-glorot_ub, glorot_ub, (d.rows, d.cols)).tolist())
