"""
Engine is the linear-algebra runtime that materializes the `llops` matrix contract
"""

from __future__ import annotations

import abc
from typing import Any, Generic, TypeVar

import numpy as np

from edgegrad import llops, shapes

RefType = TypeVar("RefType")
PyArrayRepresentation = list[list[float]]


class Engine(abc.ABC, Generic[RefType]):
    """The runtime that executes matrix ops"""

    @abc.abstractmethod
    def execute(self, op: llops.Ops, *args: RefType | Any) -> RefType | Any:
        """Run a single op on engine buffers"""

    @abc.abstractmethod
    def dim(self, objref: RefType) -> shapes.Dim:
        """Shape of an engine buffer"""

    @abc.abstractmethod
    def to_python(self, objref: RefType) -> PyArrayRepresentation:
        """Return a python representation of the obj ref (meant for debug purposes)"""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


### Numpy as default engine implementation ###
def _with_element(src: np.ndarray, i: int, j: int, value: float) -> np.ndarray:
    out = np.array(src, copy=True)
    out[i, j] = value
    return out


class NumPyEngine(Engine[np.ndarray]):
    __OPS_MAP__ = {
        llops.Ops.READ: lambda data: np.array(data, dtype=np.float64),
        llops.Ops.FULL: lambda dim, value: np.full((dim.rows, dim.cols), value, dtype=np.float64),
        llops.Ops.IDENTITY: lambda n: np.eye(n, dtype=np.float64),
        llops.Ops.COPY: lambda src: np.array(src, copy=True),
        llops.Ops.TRANSPOSE: lambda src: np.ascontiguousarray(src.T),
        llops.Ops.ADD: np.add,
        llops.Ops.SUB: np.subtract,
        llops.Ops.CWISE_PRODUCT: np.multiply,
        llops.Ops.SCALE: lambda src, factor: src * factor,
        llops.Ops.MATMUL: np.matmul,
        llops.Ops.INV: np.reciprocal,
        llops.Ops.EXP: np.exp,
        llops.Ops.LOG: np.log,
        llops.Ops.TANH: np.tanh,
        llops.Ops.SQUARED_NORM: lambda src: float(np.sum(np.square(src))),
        llops.Ops.TOTAL: lambda src: float(np.sum(src)),
        llops.Ops.AMAX: lambda src: float(np.max(src)),
        llops.Ops.GET: lambda src, i, j: float(src[i, j]),
        llops.Ops.SET: _with_element,
    }

    def execute(self, op: llops.Ops, *args: np.ndarray | Any) -> np.ndarray | Any:
        return self.__OPS_MAP__[op](*args)

    def dim(self, objref: np.ndarray) -> shapes.Dim:
        assert isinstance(objref, np.ndarray), f"{type(objref)=} is not a numpy buffer"
        assert objref.ndim == 2, f"{objref.shape=} is not 2-D"
        return shapes.Dim(*map(int, objref.shape))

    def to_python(self, objref: np.ndarray) -> PyArrayRepresentation:
        return objref.tolist()


missing_ops = [op for op in llops.Ops if op not in NumPyEngine.__OPS_MAP__]
assert not missing_ops, f"Missing ops: {missing_ops}"
