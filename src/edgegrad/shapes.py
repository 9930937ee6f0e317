"""
Shape tracking
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Iterator, Sequence

if TYPE_CHECKING:
    from edgegrad import llops


@dataclasses.dataclass(slots=True, frozen=True)
class Dim:
    rows: int
    cols: int

    def __post_init__(self) -> None:
        assert isinstance(self.rows, int) and isinstance(self.cols, int), f"{self.rows=}, {self.cols=} must be ints"
        assert self.rows >= 0 and self.cols >= 0, f"{self.rows=}, {self.cols=} must be non-negative"

    def __repr__(self) -> str:
        return str(self)

    def __str__(self) -> str:
        return f"Dim({self.rows}, {self.cols})"

    def __iter__(self) -> Iterator[int]:
        return iter((self.rows, self.cols))

    def transpose(self) -> Dim:
        return Dim(self.cols, self.rows)

    def matmul(self, other: Dim) -> Dim:
        assert self.cols == other.rows, f"matmul {self=} <> {other=} inner dims do not match"
        return Dim(self.rows, other.cols)

    def contains(self, i: int, j: int) -> bool:
        return 0 <= i < self.rows and 0 <= j < self.cols

    @property
    def size(self) -> int:
        return self.rows * self.cols

    @property
    def is_column_vector(self) -> bool:
        return self.cols == 1

    @property
    def is_scalar(self) -> bool:
        return self.rows == 1 and self.cols == 1

    @classmethod
    def from_data(cls, data: llops.PyArrayRepr, /) -> Dim:
        assert isinstance(data, Sequence) and len(data) > 0, f"{data=} is not a non-empty sequence of rows"
        assert all(isinstance(row, Sequence) for row in data), f"{data=} is not 2-D"
        assert len({len(row) for row in data}) == 1, f"{data=} has ragged rows"
        return cls(len(data), len(data[0]))
