"""
Finite-difference gradient checks

For an edge f and an upstream gradient dEdf, the scalar L(x) = sum(dEdf * f(x)) has dL/dx_i equal to
what `backward(..., i)` must return. The central difference of L is compared against it.
"""

from __future__ import annotations

import dataclasses
import itertools
from typing import Sequence

import numpy as np

from edgegrad import edges, llops


@dataclasses.dataclass(frozen=True, slots=True)
class GradCheckResult:
    index: int
    max_abs_error: float
    passed: bool


def numerical_gradient(
    edge: edges.Edge,
    xs: Sequence[llops.Matrix],
    i: int,
    dEdf: llops.Matrix,
    delta: float = 1e-6,
) -> llops.Matrix:
    def loss(x_i: llops.Matrix) -> float:
        perturbed = [*xs[:i], x_i, *xs[i + 1 :]]
        return llops.total(llops.cwise_product(dEdf, edges.forward(edge, perturbed)))

    d = llops.dim(xs[i])
    grad = llops.zeros(d)
    for row, col in itertools.product(range(d.rows), range(d.cols)):
        orig = llops.at(xs[i], row, col)
        up = loss(llops.with_element(xs[i], row, col, orig + delta))
        down = loss(llops.with_element(xs[i], row, col, orig - delta))
        grad = llops.with_element(grad, row, col, 0.5 * (up - down) / delta)
    return grad


def check_gradients(
    edge: edges.Edge,
    xs: Sequence[llops.Matrix],
    dEdf: llops.Matrix | None = None,
    *,
    delta: float = 1e-6,
    atol: float = 1e-5,
    rtol: float = 1e-4,
) -> list[GradCheckResult]:
    """
    Compare analytic and numerical gradients for every differentiable input of `edge`.
    dEdf defaults to a standard normal matrix shaped like the edge's output.
    """
    fx = edges.forward(edge, xs)
    if dEdf is None:
        d = llops.dim(fx)
        dEdf = llops.read(np.random.randn(d.rows, d.cols).tolist())

    results = []
    for i in filter(lambda i: edges.is_differentiable(edge, i), range(len(xs))):
        analytic = np.array(llops.to_python(edges.backward(edge, xs, fx, dEdf, i)))
        numeric = np.array(llops.to_python(numerical_gradient(edge, xs, i, dEdf, delta)))
        max_abs_error = float(np.max(np.abs(analytic - numeric), initial=0.0))
        results.append(GradCheckResult(i, max_abs_error, bool(np.allclose(analytic, numeric, rtol=rtol, atol=atol))))
    return results
