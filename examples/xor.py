"""
Example, fitting a two layer network to XOR

The graph is a hand-ordered list of (name, edge) pairs. `XorNet` plays the graph executor:
forward in list order, backward in reverse order, with leaf gradients routed to the parameter arena.
"""

from __future__ import annotations

import argparse
import logging
import random
from typing import Hashable

import numpy as np

import edgegrad
from edgegrad import edges, llops, params, shapes

XOR_DATA = (
    ([[0.0], [0.0]], [[0.0]]),
    ([[0.0], [1.0]], [[1.0]]),
    ([[1.0], [0.0]], [[1.0]]),
    ([[1.0], [1.0]], [[0.0]]),
)

np.random.seed(42)
random.seed(42)
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(message)s")
logger = logging.getLogger(__name__)


### Model ###
class XorNet:
    def __init__(self, hidden_size: int) -> None:
        self.arena = edgegrad.ParameterArena()
        self.x = self.arena.add_const([[0.0], [0.0]])
        self.y = self.arena.add_const([[0.0]])
        W, b = self.arena.add_parameters(hidden_size, 2), self.arena.add_parameters(hidden_size, 1)
        V, a = self.arena.add_parameters(1, hidden_size), self.arena.add_parameters(1, 1)
        self.trainable = [W, b, V, a]
        self.graph: list[tuple[Hashable, edges.Edge]] = [
            ("x", edges.InputEdge(self.x)),
            ("y", edges.InputEdge(self.y)),
            ("W", edges.ParameterEdge(W)),
            ("b", edges.ParameterEdge(b)),
            ("V", edges.ParameterEdge(V)),
            ("a", edges.ParameterEdge(a)),
            ("Wx", edges.MatrixMultiply(("W", "x"))),
            ("Wx+b", edges.Sum(("Wx", "b"))),
            ("h", edges.Tanh(("Wx+b",))),
            ("Vh", edges.MatrixMultiply(("V", "h"))),
            ("Vh+a", edges.Sum(("Vh", "a"))),
            ("y_pred", edges.LogisticSigmoid(("Vh+a",))),
            ("loss", edges.SquaredEuclideanDistance(("y_pred", "y"))),
        ]

    def __call__(self, x: list[list[float]], y: list[list[float]]) -> dict[Hashable, llops.Matrix]:
        self.x.get().values = llops.read(x)
        self.y.get().values = llops.read(y)
        values: dict[Hashable, llops.Matrix] = {}
        for name, edge in self.graph:
            values[name] = edge.forward([values[t] for t in edge.tail])
        return values

    def backprop(self, values: dict[Hashable, llops.Matrix]) -> None:
        grads = {"loss": llops.ones(shapes.Dim(1, 1))}
        for name, edge in reversed(self.graph):
            if name not in grads:
                continue
            if edge.has_parameters():
                self.arena.accumulate_grad(edge, grads[name])
            xs = [values[t] for t in edge.tail]
            for i, t in enumerate(edge.tail):
                dEdx = edge.backward(xs, values[name], grads[name], i)
                grads[t] = llops.add(grads[t], dEdx) if t in grads else dEdx

    def describe(self) -> str:
        names: dict[Hashable, str] = {}
        for name, edge in self.graph:
            names[name] = edge.as_string([names[t] for t in edge.tail]) if edge.tail else str(name)
        return names["loss"]


def sgd_step(model: XorNet, learning_rate: float) -> None:
    for handle in model.trainable:
        entry: params.Parameters = handle.get()
        entry.values = llops.sub(entry.values, llops.scale(entry.grad, learning_rate))
    model.arena.zero_grad()


def main():
    parser = argparse.ArgumentParser(description="Train a two layer network on XOR.")
    parser.add_argument("--epochs", type=int, default=2000, help="Number of passes over the four examples.")
    parser.add_argument("--learning_rate", type=float, default=0.5, help="Learning rate for training.")
    parser.add_argument("--hidden_size", type=int, default=8, help="Width of the hidden layer.")
    parser.add_argument("--log_every_n_epochs", type=int, default=100, help="Log every n epochs.")
    args = parser.parse_args()
    train(
        epochs=args.epochs,
        learning_rate=args.learning_rate,
        hidden_size=args.hidden_size,
        log_every_n_epochs=args.log_every_n_epochs,
    )


def train(epochs: int, learning_rate: float, hidden_size: int, log_every_n_epochs: int) -> None:
    model = XorNet(hidden_size)
    logger.info("loss = %s", model.describe())
    for epoch in range(epochs):
        epoch_loss = 0.0
        for x, y in random.sample(XOR_DATA, k=len(XOR_DATA)):
            values = model(x, y)
            model.backprop(values)
            sgd_step(model, learning_rate)
            epoch_loss += llops.at(values["loss"], 0, 0)
        if epoch % log_every_n_epochs == 0:
            logger.info(f"epoch: {epoch:<6} | train_loss: {epoch_loss / len(XOR_DATA):.9f}")

    for x, y in XOR_DATA:
        y_pred = llops.at(model(x, y)["y_pred"], 0, 0)
        logger.info(f"x: {[row[0] for row in x]} | target: {y[0][0]:.0f} | prediction: {y_pred:.4f}")


if __name__ == "__main__":
    main()
