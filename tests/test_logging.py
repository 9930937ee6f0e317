import logging

import logging_callback
import pytest

from edgegrad import callbacks, config, edges, llops, runtime, shapes


def test_logger_installed_by_default():
    installed = config.Configuration.__callback_stack__[callbacks.OnForwardCallBack]
    assert any(isinstance(cb, logging_callback.EdgeGradLogger) for cb in installed)


def test_forward_and_backward_are_logged(caplog: pytest.LogCaptureFixture, engine: runtime.Engine):
    caplog.set_level(logging.DEBUG, logger=logging_callback.default_logger.name)
    with config.Configuration(engine=engine):
        edge = edges.MatrixMultiply(("W", "x"))
        xs = [llops.ones(shapes.Dim(3, 2)), llops.ones(shapes.Dim(2, 1))]
        fx = edge.forward(xs)
        edge.backward(xs, fx, llops.ones(shapes.Dim(3, 1)), 1)

    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
    assert any("forward" in m and "MatrixMultiply" in m and "Dim(3, 2), Dim(2, 1)" in m for m in messages)
    assert any("backward" in m and "d/dx_1" in m and "Dim(2, 1)" in m for m in messages)


def test_nothing_logged_above_debug(caplog: pytest.LogCaptureFixture):
    caplog.set_level(logging.INFO, logger=logging_callback.default_logger.name)
    edges.Tanh(("x",)).forward([llops.zeros(shapes.Dim(1, 1))])
    assert not [r for r in caplog.records if r.name == logging_callback.default_logger.name]


def test_custom_logger(caplog: pytest.LogCaptureFixture):
    logger = logging.getLogger("edgegrad.test")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with config.Configuration(logging_callback.EdgeGradLogger(logger)):
        edges.Square(("x",)).forward([llops.ones(shapes.Dim(2, 2))])
    assert any("Square" in r.getMessage() for r in caplog.records if r.name == logger.name)
    assert str(logging_callback.EdgeGradLogger(logger)) == f"EdgeGradLogger(verbosity={logger.level})"
