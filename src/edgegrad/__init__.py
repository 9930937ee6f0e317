import contextlib
import os

from edgegrad import callbacks
from edgegrad.config import Configuration
from edgegrad.edges import (
    Edge,
    InputEdge,
    LogisticSigmoid,
    LogSoftmax,
    LookupEdge,
    MatrixMultiply,
    ParameterEdge,
    PickElement,
    Square,
    SquaredEuclideanDistance,
    Sum,
    Tanh,
)
from edgegrad.params import ParameterArena
from edgegrad.runtime import Engine, NumPyEngine
from edgegrad.shapes import Dim

### Default configuration ###
Configuration(
    engine=NumPyEngine(),
    stable_log_softmax=os.getenv(STABLE_LOG_SOFTMAX_ENV_VAR := "EDGEGRAD_STABLE_LOGSOFTMAX", "0") not in ("", "0"),
)


__all__ = [
    "Configuration",
    "Dim",
    "Edge",
    "Engine",
    "InputEdge",
    "LogSoftmax",
    "LogisticSigmoid",
    "LookupEdge",
    "MatrixMultiply",
    "NumPyEngine",
    "ParameterArena",
    "ParameterEdge",
    "PickElement",
    "Square",
    "SquaredEuclideanDistance",
    "Sum",
    "Tanh",
    "callbacks",
]

### install extras
with contextlib.suppress(ImportError):
    import logging_callback
