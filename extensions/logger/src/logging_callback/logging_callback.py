import logging
import os
from typing import Sequence

from edgegrad import callbacks, edges, llops

LOG_LEVEL_ENV_SETTER = "EDGEGRAD_LOGLEVEL"


def setup_logger() -> logging.Logger:
    logger = logging.getLogger(__name__)
    logger.setLevel(logging._nameToLevel[os.environ.get(LOG_LEVEL_ENV_SETTER, "INFO")])
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-10s%(funcName)s: - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(console_handler)
    return logger


default_logger = setup_logger()


class EdgeGradLogger(callbacks.OnForwardCallBack, callbacks.OnBackwardCallBack):
    def __init__(self, logger: logging.Logger = default_logger) -> None:
        super().__init__()
        self._logger = logger

    def on_forward(self, edge: edges.Edge, xs: Sequence[llops.Matrix], fx: llops.Matrix) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.log(
                logging.DEBUG,
                "forward  %(op)-26s(%(in dims)-20s) → %(out dim)s",
                {
                    "in dims": ", ".join(map(str, map(llops.dim, xs))),
                    "op": edge.__class__.__name__,
                    "out dim": llops.dim(fx),
                },
            )

    def on_backward(self, edge: edges.Edge, i: int, dEdx: llops.Matrix) -> None:
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.log(
                logging.DEBUG,
                "backward %(op)-26s(d/dx_%(i)d) → %(out dim)s",
                {"op": edge.__class__.__name__, "i": i, "out dim": llops.dim(dEdx)},
            )

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(verbosity={self._logger.level})"
