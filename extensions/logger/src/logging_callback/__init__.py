"""
Logging
"""

from logging_callback.logging_callback import EdgeGradLogger, default_logger

__all__ = ["EdgeGradLogger", "default_logger"]


import edgegrad

edgegrad.Configuration(logger := EdgeGradLogger())
default_logger.info("%s set as logger for edgegrad", str(logger))
