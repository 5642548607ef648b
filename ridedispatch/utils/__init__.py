"""Utility modules."""

from ridedispatch.utils.logging import DispatchLogger, get_logger, setup_logging
from ridedispatch.utils.tracing import DispatchTracer

__all__ = ["setup_logging", "get_logger", "DispatchLogger", "DispatchTracer"]
