"""Utility modules."""

from customer_intel.utils.logging import ServiceLogger, get_logger, setup_logging
from customer_intel.utils.tracing import RequestTracer

__all__ = ["setup_logging", "get_logger", "ServiceLogger", "RequestTracer"]
