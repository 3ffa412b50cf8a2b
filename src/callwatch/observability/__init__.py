"""Observability subsystem for callwatch.

Structured logging configuration shared by the scheduler, the gateway and
the persistence layer.
"""

from .logging_config import configure_logging, set_log_level

__all__ = ["configure_logging", "set_log_level"]
