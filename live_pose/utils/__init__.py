"""Utility modules for the live pose pipeline."""

from live_pose.utils.logging_config import FpsMeter, LoggerMixin, get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggerMixin",
    "FpsMeter",
]
