"""
Logging setup for processes that host the snapshot store.

The library itself only creates module loggers; this is for entry points
(the CLI, or an application that wants the same format).
"""

from __future__ import annotations

import logging

import json_log_formatter

from .config import ObservabilityConfig


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure root logging based on configuration.

    Args:
        config: Observability configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
