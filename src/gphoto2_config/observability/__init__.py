"""Observability for gphoto2-config.

Structured logging and device call statistics.

Example:
    from gphoto2_config.observability import get_logger, LogContext

    logger = get_logger(__name__)

    with LogContext(model="Canon EOS 6D"):
        logger.info("Configuration saved", widgets=3)

Statistics Example:
    from gphoto2_config.observability import DeviceStats

    stats = DeviceStats()
    camera = Camera(driver, handle, stats=stats)
    ...
    print(stats.get_summary("fetch_tree").avg_duration_ms)
"""

from gphoto2_config.observability.logging import (
    LogContext,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)
from gphoto2_config.observability.stats import (
    DeviceStats,
    StatsSummary,
)

__all__ = [
    # Logging
    "LogContext",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
    # Statistics
    "DeviceStats",
    "StatsSummary",
]
