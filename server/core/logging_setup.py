"""
Loguru sink setup for the health engine.

Replaces loguru's default stderr sink with one at the configured level and
adds a rotating file sink when LOG_FILE is configured. Safe to call again
after the configuration changes.
"""

import os
import sys
from typing import Optional

from loguru import logger

from core.config import LoggingConfig


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Apply level and optional file sink from configuration."""
    config = config or LoggingConfig()
    level = config.log_level.value

    logger.remove()
    logger.add(sys.stderr, level=level, backtrace=False, diagnose=False)

    if not config.log_file:
        return

    try:
        log_dir = os.path.dirname(config.log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
        logger.add(
            config.log_file,
            rotation=config.rotation,
            retention=config.retention,
            enqueue=True,  # background thread
            level=level,
            backtrace=False,
            diagnose=False,
        )
    except Exception as e:
        # Don't fail analysis on logging issues
        logger.warning(f"File logging not enabled: {e}")
