"""Python logging configuration for the web3:// HTTP gateway.

Sets up console logging for every component. Components log through
module-level loggers (``logging.getLogger(__name__)``).

Environment Variables:
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    PYTHON_LOG_FORMAT: Log message format (default: see below)
"""

import os
import sys
import logging
from typing import Optional

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ('apscheduler', 'hypercorn.access', 'httpx', 'httpcore', 'acme.client')


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        """Format the log record with colors if supported."""
        msg = super().format(record)

        if sys.stdout.isatty():
            color = self.COLORS.get(record.levelname, '')
            if color:
                msg = f"{color}{msg}{self.RESET}"

        return msg


def setup_python_logging(
    log_level: Optional[str] = None,
    use_colors: bool = True,
    log_format: Optional[str] = None
) -> logging.Logger:
    """Configure Python logging with console output.

    Args:
        log_level: Logging level (if None, reads from env)
        use_colors: Whether to use colored output for TTY
        log_format: Custom log format (if None, uses default)

    Returns:
        Configured root logger
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

    if log_format is None:
        log_format = os.getenv('PYTHON_LOG_FORMAT', DEFAULT_LOG_FORMAT)

    level = getattr(logging, log_level.upper(), logging.INFO)

    # Remove any existing handlers to avoid duplicates
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if use_colors and sys.stdout.isatty():
        formatter = ColoredFormatter(log_format)
    else:
        formatter = logging.Formatter(log_format)

    console_handler.setFormatter(formatter)

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.debug(f"Python logging configured: level={log_level}, colors={use_colors and sys.stdout.isatty()}")

    return root_logger
