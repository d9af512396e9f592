#!/usr/bin/env python3
"""
log - File logging for gittidy runs.

Every run appends to ``gittidy.log``; errors also go to
``gittidy_errors.log``. Warnings and errors are echoed to stderr so the
operator sees them next to the normal console output.
"""

import os
import sys
import logging
from pathlib import Path
from typing import Optional


def default_log_dir() -> Path:
    """Use /var/log when writable, otherwise /tmp."""
    log_dir = Path("/var/log")
    if not log_dir.exists() or not os.access(log_dir, os.W_OK):
        log_dir = Path("/tmp")
    return log_dir


class TidyLogger:
    """Simple logger for gittidy operations."""

    def __init__(self, name: str = "gittidy", log_dir: Optional[Path] = None):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        if log_dir is None:
            log_dir = default_log_dir()
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = log_dir / f"{name}.log"
        self.error_file = log_dir / f"{name}_errors.log"

        # Re-creating a logger for another directory must not double-write
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        # File handlers
        fh = logging.FileHandler(self.log_file)
        fh.setLevel(logging.INFO)

        eh = logging.FileHandler(self.error_file)
        eh.setLevel(logging.ERROR)

        # Formatter
        formatter = logging.Formatter('%(asctime)s - %(message)s',
                                      datefmt='%Y-%m-%d %H:%M:%S')
        fh.setFormatter(formatter)
        eh.setFormatter(formatter)

        self.logger.addHandler(fh)
        self.logger.addHandler(eh)

    def info(self, message: str):
        """Log info message."""
        self.logger.info(message)

    def warning(self, message: str):
        """Log warning message and show it on stderr."""
        self.logger.warning(message)
        print(f"⚠️  {message}", file=sys.stderr)

    def error(self, message: str):
        """Log error message and show it on stderr."""
        self.logger.error(message)
        print(f"❌ {message}", file=sys.stderr)


def get_logger(config: Optional[dict] = None) -> TidyLogger:
    """Build the run logger from the loaded configuration."""
    log_dir = None
    if config and config.get("log_dir"):
        log_dir = Path(config["log_dir"]).expanduser()
    return TidyLogger("gittidy", log_dir)
