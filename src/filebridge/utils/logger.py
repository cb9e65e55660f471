"""FileBridge logging setup."""

import logging
import sys
from datetime import datetime
from pathlib import Path

from filebridge.utils.settings import Settings

LOGGER_NAME = "filebridge"

# Global logger instance
_logger: logging.Logger | None = None
_file_handler: logging.FileHandler | None = None


def get_log_path() -> Path:
    """Get the log file path (in the user's home directory)."""
    return Path.home() / ".filebridge" / "FileBridge.log"


def setup_logging(settings: Settings | None = None, log_path: Path | None = None) -> logging.Logger:
    """Set up and return the package logger.

    Module loggers (filebridge.core.*) propagate here.

    Args:
        settings: Settings deciding whether file logging is on.
        log_path: Log file location, defaults to get_log_path().
    """
    global _logger

    if _logger is not None:
        return _logger

    _logger = logging.getLogger(LOGGER_NAME)
    _logger.setLevel(logging.DEBUG)

    # Console handler (always enabled)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    _logger.addHandler(console_handler)

    # File handler (based on settings)
    settings = settings or Settings()
    if settings.load_logging_enabled():
        _enable_file_logging(log_path)

    return _logger


def _enable_file_logging(log_path: Path | None = None):
    """Enable file logging."""
    global _file_handler

    if _file_handler is not None or _logger is None:
        return

    log_path = log_path or get_log_path()

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        # Overwrite log file each time (mode='w')
        _file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        _file_handler.setLevel(logging.DEBUG)
        _file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        _logger.addHandler(_file_handler)

        from filebridge import __version__

        _logger.info("=" * 50)
        _logger.info(f"FileBridge v{__version__}")
        _logger.info(f"Started: {datetime.now()}")
        _logger.info(f"Log file: {log_path}")
        _logger.info(f"Platform: {sys.platform}")
        _logger.info("=" * 50)
    except OSError as e:
        _file_handler = None
        _logger.warning(f"Could not create log file: {e}")


def _disable_file_logging():
    """Disable file logging."""
    global _file_handler

    if _file_handler is not None and _logger is not None:
        _logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None


def set_logging_enabled(enabled: bool, settings: Settings | None = None, log_path: Path | None = None):
    """Enable or disable file logging and remember the choice."""
    settings = settings or Settings()
    settings.save_logging_enabled(enabled)

    if enabled:
        _enable_file_logging(log_path)
    else:
        _disable_file_logging()


def get_logger() -> logging.Logger:
    """Get the package logger."""
    if _logger is None:
        return setup_logging()
    return _logger


def reset_logging():
    """Remove the handlers installed by setup_logging()."""
    global _logger

    _disable_file_logging()
    if _logger is not None:
        for handler in list(_logger.handlers):
            _logger.removeHandler(handler)
            handler.close()
    _logger = None
