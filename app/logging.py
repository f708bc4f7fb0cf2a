import logging
import sys
import traceback
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

LOG_FORMAT = "%(levelname)s:     %(message)s (%(filename)s:%(lineno)d)"
DETAILED_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d | %(funcName)s | %(message)s"
ACCESS_FORMAT = '%(levelname)s:     %(client_addr)s - "%(request_line)s" %(status_code)s'

# ANSI colors per level name
COLORS = {
    "DEBUG": "\033[94m",
    "INFO": "\033[92m",
    "WARNING": "\033[93m",
    "ERROR": "\033[91m",
    "CRITICAL": "\033[1;91m",
}
RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    """Colors the level name; the record itself is left untouched."""

    def format(self, record):
        original = record.levelname
        color = COLORS.get(original)
        if color:
            record.levelname = f"{color}{original}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _logging_settings() -> Tuple[str, Optional[Path]]:
    """(level, error log directory or None) from settings, with safe defaults"""
    # Settings import is deferred: config may log while it is being loaded
    try:
        from app.config import settings
    except Exception:
        return "INFO", Path("logs")
    return settings.LOG_LEVEL, Path(settings.LOG_DIR) if settings.LOG_TO_FILE else None


def error_file_handler(log_dir: Path) -> logging.Handler:
    """ERROR and above, appended to <log_dir>/<YYYY-MM-DD>-errors.log"""
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / f"{date.today().isoformat()}-errors.log")
    handler.setLevel(logging.ERROR)
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT))
    return handler


def setup_logger(
    name: str,
    level: Optional[Union[int, str]] = None,
    log_format: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure and return a logger with consistent formatting.

    Args:
        name: Logger name (typically __name__)
        level: Logging level (DEBUG, INFO, etc.), defaults to LOG_LEVEL
        log_format: Custom log format string
        log_file: Optional path to additional log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    default_level, log_dir = _logging_settings()

    level = default_level if level is None else level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    log_format = log_format or LOG_FORMAT

    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(ColoredFormatter(log_format))
        logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(logging.Formatter(log_format))
            logger.addHandler(file_handler)

        if log_dir is not None:
            logger.addHandler(error_file_handler(log_dir))

        # Handlers are attached per module logger
        logger.propagate = False

    return logger


def uvicorn_log_config(level: str = "INFO") -> Dict[str, Any]:
    """dictConfig for uvicorn so server lines match the gateway's console format"""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"()": ColoredFormatter, "fmt": "%(levelname)s:     %(message)s"},
            "access": {"()": "uvicorn.logging.AccessFormatter", "fmt": ACCESS_FORMAT},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stderr",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level.upper(), "propagate": False},
            "uvicorn.error": {"level": level.upper()},
            "uvicorn.access": {"handlers": ["access"], "level": level.upper(), "propagate": False},
        },
    }


def log_exception(logger: logging.Logger, message: str, exc: Optional[BaseException] = None) -> None:
    """
    Log `message` at ERROR with the formatted traceback of `exc`.

    Without `exc` the exception currently being handled is used.
    """
    if exc is None:
        exc_info = sys.exc_info()
        if exc_info[0] is None:
            logger.error(f"{message} (no exception info available)")
            return
    else:
        exc_info = (type(exc), exc, exc.__traceback__)

    tb_text = "".join(traceback.format_exception(*exc_info))
    logger.error(f"{message}\n{tb_text}")
