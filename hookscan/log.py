import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "hookscan"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_BACKUPS = 10

_silent = logging.getLogger(f"{LOGGER_NAME}.silent")
_silent.addHandler(logging.NullHandler())
_silent.propagate = False


def get_logger(logger=None):
    """Return the injected logger, or a logger that discards everything."""
    return logger if logger is not None else _silent


def setup_logging(level="INFO", log_file=None, max_bytes=DEFAULT_MAX_BYTES, backups=DEFAULT_BACKUPS):
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def mask_url(url, reveal=False):
    """Shorten a webhook URL for log lines so the token never lands in a log file."""
    v = str(url)
    if reveal or len(v) <= 12:
        return v
    cut = v.rfind("/") + 1 if "/" in v else 6
    return f"{v[:cut]}{v[cut:cut + 4]}…"
