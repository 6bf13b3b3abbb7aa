"""Logging setup shared by the API process."""
import logging

from musicard.config import settings

_DEFAULT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def resolve_level() -> int:
    configured = settings.log_level.strip().lower()
    if configured:
        return _LEVELS.get(configured, logging.INFO)
    return logging.DEBUG if settings.debug else logging.INFO


def configure_logging() -> None:
    """Configure the root logger once; later calls only adjust the level."""
    root = logging.getLogger()
    level = resolve_level()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
