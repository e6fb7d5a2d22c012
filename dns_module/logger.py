"""
Centralized logger configuration for the DNS lookup service.

Provides:
- InterceptHandler: bridges stdlib logging (uvicorn, dnspython) to loguru
- LoguruCompat: formatting-friendly wrapper around a bound loguru logger
- configure_logging(app_name): sets up sinks and returns the bound app logger
- get_child_logger(name): per-component logger used by every module
"""
from __future__ import annotations

import os
import sys
import logging
from pathlib import Path

from loguru import logger


class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        # forward to loguru, preserve exception info if present
        logger.opt(exception=record.exc_info).log(level, record.getMessage())


class LoguruCompat:
    """
    Accepts both `{}` placeholders (loguru style) and `%s` placeholders
    (stdlib style) so call sites ported from either keep working.
    """

    def __init__(self, lg):
        self._lg = lg

    @staticmethod
    def _format_msg(*args, **kwargs) -> str:
        if not args:
            return str(kwargs) if kwargs else ""

        fmt, rest = args[0], args[1:]
        if not isinstance(fmt, str):
            return " ".join(map(str, args))

        if ("{" in fmt and "}" in fmt) or kwargs:
            try:
                return fmt.format(*rest, **kwargs)
            except (IndexError, KeyError, ValueError, AttributeError):
                pass
        if "%" in fmt and rest:
            try:
                return fmt % rest
            except (TypeError, ValueError):
                pass
        if rest:
            return fmt + " " + " ".join(map(str, rest))
        return fmt

    def bind(self, **fields) -> "LoguruCompat":
        return LoguruCompat(self._lg.bind(**fields))

    def debug(self, *args, **kwargs):
        self._lg.opt(depth=1).debug(self._format_msg(*args, **kwargs))

    def info(self, *args, **kwargs):
        self._lg.opt(depth=1).info(self._format_msg(*args, **kwargs))

    def warning(self, *args, **kwargs):
        self._lg.opt(depth=1).warning(self._format_msg(*args, **kwargs))

    def error(self, *args, **kwargs):
        self._lg.opt(depth=1).error(self._format_msg(*args, **kwargs))

    def critical(self, *args, **kwargs):
        self._lg.opt(depth=1).critical(self._format_msg(*args, **kwargs))

    def exception(self, *args, **kwargs):
        # Must be called from inside an except block to carry the traceback
        self._lg.opt(depth=1, exception=True).error(self._format_msg(*args, **kwargs))

    def getChild(self, name: str) -> "LoguruCompat":
        return LoguruCompat(self._lg.bind(module=name))


def configure_logging(app_name: str = "dns_app") -> LoguruCompat:
    """
    Configure loguru sinks and stdlib logging interception.
    Returns a bound `LoguruCompat` logger for the application.
    """
    logger.remove()
    log_level = os.getenv("DNS_APP_LOG_LEVEL", "INFO").upper()
    logger.add(
        sys.stdout,
        level=log_level,
        format="<green>{time}</green> <level>{level: <8}</level> [{extra[module]}] <level>{message}</level>",
    )

    # Optional rotating file sink
    log_file = os.getenv("DNS_APP_LOG_FILE")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        rotation = os.getenv("DNS_APP_LOG_ROTATION", "10 MB")
        retention = os.getenv("DNS_APP_LOG_RETENTION", "7 days")
        logger.add(
            log_file,
            level=log_level,
            enqueue=True,
            backtrace=True,
            diagnose=False,
            rotation=rotation,
            retention=retention,
            format="{time} | {level} | {extra[module]} | {message}",
        )
        logger.info(
            "File logging enabled: {} (rotation={} retention={})",
            log_file,
            rotation,
            retention,
        )

    # Bridge stdlib logging through loguru
    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(getattr(logging, log_level, logging.INFO))

    global _APP_LOGGER
    _APP_LOGGER = LoguruCompat(logger.bind(app=app_name, module=app_name))
    return _APP_LOGGER


# Records logged before configure_logging() still need the `module` extra
logger.configure(extra={"module": "-"})

_APP_LOGGER: LoguruCompat | None = None


def get_app_logger(app_name: str = "dns_app") -> LoguruCompat:
    """Return the configured application logger if available; otherwise bind a lightweight one."""
    if _APP_LOGGER is not None:
        return _APP_LOGGER
    return LoguruCompat(logger.bind(app=app_name, module=app_name))


def get_child_logger(name: str, app_name: str = "dns_app") -> LoguruCompat:
    """Convenience: return a child logger bound with module/name."""
    return get_app_logger(app_name).getChild(name)


__all__ = [
    "InterceptHandler",
    "LoguruCompat",
    "configure_logging",
    "get_app_logger",
    "get_child_logger",
]
