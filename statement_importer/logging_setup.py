"""
Logging for the ``statement_importer`` namespace.

Modules log through ``get_logger("<module>")``; nothing is emitted until
``configure_logging`` attaches a console handler to the namespace logger.
Both ``ImportPipeline`` and the CLI call it, in either order, so the
function is safe to call repeatedly:

* the level is re-applied on every call;
* the first call picks the console stream, so a pipeline built after the
  CLI chose ``stderr`` keeps writing there;
* a log file is attached at most once per path.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Optional

LOG_NAMESPACE = "statement_importer"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks the handlers this module owns, so foreign ones are never touched
_OWNED = "_statement_importer_handler"


def _owned_handlers(logger: logging.Logger) -> list:
    return [h for h in logger.handlers if getattr(h, _OWNED, False)]


def _own(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _OWNED, True)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _console_handler(logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in _owned_handlers(logger):
        if not isinstance(handler, logging.FileHandler):
            return handler
    return None


def configure_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Attach the namespace handlers and return the namespace logger.

    Parameters
    ----------
    level:
        Minimum severity, applied to the logger and every handler it owns.
    log_file:
        Also append records to this file.
    stream:
        Console stream, used only by the first call.  Defaults to
        ``sys.stdout``; the CLI passes ``sys.stderr`` to keep its JSON output
        clean.
    """
    logger = logging.getLogger(LOG_NAMESPACE)
    logger.propagate = False

    if _console_handler(logger) is None:
        logger.addHandler(_own(logging.StreamHandler(stream or sys.stdout)))

    if log_file:
        target = os.path.abspath(log_file)
        attached = {
            h.baseFilename
            for h in _owned_handlers(logger)
            if isinstance(h, logging.FileHandler)
        }
        if target not in attached:
            logger.addHandler(_own(logging.FileHandler(target, encoding="utf-8")))

    logger.setLevel(level)
    for handler in _owned_handlers(logger):
        handler.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``statement_importer.<name>`` child logger."""
    return logging.getLogger(f"{LOG_NAMESPACE}.{name}")
