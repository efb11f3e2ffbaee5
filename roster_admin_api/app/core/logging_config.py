"""
Logging for the roster service.

Every module logs through ``logging.getLogger(__name__)``, so all
records of this project sit under the ``roster_admin_api`` logger.
:func:`setup_logging` attaches the handlers there rather than on the
root logger: uvicorn and pytest keep their own root configuration, and
roster records still propagate to it.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

PACKAGE_LOGGER = "roster_admin_api"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Set on handlers added here, so a second call can recognise them.
_HANDLER_MARK = "_roster_handler"


def _mark(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    setattr(handler, _HANDLER_MARK, True)
    return handler


def setup_logging(level: str = "INFO", logfile: Optional[Union[str, Path]] = None) -> logging.Logger:
    """Attach console and optional file output to the package logger.

    ``level`` is a level name such as ``"DEBUG"``; unknown names mean
    ``INFO``.  The directory of ``logfile`` is created when missing.
    Calling this again only updates the level.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if any(getattr(h, _HANDLER_MARK, False) for h in package_logger.handlers):
        return package_logger

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    package_logger.addHandler(_mark(logging.StreamHandler(sys.stderr), formatter))
    if logfile:
        path = Path(logfile).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        package_logger.addHandler(_mark(logging.FileHandler(path, encoding="utf-8"), formatter))
    package_logger.debug("Logging configured at %s", logging.getLevelName(package_logger.level))
    return package_logger
