"""
Logging setup for the API process.

``setup_logging`` is called once from ``create_app``.  Application
modules log through ``logging.getLogger(__name__)`` and inherit the
root configuration made here; request access lines stay with uvicorn.
"""

import logging
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at DEBUG.
QUIET_LOGGERS = ("httpx", "multipart", "asyncio")


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Attach console (and optionally file) output to the root logger.

    Does nothing when the root logger already has handlers, e.g. under
    pytest or when uvicorn configured logging first.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"``; unknown names mean ``INFO``.
    logfile : Optional[str]
        Extra file to write to.  Missing parent directories are created.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if logfile:
        path = Path(logfile).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
