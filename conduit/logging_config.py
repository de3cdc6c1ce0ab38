"""Process-wide logging setup, called once from the application lifespan."""
import logging
import sys

from conduit.config import settings

# Third-party loggers that are too chatty at the application's level.
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "httpx", "httpcore")

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    root_level = logging.getLevelName((level or settings.LOG_LEVEL).upper())
    if not isinstance(root_level, int):
        root_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(root_level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)

    quiet_level = max(root_level, logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
