from __future__ import annotations

import logging
import logging.handlers
import os

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _rotating(path: str, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(*, log_dir: str, level: str = "INFO") -> None:
    os.makedirs(log_dir, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if root.handlers:
        return

    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    root.addHandler(console)
    root.addHandler(_rotating(os.path.join(log_dir, "app.log"), logging.NOTSET, formatter))
    # Storage outages end up here; routine 4xx outcomes are never logged as errors.
    root.addHandler(_rotating(os.path.join(log_dir, "errors.log"), logging.ERROR, formatter))

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
