"""Logging setup for the launch tracker service."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Settings

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def setup_logging(settings: Settings) -> None:
    """Console + rotating file handlers on the root logger (idempotent)."""
    root_logger = logging.getLogger()
    level = getattr(logging, settings.log_level, logging.INFO)
    root_logger.setLevel(level)

    if any(getattr(h, "_launch_tracker", False) for h in root_logger.handlers):
        return

    fmt = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    console.setLevel(level)
    console._launch_tracker = True
    root_logger.addHandler(console)

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_dir / "launch_tracker.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(fmt)
    file_handler._launch_tracker = True
    root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
