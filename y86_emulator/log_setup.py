"""
Y86-64 Emulator - Logging Setup

Every entry point calls setup_logging() once. Library modules only ever
do logging.getLogger(__name__), so their records propagate to the
"y86_emulator" logger configured here.

Log files: ``<log_dir>/<name>_YYYYMMDD_HHMMSS.log`` (DEBUG+), console via
rich (WARNING+ unless --verbose).
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_DIR = Path.cwd() / "logs"
ROOT_LOGGER = "y86_emulator"


def setup_logging(
    name: str = "y86emu",
    level: int = logging.DEBUG,
    console_level: int = logging.WARNING,
    log_dir: Optional[Path] = None,
    log_to_file: bool = True,
) -> logging.Logger:
    """Configure the package logger and return it.

    Safe to call more than once; existing handlers are replaced so a
    second call can change the console level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False

    # File handler: captures everything (DEBUG+)
    log_file = None
    if log_to_file:
        log_dir = log_dir or LOG_DIR
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"{name}_{ts}.log"
        file_fmt = logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(file_fmt)
        logger.addHandler(fh)

    # Console handler: stderr only, so repl output on stdout stays clean
    ch = RichHandler(
        level=console_level,
        console=Console(stderr=True),
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    ch.setLevel(console_level)
    logger.addHandler(ch)

    logger.info("=" * 60)
    logger.info("Logger initialized: %s", name)
    if log_file:
        logger.info("Log file: %s", log_file)
    logger.info("Console level: %s", logging.getLevelName(console_level))
    logger.info("=" * 60)

    return logger
