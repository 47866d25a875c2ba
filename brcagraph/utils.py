"""
utils.py
--------
Small helpers shared by the step scripts and the library modules.
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

from .config import LOG_DIR

log = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")


def setup_logging(step_name: str, log_dir: Path = LOG_DIR) -> logging.Logger:
    """
    Configure root logging for a step script: INFO level, one log file per
    step under log_dir plus stdout. Returns the caller's module logger.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_dir / f"{step_name}.log"),
            logging.StreamHandler(sys.stdout),
        ],
    )
    return logging.getLogger(step_name)


def checkpoint_exists(path: Path) -> bool:
    if Path(path).exists():
        log.info(f"CHECKPOINT HIT — skipping, already exists: {path}")
        return True
    return False


def natural_key(name: str) -> tuple:
    """
    Sort key ordering embedded integers numerically: S2 < S10, S1 < S1repl.
    Text and number chunks alternate, so keys of different names stay
    comparable element by element.
    """
    parts = _DIGITS.split(str(name))
    return tuple(int(p) if i % 2 else p for i, p in enumerate(parts))


def banner(logger: logging.Logger, title: str, width: int = 58) -> None:
    logger.info("╔" + "═" * width + "╗")
    logger.info("║" + title.center(width) + "║")
    logger.info("╚" + "═" * width + "╝")
