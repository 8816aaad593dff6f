from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_DIR = Path("logs")


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> None:
    """Log to ``<log_dir>/streetcam.log`` and to the console.

    Pass ``log_dir=None`` to use ``./logs``.  Repeated calls are no-ops,
    as with :func:`logging.basicConfig`.
    """
    log_dir = Path(log_dir) if log_dir is not None else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    logfile = log_dir / "streetcam.log"
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(logfile),
            logging.StreamHandler(),
        ],
    )
