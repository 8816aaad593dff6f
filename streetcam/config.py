"""
Runtime configuration.

Defaults live in :class:`StreetcamConfig`.  They can be overridden by a JSON
file (``config/streetcam.json`` under the project root unless a path is
given) and then by ``STREETCAM_*`` environment variables, e.g.

    STREETCAM_API_BASE=https://staging.example.org
    STREETCAM_MAX_WORKERS=4
    STREETCAM_RETRIES=1

Usage
-----
    cfg = load_config()
    service = StreetcamService(cfg)
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Dict, Optional

from .ingest import RetryPolicy

log = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parent.parent
CONFIG_DIR = ROOT_DIR / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "streetcam.json"

_ENV_PREFIX = "STREETCAM_"


@dataclass(frozen=True)
class StreetcamConfig:
    # Imagery catalog
    api_base: str = "https://openstreetcam.org"
    page_size: int = 1000
    tile_zoom: int = 14
    max_workers: int = 8          # ceiling on concurrent page requests
    timeout: float = 20.0         # seconds per HTTP request
    retries: int = 0              # extra attempts on transient failures
    backoff: float = 2.0          # seconds × attempt between retries

    # Density-limited marker query
    cell_px: int = 16
    cell_limit: int = 3

    # Imagery offset database
    offset_api_base: str = "http://offsets.textual.ru/get"
    offset_radius_km: int = 20
    offset_pad_m: float = 1000.0

    log_level: str = "INFO"

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(retries=self.retries, backoff=self.backoff)

    def as_dict(self) -> Dict:
        return asdict(self)


def _coerce(name: str, raw, default):
    """Convert *raw* to the type of the field default."""
    kind = type(default)
    try:
        if kind is int and (
            isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer())
        ):
            raise ValueError("not a whole number")
        return kind(raw)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"Bad value for config '{name}': {raw!r}") from exc


def load_config(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> StreetcamConfig:
    """Build a config from defaults, an optional JSON file and the environment.

    A missing file is not an error.  Unknown keys in the file raise
    ``KeyError`` so typos do not go unnoticed.
    """
    cfg = StreetcamConfig()
    defaults = {f.name: getattr(cfg, f.name) for f in fields(cfg)}
    overrides: Dict = {}

    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_FILE
    if cfg_path.exists():
        with cfg_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        for key, value in data.items():
            if key not in defaults:
                raise KeyError(f"Unknown config key '{key}' in {cfg_path}")
            overrides[key] = _coerce(key, value, defaults[key])
        log.info("Loaded config from %s", cfg_path)

    env = os.environ if environ is None else environ
    for name, default in defaults.items():
        raw = env.get(_ENV_PREFIX + name.upper())
        if raw is not None:
            overrides[name] = _coerce(name, raw, default)

    return replace(cfg, **overrides)
