"""Application entry point for the Campus Wayfinder backend.

Run locally:
    uvicorn wayfinder.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import uvicorn

from wayfinder.api import STATE, create_app
from wayfinder.loader import GeoJSONDirectoryLoader, GeometryLoadError

LOGGER = logging.getLogger(__name__)


def _load_local_env(path: Path = Path(".env")) -> None:
    """Export `KEY=value` lines from a `.env` file; variables already set take precedence."""
    if not path.is_file():
        return
    for raw in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = raw.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        os.environ.setdefault(key, value.strip().strip("'\""))


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _preload_floors() -> None:
    """Build the first snapshot from the data directory when it exists."""
    settings = STATE.settings
    if not settings.data_dir.is_dir():
        LOGGER.info("Data directory %s not found; waiting for POST /floors", settings.data_dir)
        return
    try:
        STATE.holder.reload(
            GeoJSONDirectoryLoader(settings.data_dir),
            settings.floors,
            weights=settings.weights,
            precision=settings.coord_precision,
            default_floor=settings.default_floor,
            floor_names=settings.floor_names,
        )
    except GeometryLoadError as exc:
        LOGGER.warning("Initial floor load failed: %s", exc.message)


_load_local_env()
app = create_app()
_configure_logging(STATE.settings.log_level)
_preload_floors()


if __name__ == "__main__":
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    reload_enabled = os.getenv("API_RELOAD", "true").lower() == "true"
    uvicorn.run("wayfinder.main:app", host=host, port=port, reload=reload_enabled)
