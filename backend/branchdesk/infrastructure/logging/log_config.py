"""Per-category log levels for the API process.

Each category in Settings (``log_level_http``, ``log_level_store``, ...)
controls a group of loggers, so the Airtable adapter can be turned up to
DEBUG to see every store round-trip without also drowning in httpx lines.

Usage:
    from branchdesk.infrastructure.logging.log_config import setup_logging
    setup_logging()   # once, from the FastAPI lifespan
"""

import logging
import sys

from branchdesk.config import Settings, get_settings

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Settings field -> loggers it governs
_CATEGORY_MAP: dict[str, tuple[str, ...]] = {
    "log_level_http": ("httpx", "httpcore"),
    "log_level_uvicorn": ("uvicorn", "uvicorn.access", "uvicorn.error"),
    "log_level_store": ("branchdesk.infrastructure.airtable",),
    "log_level_analytics": ("branchdesk.application.services.aggregation_engine",),
}


def category_levels(settings: Settings) -> dict[str, int]:
    """Resolve every governed logger name to its numeric level."""
    levels: dict[str, int] = {}
    for settings_field, logger_names in _CATEGORY_MAP.items():
        level = _parse_level(getattr(settings, settings_field))
        for name in logger_names:
            levels[name] = level
    return levels


def setup_logging(settings: Settings | None = None) -> dict[str, int]:
    """Apply the root and per-category levels; returns the per-logger levels set."""
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    # uvicorn usually installs a handler; tests and scripts may not
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(handler)

    levels = category_levels(settings)
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s store=%s analytics=%s",
        settings.log_level,
        settings.log_level_store,
        settings.log_level_analytics,
    )
    return levels


def _parse_level(raw: str) -> int:
    """Level name to logging constant; unknown names fall back to INFO."""
    numeric = logging.getLevelName(raw.strip().upper())
    if isinstance(numeric, int):
        return numeric
    logging.getLogger(__name__).warning("Unknown log level %r, using INFO", raw)
    return logging.INFO
