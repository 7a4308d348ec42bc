from __future__ import annotations

import logging
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def utc_now() -> str:
    """Return current UTC time in ISO 8601 format."""
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def ensure_dir(path: Path) -> None:
    """Create directory and parents if they don't exist."""
    path.mkdir(parents=True, exist_ok=True)


def remove_quietly(path: Path) -> bool:
    """Delete a file if present; log and return False when it cannot be removed."""
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Failed to remove %s: %s", path, exc)
        return False
    return True
