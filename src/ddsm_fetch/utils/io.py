from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from ddsm_fetch.utils.paths import ensure_dir


def read_lines(path: Path) -> list[str]:
    """Read a text file and return its non-blank lines, stripped."""
    with path.open("r", encoding="utf-8", errors="ignore") as f:
        return [line.strip() for line in f if line.strip()]


def write_json(path: Path, obj: dict[str, Any], *, indent: int = 2) -> None:
    """Write dict to JSON file atomically."""
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        f.write(json.dumps(obj, indent=indent, ensure_ascii=False, default=str) + "\n")
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(path)
