"""JSON record of a run's outcomes."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ddsm_fetch.__version__ import __version__ as VERSION
from ddsm_fetch.result import Result
from ddsm_fetch.utils.io import write_json
from ddsm_fetch.utils.paths import utc_now


def build_manifest(
    outcomes: Mapping[str, Result[Path]],
    *,
    started_at_utc: str,
    finished_at_utc: str | None = None,
) -> dict[str, Any]:
    counts = Counter(outcome.status for outcome in outcomes.values())
    return {
        "version": VERSION,
        "started_at_utc": started_at_utc,
        "finished_at_utc": finished_at_utc or utc_now(),
        "counts": {"total": len(outcomes), "ok": counts.get("ok", 0), "error": counts.get("error", 0)},
        "assets": {name: outcomes[name].to_dict() for name in sorted(outcomes)},
    }


def write_manifest(
    path: Path,
    outcomes: Mapping[str, Result[Path]],
    *,
    started_at_utc: str,
) -> dict[str, Any]:
    """Write the manifest atomically and return what was written."""
    manifest = build_manifest(outcomes, started_at_utc=started_at_utc)
    write_json(path, manifest)
    return manifest
