"""Batch scheduler: many images, bounded parallelism, one outcome each."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from ddsm_fetch.catalog import CatalogIndex
from ddsm_fetch.config import FetchConfig
from ddsm_fetch.exceptions import InvalidIdentifierError
from ddsm_fetch.identifiers import AssetIdentifier
from ddsm_fetch.pipeline import run_asset
from ddsm_fetch.result import Err, Result

logger = logging.getLogger(__name__)


def effective_workers(requested: int, cap: int, batch_size: int) -> int:
    """Number of worker threads to use; 0 means run sequentially in the caller."""
    return max(0, min(requested, cap, batch_size))


def _dedupe(identifiers: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    names: list[str] = []
    for raw in identifiers:
        name = str(raw).strip()
        if name in seen:
            logger.info("Ignoring duplicate request for %s.", name)
            continue
        seen.add(name)
        names.append(name)
    return names


def run_batch(
    identifiers: Iterable[str],
    config: FetchConfig,
    catalog: CatalogIndex,
    *,
    requested_workers: int,
) -> dict[str, Result[Path]]:
    """Convert every image and return exactly one outcome per distinct name.

    Each worker runs ``run_asset`` to completion for one image before taking
    the next. Workers share only the read-only catalog and the frozen config;
    every job writes inside its own identifier-named workspace.

    Args:
        identifiers: Image names; duplicates are converted once and malformed
            names are reported without being scheduled.
        config: Run configuration (``config.max_workers`` is the cap).
        catalog: Loaded catalog index.
        requested_workers: Worker count asked for by the caller.

    Returns:
        Mapping of image name to its outcome. Completion order is not preserved.
    """
    outcomes: dict[str, Result[Path]] = {}
    names: list[str] = []
    for name in _dedupe(identifiers):
        try:
            AssetIdentifier.parse(name)
        except InvalidIdentifierError as exc:
            logger.error("%s", exc.message)
            outcomes[name] = Err(exc.code, exc.message, stage="validate")
            continue
        names.append(name)

    workers = effective_workers(requested_workers, config.max_workers, len(names))
    logger.info("Converting %d image(s) with %d worker(s).", len(names), workers)

    if workers == 0:
        for name in names:
            outcomes[name] = run_asset(name, config, catalog)
    else:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ddsm-worker") as executor:
            futures = {executor.submit(run_asset, name, config, catalog): name for name in names}
            for future in as_completed(futures):
                name = futures[future]
                try:
                    outcomes[name] = future.result()
                except Exception as exc:
                    logger.exception("Worker for %s raised.", name)
                    outcomes[name] = Err("unexpected_error", repr(exc), stage="schedule")

    counts = Counter(outcome.status for outcome in outcomes.values())
    logger.info("Batch finished: %d ok, %d failed.", counts.get("ok", 0), counts.get("error", 0))
    return outcomes
