"""Single-asset orchestration: metadata -> payload -> conversion -> save.

Usage:
    from ddsm_fetch.pipeline import run_asset

    outcome = run_asset("A_1141_1.LEFT_MLO", config, catalog)
    if outcome.is_ok:
        print(outcome.value)
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

from ddsm_fetch.catalog import CatalogIndex
from ddsm_fetch.config import FetchConfig
from ddsm_fetch.convert import convert
from ddsm_fetch.exceptions import AssetError, InvalidIdentifierError, SaveError
from ddsm_fetch.fetcher import fetch_payload
from ddsm_fetch.identifiers import AssetIdentifier
from ddsm_fetch.job import ConversionJob, JobState
from ddsm_fetch.logging_config import LogContext
from ddsm_fetch.metadata import resolve_metadata
from ddsm_fetch.result import AssetOutcome, Err, Ok, err_from_exception
from ddsm_fetch.utils.paths import ensure_dir

logger = logging.getLogger(__name__)


def save_image(image: Path, save_dir: Path) -> Path:
    """Move the finished image into ``save_dir`` and return its absolute path."""
    dest = save_dir / image.name
    if dest.resolve() == image.resolve():
        return dest.resolve()
    logger.info("Saving file to: %s", dest)
    try:
        ensure_dir(save_dir)
        shutil.move(str(image), str(dest))
    except OSError as exc:
        raise SaveError(
            f"Could not move {image.name} to {save_dir}: {exc}",
            context={"save_dir": str(save_dir)},
        ) from exc
    return dest.resolve()


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 1)


def run_asset(
    identifier: str | AssetIdentifier,
    config: FetchConfig,
    catalog: CatalogIndex,
) -> AssetOutcome:
    """Convert one image and report the outcome; never raises for per-asset problems.

    Args:
        identifier: Image name such as ``A_1141_1.LEFT_MLO``.
        config: Run configuration.
        catalog: Loaded catalog index (read-only, shared between workers).

    Returns:
        Ok(absolute PNG path) or Err(code, message, stage=...).
    """
    name = str(identifier).strip()
    start = time.monotonic()
    with LogContext(asset_id=name):
        try:
            ident = (
                identifier
                if isinstance(identifier, AssetIdentifier)
                else AssetIdentifier.parse(name)
            )
        except InvalidIdentifierError as exc:
            logger.error("%s", exc.message)
            return Err(exc.code, exc.message, stage="validate")

        existing = config.save_dir / ident.image_filename
        if existing.is_file() and not config.overwrite:
            logger.info("Skipping conversion; %s already exists.", existing)
            return Ok(existing.resolve(), skipped=True)

        try:
            job = ConversionJob.open(ident, config.work_dir)
        except OSError as exc:
            logger.error("Could not prepare workspace in %s: %s", config.work_dir, exc)
            return Err("workspace_error", str(exc), stage="setup")
        logger.info("Conversion started.")
        try:
            metadata = resolve_metadata(ident, config, catalog, job)
            job.advance(JobState.METADATA_RESOLVED)
            payload = fetch_payload(ident, config, catalog, job)
            job.advance(JobState.PAYLOAD_FETCHED)
            image = convert(job, payload, metadata, ident.image_filename, config.tools)
            final = save_image(image, config.save_dir)
            job.advance(JobState.SAVED)
        except AssetError as exc:
            job.fail(exc.stage, exc.message)
            logger.warning("Conversion failed at stage %s: %s", exc.stage, exc.message)
            outcome = err_from_exception(exc, duration_ms=_elapsed_ms(start))
        except Exception as exc:
            stage = job.current_stage
            job.fail(stage, repr(exc))
            logger.exception("Unexpected error during stage %s.", stage)
            outcome = Err("unexpected_error", repr(exc), stage=stage, duration_ms=_elapsed_ms(start))
        else:
            logger.info("Finished converting file: %s", final)
            rows, cols = metadata.image_dimensions  # type: ignore[misc]
            outcome = Ok(
                final,
                rows=rows,
                cols=cols,
                digitizer=metadata.digitizer,
                duration_ms=_elapsed_ms(start),
            )
        finally:
            try:
                job.close(cache_dir=config.data_dir if config.keep_downloads else None)
            except OSError as exc:
                logger.warning("Cleanup of %s failed: %s", job.workspace, exc)
        return outcome
