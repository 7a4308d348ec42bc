"""LJPEG -> raw -> PNM -> PNG conversion through the external DDSM tools.

Each stage checks the previous one's output before it runs:

1. decode:    ``jpeg -d -s <file>.LJPEG`` writes a sibling raw file (``<file>.LJPEG.1``)
2. rasterize: ``ddsmraw2pnm <raw> <rows> <cols> <digitizer>`` prints the PNM path
3. encode:    ``convert -depth 16 <pnm> <target>.png``

All tools run inside the job workspace, and every intermediate file is
deleted once the next stage has consumed it.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from ddsm_fetch.config import ToolConfig
from ddsm_fetch.exceptions import DecodeError, EncodeError, RasterizeError
from ddsm_fetch.job import ConversionJob, JobState
from ddsm_fetch.metadata import MetadataRecord
from ddsm_fetch.utils.subprocess import ToolRun, run_tool

logger = logging.getLogger(__name__)


def _tool_context(run: ToolRun) -> dict[str, object]:
    return {"command": " ".join(run.cmd), "returncode": run.returncode, "stderr": run.stderr.strip()}


def stage_payload(job: ConversionJob, payload: Path) -> Path:
    """Make the payload visible inside the workspace so the decoder writes there.

    A cached payload is linked rather than decoded in place; the cache
    directory never receives tool output.
    """
    if payload.parent == job.workspace:
        return payload
    staged = job.workspace / payload.name
    try:
        staged.symlink_to(payload.resolve())
    except OSError:
        logger.debug("Symlink not available; copying %s", payload)
        shutil.copy2(payload, staged)
    return job.track(staged)


def _sibling_names(payload: Path) -> set[str]:
    prefix = f"{payload.name}."
    return {p.name for p in payload.parent.iterdir() if p.name.startswith(prefix)}


def _discover_raw(payload: Path, before: set[str], raw_suffix: str) -> Path | None:
    expected = payload.with_name(f"{payload.name}{raw_suffix}")
    if expected.is_file():
        return expected
    created = sorted(name for name in _sibling_names(payload) - before if not name.endswith(".part"))
    if created:
        return payload.with_name(created[0])
    return None


def decode(job: ConversionJob, payload: Path, tools: ToolConfig) -> Path:
    """Run the LJPEG decoder and return the raw file it produced."""
    logger.debug("Converting file to raw: %s", payload)
    before = _sibling_names(payload)
    run = run_tool([*tools.decoder, str(payload)], cwd=job.workspace)
    raw = _discover_raw(payload, before, tools.raw_suffix)
    if raw is None:
        raise DecodeError(
            f"Could not convert {payload.name} from LJPEG to raw.", context=_tool_context(run)
        )
    return job.track(raw)


def rasterize(job: ConversionJob, raw: Path, metadata: MetadataRecord, tools: ToolConfig) -> Path:
    """Run the raw-to-PNM converter; the raw file is deleted whatever the outcome."""
    logger.debug("Converting file to PNM: %s (%s)", raw, metadata)
    run = run_tool([*tools.rasterizer, str(raw), *metadata.tool_args()], cwd=job.workspace)
    job.release(raw)
    if not run.ok:
        raise RasterizeError(
            f"Could not convert {raw.name} from raw to PNM (exit status {run.returncode}).",
            context=_tool_context(run),
        )
    tokens = run.stdout.split()
    if not tokens:
        raise RasterizeError(
            f"The raw-to-PNM converter reported no output file for {raw.name}.",
            context=_tool_context(run),
        )
    pnm = Path(tokens[0])
    if not pnm.is_absolute():
        pnm = job.workspace / pnm
    if not pnm.is_file():
        raise RasterizeError(
            f"The raw-to-PNM converter reported {pnm}, which does not exist.",
            context=_tool_context(run),
        )
    return job.track(pnm)


def encode(job: ConversionJob, pnm: Path, target_name: str, tools: ToolConfig) -> Path:
    """Run the PNM-to-PNG encoder; success means the target file exists."""
    target = job.workspace / target_name
    logger.info("Converting file to PNG: %s", pnm.name)
    run = run_tool(
        [*tools.encoder, "-depth", str(tools.bit_depth), str(pnm), str(target)],
        cwd=job.workspace,
    )
    job.release(pnm)
    if not target.is_file():
        raise EncodeError(
            f"Could not convert from PNM to PNG: {target_name}", context=_tool_context(run)
        )
    return target


def convert(
    job: ConversionJob,
    payload: Path,
    metadata: MetadataRecord,
    target_name: str,
    tools: ToolConfig,
) -> Path:
    """Run the three stages in order and return the PNG inside the workspace."""
    staged = stage_payload(job, payload)
    raw = decode(job, staged, tools)
    job.advance(JobState.DECODED)
    pnm = rasterize(job, raw, metadata, tools)
    job.advance(JobState.RASTERIZED)
    png = encode(job, pnm, target_name, tools)
    job.advance(JobState.ENCODED)
    return png
