"""Per-asset job state and workspace ownership."""

from __future__ import annotations

import dataclasses
import enum
import logging
import os
import shutil
from pathlib import Path

from ddsm_fetch.identifiers import AssetIdentifier
from ddsm_fetch.utils.paths import ensure_dir, remove_quietly

logger = logging.getLogger(__name__)


class JobState(str, enum.Enum):
    PENDING = "pending"
    METADATA_RESOLVED = "metadata_resolved"
    PAYLOAD_FETCHED = "payload_fetched"
    DECODED = "decoded"
    RASTERIZED = "rasterized"
    ENCODED = "encoded"
    SAVED = "saved"
    FAILED = "failed"


_PROGRESSION = (
    JobState.PENDING,
    JobState.METADATA_RESOLVED,
    JobState.PAYLOAD_FETCHED,
    JobState.DECODED,
    JobState.RASTERIZED,
    JobState.ENCODED,
    JobState.SAVED,
)

# Stage being attempted while the job sits in a given state
_NEXT_STAGE = {
    JobState.PENDING: "metadata",
    JobState.METADATA_RESOLVED: "fetch",
    JobState.PAYLOAD_FETCHED: "decode",
    JobState.DECODED: "rasterize",
    JobState.RASTERIZED: "encode",
    JobState.ENCODED: "save",
}

TERMINAL_STATES = frozenset({JobState.SAVED, JobState.FAILED})


@dataclasses.dataclass
class ConversionJob:
    """One asset's trip through the pipeline.

    The job owns ``workspace`` (named after the identifier, so concurrent jobs
    never share a file name) and every artifact recorded with ``track``.
    Files fetched from the archive are recorded separately with
    ``record_download`` so they can be handed over to the local cache when the
    job closes.
    """

    identifier: AssetIdentifier
    workspace: Path
    state: JobState = JobState.PENDING
    history: list[JobState] = dataclasses.field(default_factory=lambda: [JobState.PENDING])
    artifacts: list[Path] = dataclasses.field(default_factory=list)
    downloads: list[Path] = dataclasses.field(default_factory=list)
    failed_stage: str | None = None
    failure: str | None = None

    @classmethod
    def open(cls, identifier: AssetIdentifier, work_dir: Path) -> ConversionJob:
        """Create the job with a fresh, empty workspace.

        The workspace path is absolute because every tool runs with it as
        its working directory.
        """
        workspace = (work_dir / identifier.workspace_name).resolve()
        if workspace.exists():
            logger.debug("Clearing stale workspace %s", workspace)
            shutil.rmtree(workspace)
        ensure_dir(workspace)
        return cls(identifier=identifier, workspace=workspace)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def current_stage(self) -> str:
        return _NEXT_STAGE.get(self.state, self.state.value)

    def advance(self, state: JobState) -> None:
        """Move to the next state; skipping or reordering states is a bug."""
        if self.is_terminal:
            raise RuntimeError(f"Job {self.identifier} is already {self.state.value}")
        expected = _PROGRESSION[_PROGRESSION.index(self.state) + 1]
        if state is not expected:
            raise RuntimeError(
                f"Job {self.identifier}: cannot go from {self.state.value} to {state.value}"
            )
        self.state = state
        self.history.append(state)

    def fail(self, stage: str, reason: str) -> None:
        if self.is_terminal:
            raise RuntimeError(f"Job {self.identifier} is already {self.state.value}")
        self.failed_stage = stage
        self.failure = reason
        self.state = JobState.FAILED
        self.history.append(JobState.FAILED)

    def track(self, path: Path) -> Path:
        self.artifacts.append(path)
        return path

    def release(self, path: Path) -> None:
        """Delete an artifact that the next stage has consumed."""
        remove_quietly(path)
        if path in self.artifacts:
            self.artifacts.remove(path)

    def record_download(self, path: Path) -> Path:
        self.downloads.append(path)
        return path

    def close(self, cache_dir: Path | None = None) -> None:
        """Remove the workspace, first moving downloads into ``cache_dir`` if given."""
        for path in list(self.artifacts):
            self.release(path)
        for path in self.downloads:
            if not path.is_file():
                continue
            if cache_dir is None:
                remove_quietly(path)
            else:
                _hand_over(path, cache_dir, self.identifier)
        self.downloads.clear()
        try:
            shutil.rmtree(self.workspace)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove workspace %s: %s", self.workspace, exc)


def _hand_over(path: Path, cache_dir: Path, identifier: AssetIdentifier) -> None:
    """Move a downloaded file into the cache without exposing a half-written file.

    Two views of the same case download the same .ics name, so the move goes
    through a job-specific temporary name and ends with an atomic replace.
    """
    final = cache_dir / path.name
    temp = cache_dir / f".{path.name}.{identifier.name}.part"
    try:
        ensure_dir(cache_dir)
        shutil.move(str(path), str(temp))
        os.replace(temp, final)
    except OSError as exc:
        remove_quietly(temp)
        logger.warning("Could not cache %s in %s: %s", path.name, cache_dir, exc)
        return
    logger.debug("Cached %s", final)
