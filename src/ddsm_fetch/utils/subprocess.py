"""Subprocess execution utilities.

This module provides the single place where external conversion tools are
executed. Unlike a checked run, a non-zero exit status is returned to the
caller, because each conversion stage decides for itself what counts as
failure (exit status for the rasterizer, output existence for the others).
"""

from __future__ import annotations

import dataclasses
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ToolRun:
    """Captured result of one tool invocation."""

    cmd: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_tool(cmd: list[str], cwd: Path | None = None) -> ToolRun:
    """Run an external tool and capture its output.

    Args:
        cmd: Command and arguments as a list of strings.
        cwd: Optional working directory for the command.

    Returns:
        ToolRun with the exit status and the decoded stdout/stderr.
        A tool that cannot be started at all is reported with
        returncode 127 and the OS error text in stderr.

    Example:
        >>> run_tool(["convert", "-depth", "16", "in.pnm", "out.png"], cwd=Path("/tmp"))
        ToolRun(cmd=('convert', ...), returncode=0, stdout='', stderr='')
    """
    logger.debug("Running tool: %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        p = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        logger.debug("Tool could not be started: %s", exc)
        return ToolRun(cmd=tuple(cmd), returncode=127, stdout="", stderr=str(exc))
    run = ToolRun(
        cmd=tuple(cmd),
        returncode=p.returncode,
        stdout=p.stdout.decode("utf-8", errors="ignore"),
        stderr=p.stderr.decode("utf-8", errors="ignore"),
    )
    logger.debug("Tool exited with %s", run.returncode)
    return run
