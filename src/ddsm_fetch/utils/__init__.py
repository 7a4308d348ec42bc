"""Shared utility functions for ddsm_fetch."""

from ddsm_fetch.utils.io import read_lines, write_json
from ddsm_fetch.utils.paths import ensure_dir, remove_quietly, utc_now
from ddsm_fetch.utils.subprocess import ToolRun, run_tool

__all__ = [
    "ToolRun",
    "ensure_dir",
    "read_lines",
    "remove_quietly",
    "run_tool",
    "utc_now",
    "write_json",
]
