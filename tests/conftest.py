"""
Shared pytest fixtures for ddsm_fetch tests.

Provides common fakes and fixtures for:
- Run configuration and catalog
- The archive FTP server
- The external conversion tools
- Sample .ics metadata files
"""

from __future__ import annotations

import ftplib
import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.is_dir():
    sys.path.insert(0, str(SRC_ROOT))

from ddsm_fetch import convert as convert_mod  # noqa: E402
from ddsm_fetch import transfer as transfer_mod  # noqa: E402
from ddsm_fetch.catalog import CatalogIndex  # noqa: E402
from ddsm_fetch.config import FetchConfig, ToolConfig  # noqa: E402
from ddsm_fetch.utils.subprocess import ToolRun  # noqa: E402

CASE_DIR = "/pub/DDSM/cases/cancers/cancer_06/case1141"
NORMAL_DIR = "/pub/DDSM/cases/normals/normal_08/case3024"


def make_ics(digitizer: str = "HOWTEK MULTIRAD850", **views: tuple[int, int]) -> str:
    """Render a .ics file; views default to LEFT_MLO 123x456 and RIGHT_CC 789x1011."""
    views = views or {"LEFT_MLO": (123, 456), "RIGHT_CC": (789, 1011)}
    lines = [
        "ics_version 1.0",
        "filename A-1141-1",
        "DATE_OF_STUDY 2 7 1995",
        "PATIENT_AGE 42",
        "FILM",
        "FILM_TYPE REGULAR",
        "DENSITY 4",
        "DATE_DIGITIZED 22 6 1997",
        f"DIGITIZER {digitizer}",
        "SELECTED",
    ]
    for view, (rows, cols) in views.items():
        lines.append(
            f"{view} LINES {rows} PIXELS_PER_LINE {cols} BITS_PER_PIXEL 12 RESOLUTION 43 OVERVIEW"
        )
    return "\n".join(lines) + "\n"


# =============================================================================
# Configuration and catalog fixtures
# =============================================================================


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., FetchConfig]:
    """Factory for a FetchConfig rooted in tmp_path, with bare tool names."""

    def _make(**overrides: Any) -> FetchConfig:
        values: dict[str, Any] = {
            "data_dir": tmp_path / "data",
            "save_dir": tmp_path / "save",
            "work_dir": tmp_path / "work",
            "catalog_path": tmp_path / "info-file.txt",
            "ftp_host": "ftp.example.org",
            "max_workers": 3,
            "tools": ToolConfig(
                decoder=("jpeg", "-d", "-s"),
                rasterizer=("ddsmraw2pnm",),
                encoder=("convert",),
            ),
        }
        values.update(overrides)
        for key in ("data_dir", "save_dir", "work_dir"):
            Path(values[key]).mkdir(parents=True, exist_ok=True)
        return FetchConfig(**values)

    return _make


@pytest.fixture
def config(make_config: Callable[..., FetchConfig]) -> FetchConfig:
    return make_config()


@pytest.fixture
def catalog() -> CatalogIndex:
    return CatalogIndex(
        entries=(
            f"{CASE_DIR}/A-1141-1.ics",
            f"{CASE_DIR}/A_1141_1.LEFT_MLO.LJPEG",
            f"{CASE_DIR}/A_1141_1.RIGHT_CC.LJPEG",
            f"{NORMAL_DIR}/B-3024-1.ics",
            f"{NORMAL_DIR}/B_3024_1.LEFT_CC.LJPEG",
        )
    )


@pytest.fixture
def remote_files() -> dict[str, bytes]:
    """Contents of the fake archive, keyed by remote path."""
    return {
        f"{CASE_DIR}/A-1141-1.ics": make_ics().encode(),
        f"{CASE_DIR}/A_1141_1.LEFT_MLO.LJPEG": b"ljpeg-left-mlo",
        f"{CASE_DIR}/A_1141_1.RIGHT_CC.LJPEG": b"ljpeg-right-cc",
        f"{NORMAL_DIR}/B-3024-1.ics": make_ics("LUMISYS LASER", LEFT_CC=(4696, 3024)).encode(),
        f"{NORMAL_DIR}/B_3024_1.LEFT_CC.LJPEG": b"ljpeg-left-cc",
    }


# =============================================================================
# FTP fixtures
# =============================================================================


class FakeFTPServer:
    """Records every session opened against it."""

    def __init__(self, files: dict[str, bytes]) -> None:
        self.files = files
        self.sessions: list[FakeFTP] = []
        self._lock = threading.Lock()

    def __call__(self, host: str) -> FakeFTP:
        session = FakeFTP(self, host)
        with self._lock:
            self.sessions.append(session)
        return session

    @property
    def retrieved(self) -> list[str]:
        return [path for session in self.sessions for path in session.retrieved]


class FakeFTP:
    def __init__(self, server: FakeFTPServer, host: str) -> None:
        self.server = server
        self.host = host
        self.logged_in = False
        self.passive: bool | None = None
        self.retrieved: list[str] = []

    def __enter__(self) -> FakeFTP:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False

    def login(self) -> None:
        self.logged_in = True

    def set_pasv(self, value: bool) -> None:
        self.passive = value

    def retrbinary(self, cmd: str, callback) -> None:
        path = cmd.split(" ", 1)[1]
        if path not in self.server.files:
            raise ftplib.error_perm(f"550 {path}: No such file or directory")
        self.retrieved.append(path)
        callback(self.server.files[path])


@pytest.fixture
def fake_ftp(monkeypatch: pytest.MonkeyPatch, remote_files: dict[str, bytes]) -> FakeFTPServer:
    server = FakeFTPServer(remote_files)
    monkeypatch.setattr(transfer_mod, "FTP", server)
    return server


# =============================================================================
# External tool fixtures
# =============================================================================


class FakeTools:
    """Stands in for jpeg, ddsmraw2pnm and convert.

    ``fail`` maps a stage name (decode, rasterize, encode) to image names for
    which that tool misbehaves; ``"*"`` matches every image.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.fail: dict[str, set[str]] = {"decode": set(), "rasterize": set(), "encode": set()}
        self.raw_suffix = ".1"
        self.empty_stdout = False
        self._lock = threading.Lock()

    def _fails(self, stage: str, path: str) -> bool:
        names = self.fail[stage]
        return "*" in names or any(name in Path(path).name for name in names)

    @staticmethod
    def _at(path: str, cwd: Path | None) -> Path:
        """Resolve a tool argument the way the tool process would."""
        resolved = Path(path)
        if not resolved.is_absolute() and cwd is not None:
            resolved = Path(cwd) / resolved
        return resolved

    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]

    def __call__(self, cmd: list[str], cwd: Path | None = None) -> ToolRun:
        program = Path(cmd[0]).name
        stage = {"jpeg": "decode", "ddsmraw2pnm": "rasterize", "convert": "encode"}[program]
        with self._lock:
            self.calls.append((stage, tuple(cmd)))
        if stage == "decode":
            payload = cmd[-1]
            if not self._fails("decode", payload):
                self._at(payload + self.raw_suffix, cwd).write_bytes(b"raw")
            return ToolRun(cmd=tuple(cmd), returncode=0, stdout="", stderr="")
        if stage == "rasterize":
            raw = cmd[1]
            if self._fails("rasterize", raw):
                return ToolRun(cmd=tuple(cmd), returncode=1, stdout="", stderr="bad raw file")
            pnm = self._at(raw + "-ddsmraw2pnm.pnm", cwd)
            pnm.write_bytes(b"P5")
            stdout = "" if self.empty_stdout else f"{pnm}\n"
            return ToolRun(cmd=tuple(cmd), returncode=0, stdout=stdout, stderr="")
        target = cmd[-1]
        if not self._fails("encode", target):
            self._at(target, cwd).write_bytes(b"\x89PNG")
        return ToolRun(cmd=tuple(cmd), returncode=0, stdout="", stderr="")


@pytest.fixture
def fake_tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    tools = FakeTools()
    monkeypatch.setattr(convert_mod, "run_tool", tools)
    return tools


@pytest.fixture
def cached_case(config: FetchConfig) -> FetchConfig:
    """Put the A-1141-1 case (metadata and both payloads) in the local data directory."""
    (config.data_dir / "A-1141-1.ics").write_text(make_ics(), encoding="utf-8")
    (config.data_dir / "A_1141_1.LEFT_MLO.LJPEG").write_bytes(b"ljpeg-left-mlo")
    (config.data_dir / "A_1141_1.RIGHT_CC.LJPEG").write_bytes(b"ljpeg-right-cc")
    return config
