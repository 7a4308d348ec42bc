"""Run configuration.

A single frozen ``FetchConfig`` is built once per run and passed explicitly
to every component; nothing reads options from module globals.

Values are resolved in priority order:
1. Command-line overrides
2. The YAML config file (``--config``)
3. Built-in defaults
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ddsm_fetch.catalog import DEFAULT_CATALOG_NAME
from ddsm_fetch.config_validator import read_yaml

DEFAULT_FTP_HOST = "figment.csee.usf.edu"
DEFAULT_MAX_WORKERS = 3
DEFAULT_DECODER = ("./jpeg", "-d", "-s")
DEFAULT_RASTERIZER = ("./ddsmraw2pnm",)
DEFAULT_ENCODER = ("convert",)
DEFAULT_RAW_SUFFIX = ".1"
DEFAULT_BIT_DEPTH = 16


@dataclasses.dataclass(frozen=True)
class ToolConfig:
    """argv prefixes of the three external conversion tools."""

    decoder: tuple[str, ...] = DEFAULT_DECODER
    rasterizer: tuple[str, ...] = DEFAULT_RASTERIZER
    encoder: tuple[str, ...] = DEFAULT_ENCODER
    raw_suffix: str = DEFAULT_RAW_SUFFIX
    bit_depth: int = DEFAULT_BIT_DEPTH


@dataclasses.dataclass(frozen=True)
class FetchConfig:
    data_dir: Path
    save_dir: Path
    work_dir: Path
    catalog_path: Path
    ftp_host: str = DEFAULT_FTP_HOST
    max_workers: int = DEFAULT_MAX_WORKERS
    overwrite: bool = False
    keep_downloads: bool = True
    tools: ToolConfig = dataclasses.field(default_factory=ToolConfig)


def _as_argv(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(value.split())
    return tuple(str(item) for item in value)


def _resolve_path(value: str | os.PathLike[str], base_dir: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()


def _resolve_program(argv: tuple[str, ...], base_dir: Path) -> tuple[str, ...]:
    """Make a relative program path absolute; bare names are left to PATH lookup.

    Tools run inside each job's workspace, so ``./jpeg`` must not stay relative.
    """
    program = argv[0]
    if os.sep in program or (os.altsep and os.altsep in program):
        program = str(_resolve_path(program, base_dir))
    return (program, *argv[1:])


def _load_tools(raw: Mapping[str, Any], base_dir: Path) -> ToolConfig:
    decoder = _as_argv(raw.get("decoder", DEFAULT_DECODER))
    rasterizer = _as_argv(raw.get("rasterizer", DEFAULT_RASTERIZER))
    encoder = _as_argv(raw.get("encoder", DEFAULT_ENCODER))
    return ToolConfig(
        decoder=_resolve_program(decoder, base_dir),
        rasterizer=_resolve_program(rasterizer, base_dir),
        encoder=_resolve_program(encoder, base_dir),
        raw_suffix=str(raw.get("raw_suffix", DEFAULT_RAW_SUFFIX)),
        bit_depth=int(raw.get("bit_depth", DEFAULT_BIT_DEPTH)),
    )


def load_config(
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> FetchConfig:
    """Build the run configuration from an optional YAML file and CLI overrides.

    Args:
        config_path: YAML file validated against ``fetch_config.schema.json``.
            Relative paths inside it are resolved against its directory.
        overrides: Values that win over the file (None values are ignored).
            Relative override paths are resolved against the current directory.

    Returns:
        Resolved FetchConfig.

    Raises:
        YamlParseError: The file is not valid YAML.
        ConfigValidationError: The file does not match the schema.
    """
    cwd = Path.cwd()
    file_cfg: dict[str, Any] = {}
    file_base = cwd
    if config_path is not None:
        file_cfg = read_yaml(config_path, schema_name="fetch_config")
        file_base = config_path.expanduser().resolve().parent
    cli = {k: v for k, v in (overrides or {}).items() if v is not None}

    def pick_path(key: str, default: str) -> Path:
        if key in cli:
            return _resolve_path(cli[key], cwd)
        if key in file_cfg:
            return _resolve_path(file_cfg[key], file_base)
        return _resolve_path(default, cwd)

    def pick(key: str, default: Any) -> Any:
        return cli.get(key, file_cfg.get(key, default))

    return FetchConfig(
        data_dir=pick_path("data_dir", "."),
        save_dir=pick_path("save_dir", "."),
        work_dir=pick_path("work_dir", "."),
        catalog_path=pick_path("catalog", DEFAULT_CATALOG_NAME),
        ftp_host=str(pick("ftp_host", DEFAULT_FTP_HOST)),
        max_workers=int(pick("max_workers", DEFAULT_MAX_WORKERS)),
        overwrite=bool(pick("overwrite", False)),
        keep_downloads=bool(pick("keep_downloads", True)),
        tools=_load_tools(file_cfg.get("tools") or {}, file_base),
    )
