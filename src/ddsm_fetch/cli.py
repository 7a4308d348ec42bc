#!/usr/bin/env python3
"""Command line entry point: fetch DDSM mammograms and convert them to PNG."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ddsm_fetch.__version__ import __version__ as VERSION
from ddsm_fetch.batch import run_batch
from ddsm_fetch.catalog import CatalogIndex
from ddsm_fetch.config import load_config
from ddsm_fetch.exceptions import CatalogNotFoundError, ConfigValidationError, YamlParseError
from ddsm_fetch.logging_config import add_logging_args, configure_logging
from ddsm_fetch.manifest import write_manifest
from ddsm_fetch.utils.paths import utc_now

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ASSET_FAILED = 1
EXIT_PRECONDITION = 2


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="ddsm-fetch",
        description=(
            "Get mammograms from the DDSM archive (or a local mirror), convert them to PNG "
            "and save them to a target directory. Images whose PNG already exists there "
            "are skipped."
        ),
    )
    target = ap.add_mutually_exclusive_group(required=True)
    target.add_argument("-f", "--file", help="Image to convert, for example: A_1141_1.LEFT_MLO")
    target.add_argument(
        "-l", "--list", type=_split_list, help="Comma-separated images: file_1,file_2,file_3"
    )
    target.add_argument(
        "-a", "--all", action="store_true", help="Convert every image listed in the catalog"
    )
    ap.add_argument("-d", "--data", default=None, help="Directory holding local .ics/.LJPEG files")
    ap.add_argument("-s", "--save", default=None, help="Directory receiving the PNG files")
    ap.add_argument(
        "-n",
        "--nthreads",
        type=int,
        default=None,
        help=(
            "Worker threads; 0 runs sequentially. Capped by max_workers. "
            "A single file always runs sequentially."
        ),
    )
    ap.add_argument("--catalog", default=None, help="Catalog file (default: info-file.txt)")
    ap.add_argument("--work-dir", default=None, help="Directory for per-image workspaces")
    ap.add_argument("--ftp-host", default=None, help="Archive FTP host")
    ap.add_argument("--config", default=None, help="YAML configuration file")
    ap.add_argument(
        "--overwrite", action="store_true", default=None, help="Reconvert images already saved"
    )
    ap.add_argument("--manifest", default=None, help="Write a JSON outcome manifest here")
    ap.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    add_logging_args(ap)
    return ap


def _requested_workers(args: argparse.Namespace, batch_size: int, cap: int) -> int:
    if args.file:
        return 0
    if args.nthreads is not None:
        return args.nthreads
    return min(cap, batch_size)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, fmt=args.log_format)
    started_at = utc_now()

    overrides = {
        "data_dir": args.data,
        "save_dir": args.save,
        "work_dir": args.work_dir,
        "catalog": args.catalog,
        "ftp_host": args.ftp_host,
        "overwrite": args.overwrite,
    }
    try:
        config = load_config(Path(args.config) if args.config else None, overrides)
        catalog = CatalogIndex.load(config.catalog_path)
    except (CatalogNotFoundError, ConfigValidationError, YamlParseError) as exc:
        logger.error("%s", exc.message)
        return EXIT_PRECONDITION

    logger.info("Looking for files from base directory: %s", config.data_dir)
    if args.file:
        names = [args.file]
    elif args.list:
        names = args.list
    else:
        names = [ident.name for ident in catalog.identifiers()]
        logger.info("Catalog lists %d images.", len(names))

    requested = _requested_workers(args, len(names), config.max_workers)
    outcomes = run_batch(names, config, catalog, requested_workers=requested)

    if args.manifest:
        write_manifest(Path(args.manifest), outcomes, started_at_utc=started_at)

    failed = 0
    for name in dict.fromkeys(n.strip() for n in names):
        outcome = outcomes[name]
        if outcome.is_ok:
            print(outcome.value)
        else:
            failed += 1
            logger.error("%s: %s (%s)", name, outcome.message, outcome.error)
    return EXIT_ASSET_FAILED if failed else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
