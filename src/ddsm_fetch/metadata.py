"""Image dimensions and digitizer from a case's ``.ics`` file.

An .ics file looks like::

    ics_version 1.0
    filename A-1141-1
    DIGITIZER HOWTEK MULTIRAD850
    LEFT_CC LINES 4696 PIXELS_PER_LINE 3024 BITS_PER_PIXEL 12 RESOLUTION 50 OVERVIEW
    LEFT_MLO LINES 4720 PIXELS_PER_LINE 3000 BITS_PER_PIXEL 12 RESOLUTION 50 OVERVIEW

The parser is a pure function over lines; ``resolve_metadata`` adds the
cache lookup and the remote fetch.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from ddsm_fetch.catalog import CatalogIndex
from ddsm_fetch.config import FetchConfig
from ddsm_fetch.exceptions import (
    CatalogMiss,
    DigitizerAmbiguous,
    MetadataIncomplete,
    TransferFailed,
)
from ddsm_fetch.identifiers import AssetIdentifier
from ddsm_fetch.job import ConversionJob
from ddsm_fetch.transfer import fetch_remote_file

logger = logging.getLogger(__name__)

DIGITIZER_KEYWORD = "DIGITIZER"
HOWTEK = "howtek"
# The two Howtek scanners are told apart by the first letter of the image name
HOWTEK_VARIANTS = {"A": "howtek-mgh", "D": "howtek-ismd"}
KNOWN_DIGITIZERS = frozenset({"dba", "lumisys", *HOWTEK_VARIANTS.values()})

_LINES_PATTERN = re.compile(r"\bLINES\s+(\d+)")
_PIXELS_PATTERN = re.compile(r"\bPIXELS_PER_LINE\s+(\d+)")


@dataclasses.dataclass(frozen=True)
class MetadataRecord:
    image_dimensions: tuple[int, int] | None = None
    digitizer: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.image_dimensions is not None and self.digitizer is not None

    def tool_args(self) -> list[str]:
        """Arguments the rasterizer expects after the raw file: rows, cols, digitizer."""
        if not self.is_complete:
            raise ValueError("metadata record is incomplete")
        rows, cols = self.image_dimensions  # type: ignore[misc]
        return [str(rows), str(cols), str(self.digitizer)]

    def __str__(self) -> str:
        return " ".join(self.tool_args()) if self.is_complete else "<incomplete>"


def parse_dimensions(line: str, view: str) -> tuple[int, int] | None:
    """Return (rows, cols) if ``line`` describes ``view``, else None."""
    if not re.search(rf"\b{re.escape(view)}\b", line):
        return None
    rows = _LINES_PATTERN.search(line)
    cols = _PIXELS_PATTERN.search(line)
    if rows is None or cols is None:
        return None
    dims = (int(rows.group(1)), int(cols.group(1)))
    if min(dims) <= 0:
        return None
    return dims


def parse_digitizer(line: str, leading_char: str) -> str | None:
    """Return the digitizer named on a ``DIGITIZER`` line, else None.

    Raises:
        DigitizerAmbiguous: A Howtek scanner with an image prefix other than A or D.
    """
    tokens = line.split()
    if len(tokens) < 2 or tokens[0] != DIGITIZER_KEYWORD:
        return None
    name = tokens[1].lower()
    if name != HOWTEK:
        return name
    variant = HOWTEK_VARIANTS.get(leading_char.upper())
    if variant is None:
        raise DigitizerAmbiguous(
            f"Cannot determine the Howtek digitizer variant for prefix {leading_char!r}.",
            context={"prefix": leading_char},
        )
    return variant


def parse_metadata_lines(lines: Iterable[str], identifier: AssetIdentifier) -> MetadataRecord:
    """Scan every line; later matches win, as in the archive's own tooling."""
    dims: tuple[int, int] | None = None
    digitizer: str | None = None
    for line in lines:
        found_dims = parse_dimensions(line, identifier.view)
        if found_dims is not None:
            dims = found_dims
        found_digitizer = parse_digitizer(line, identifier.leading_char)
        if found_digitizer is not None:
            digitizer = found_digitizer
    return MetadataRecord(image_dimensions=dims, digitizer=digitizer)


def read_metadata_file(path: Path, identifier: AssetIdentifier) -> MetadataRecord:
    with path.open("r", encoding="utf-8", errors="ignore") as f:
        return parse_metadata_lines(f, identifier)


def _require_complete(record: MetadataRecord, identifier: AssetIdentifier, path: Path) -> None:
    context = {"metadata_file": str(path)}
    if record.image_dimensions is None:
        raise MetadataIncomplete(
            f"No LINES/PIXELS_PER_LINE entry for view {identifier.view} in {path.name}.",
            context=context,
        )
    if record.digitizer is None:
        raise MetadataIncomplete(f"No DIGITIZER entry in {path.name}.", context=context)
    if record.digitizer not in KNOWN_DIGITIZERS:
        raise MetadataIncomplete(
            f"Unsupported digitizer {record.digitizer!r} in {path.name}.",
            context={**context, "digitizer": record.digitizer},
        )


def resolve_metadata(
    identifier: AssetIdentifier,
    config: FetchConfig,
    catalog: CatalogIndex,
    job: ConversionJob,
) -> MetadataRecord:
    """Find, fetch if needed, and parse the .ics file for ``identifier``.

    Raises:
        CatalogMiss: The file is neither cached nor listed in the catalog.
        TransferFailed: The remote fetch failed.
        DigitizerAmbiguous / MetadataIncomplete: The file cannot be used.
    """
    filename = identifier.metadata_filename
    path = config.data_dir / filename
    logger.info("Reading ICS file: %s", path)
    if not path.is_file():
        logger.warning(
            "ICS file not found in %s; fetching %s from the archive.", config.data_dir, filename
        )
        remote = catalog.find_containing(filename)
        if remote is None:
            raise CatalogMiss(
                f"No catalog entry for {filename}.",
                stage="metadata",
                context={"filename": filename},
            )
        try:
            path = job.record_download(
                fetch_remote_file(remote, job.workspace, host=config.ftp_host)
            )
        except TransferFailed as exc:
            exc.stage = "metadata"
            raise

    record = read_metadata_file(path, identifier)
    _require_complete(record, identifier, path)
    logger.debug("Read ICS file %s: %s", path.name, record)
    return record
