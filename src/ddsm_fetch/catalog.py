"""Read-only index of the remote DDSM archive.

The catalog is a plain-text file with one absolute remote path per line, e.g.::

    /pub/DDSM/cases/cancers/cancer_06/case1141/A-1141-1.ics
    /pub/DDSM/cases/cancers/cancer_06/case1141/A_1141_1.LEFT_MLO.LJPEG

It is built by a separate crawler; this module only looks things up in it.
"""

from __future__ import annotations

import dataclasses
import logging
import posixpath
from collections.abc import Iterator
from pathlib import Path

from ddsm_fetch.exceptions import CatalogNotFoundError
from ddsm_fetch.identifiers import AssetIdentifier, identifier_from_payload_name
from ddsm_fetch.utils.io import read_lines

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_NAME = "info-file.txt"


@dataclasses.dataclass(frozen=True)
class CatalogIndex:
    entries: tuple[str, ...]
    source: Path | None = None

    @classmethod
    def load(cls, path: Path) -> CatalogIndex:
        """Load the catalog file; its absence is fatal for the whole run."""
        if not path.is_file():
            raise CatalogNotFoundError(
                f"The catalog file {path} does not exist; build it with the archive crawler first.",
                context={"path": str(path)},
            )
        entries = tuple(read_lines(path))
        logger.info("Loaded catalog %s (%d entries).", path, len(entries))
        return cls(entries=entries, source=path)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def find_containing(self, filename: str) -> str | None:
        """Return the first remote path containing ``filename``, or None."""
        for entry in self.entries:
            if filename in entry:
                return entry
        return None

    def find_ending_with(self, filename: str) -> str | None:
        """Return the first remote path whose base name is ``filename``, or None.

        The whole base name must match, so ``A_1141_1.LEFT_MLO.LJPEG`` never
        matches an entry ending in ``BA_1141_1.LEFT_MLO.LJPEG``.
        """
        for entry in self.entries:
            if posixpath.basename(entry) == filename:
                return entry
        return None

    def identifiers(self) -> list[AssetIdentifier]:
        """Every image listed in the catalog, in catalog order, without duplicates."""
        seen: set[str] = set()
        found: list[AssetIdentifier] = []
        for entry in self.entries:
            ident = identifier_from_payload_name(posixpath.basename(entry))
            if ident is None or ident.name in seen:
                continue
            seen.add(ident.name)
            found.append(ident)
        return found
