"""DDSM image names and the file names derived from them.

An image is named ``<prefix>_<case>_<sequence>.<view>``, e.g.
``A_1141_1.LEFT_MLO``. Its metadata lives in an ``.ics`` file shared by all
views of the same case (``A-1141-1.ics``) and its pixels in
``A_1141_1.LEFT_MLO.LJPEG``.
"""

from __future__ import annotations

import dataclasses
import re

from ddsm_fetch.exceptions import InvalidIdentifierError

IDENTIFIER_PATTERN = re.compile(
    r"(?P<prefix>[A-Za-z0-9])_(?P<case>\d{4})_(?P<sequence>[A-Za-z0-9])\.(?P<view>\w+)"
)

METADATA_SUFFIX = ".ics"
PAYLOAD_SUFFIX = ".LJPEG"
IMAGE_SUFFIX = ".png"
WORKSPACE_SUFFIX = ".work"


@dataclasses.dataclass(frozen=True)
class AssetIdentifier:
    prefix: str
    case: str
    sequence: str
    view: str

    @classmethod
    def parse(cls, name: str) -> AssetIdentifier:
        """Parse and validate an image name; raise InvalidIdentifierError if malformed."""
        text = (name or "").strip()
        match = IDENTIFIER_PATTERN.fullmatch(text)
        if match is None:
            raise InvalidIdentifierError(
                f"Image name does not look like a DDSM image (e.g. A_1141_1.LEFT_MLO): {name!r}",
                context={"identifier": name},
            )
        return cls(
            prefix=match.group("prefix"),
            case=match.group("case"),
            sequence=match.group("sequence"),
            view=match.group("view"),
        )

    @property
    def name(self) -> str:
        return f"{self.prefix}_{self.case}_{self.sequence}.{self.view}"

    @property
    def stem(self) -> str:
        """The case part of the name, without the view."""
        return f"{self.prefix}_{self.case}_{self.sequence}"

    @property
    def leading_char(self) -> str:
        return self.prefix.upper()

    @property
    def metadata_filename(self) -> str:
        return metadata_filename_for(self.name)

    @property
    def payload_filename(self) -> str:
        return f"{self.name}{PAYLOAD_SUFFIX}"

    @property
    def image_filename(self) -> str:
        return f"{self.name}{IMAGE_SUFFIX}"

    @property
    def workspace_name(self) -> str:
        """Directory name owned by the job converting this image."""
        return f"{self.name}{WORKSPACE_SUFFIX}"

    def __str__(self) -> str:
        return self.name


def metadata_filename_for(name: str) -> str:
    """Return the .ics file name for an image name.

    The two separators of the case part become dashes and the view is
    dropped: ``A_1141_1.LEFT_MLO`` -> ``A-1141-1.ics``. Applying it to an
    already-derived name is rejected, since that is not an image name.
    """
    ident = AssetIdentifier.parse(name)
    return f"{ident.prefix}-{ident.case}-{ident.sequence}{METADATA_SUFFIX}"


def identifier_from_payload_name(filename: str) -> AssetIdentifier | None:
    """Recover the image identifier from an ``.LJPEG`` file name, if it is one."""
    if not filename.endswith(PAYLOAD_SUFFIX):
        return None
    try:
        return AssetIdentifier.parse(filename[: -len(PAYLOAD_SUFFIX)])
    except InvalidIdentifierError:
        return None
