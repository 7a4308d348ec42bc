"""
ddsm_fetch/exceptions.py

Error taxonomy for the fetch-and-convert pipeline.

Every error carries a stable ``code`` (used in outcome manifests and log
lines) and a ``context`` dict with the details needed to diagnose it.

Two families exist:

1. Run-level errors are raised to the caller and stop the whole run:
   invalid identifiers, a missing catalog, unreadable configuration.

2. Asset errors (``AssetError`` subclasses) describe why one asset could not
   be converted. They are raised inside a job and converted to a ``Result``
   at the orchestrator boundary, so they never reach sibling jobs.
"""

from __future__ import annotations

from typing import Any


class DdsmFetchError(Exception):
    """Base class for all errors raised by ddsm_fetch."""

    code = "ddsm_fetch_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context: dict[str, Any] = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.context}


# =============================================================================
# Run-level errors
# =============================================================================


class InvalidIdentifierError(DdsmFetchError, ValueError):
    """Raised when an asset identifier does not have the expected shape."""

    code = "invalid_identifier"


class CatalogNotFoundError(DdsmFetchError):
    """Raised when the catalog index file does not exist."""

    code = "catalog_not_found"


class ConfigValidationError(DdsmFetchError):
    """Raised when a configuration file fails schema validation."""

    code = "config_validation_error"


class YamlParseError(DdsmFetchError):
    """Raised when a configuration file is not valid YAML."""

    code = "yaml_parse_error"


# =============================================================================
# Per-asset errors
# =============================================================================


class AssetError(DdsmFetchError):
    """A failure confined to a single asset."""

    code = "asset_error"
    stage = "unknown"

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, context=context)
        if stage:
            self.stage = stage


class AssetUnavailable(AssetError):
    """A file needed by the asset could not be located or transferred."""

    code = "asset_unavailable"
    stage = "fetch"


class CatalogMiss(AssetUnavailable):
    """No catalog entry matches the requested file name."""

    code = "catalog_miss"


class TransferFailed(AssetUnavailable):
    """The remote transfer did not materialize the file locally."""

    code = "transfer_failed"


class MetadataUnavailable(AssetError):
    """The metadata file could not be turned into a usable record."""

    code = "metadata_unavailable"
    stage = "metadata"


class MetadataIncomplete(MetadataUnavailable):
    """Dimensions or digitizer are missing from the metadata file."""

    code = "metadata_incomplete"


class DigitizerAmbiguous(MetadataUnavailable):
    """The Howtek variant cannot be derived from the identifier."""

    code = "digitizer_ambiguous"


class ConversionError(AssetError):
    """An external conversion tool did not produce its output."""

    code = "conversion_error"


class DecodeError(ConversionError):
    code = "decode_error"
    stage = "decode"


class RasterizeError(ConversionError):
    code = "rasterize_error"
    stage = "rasterize"


class EncodeError(ConversionError):
    code = "encode_error"
    stage = "encode"


class SaveError(AssetError):
    """The final image could not be moved to the save directory."""

    code = "save_error"
    stage = "save"
