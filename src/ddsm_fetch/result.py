"""
ddsm_fetch/result.py

Per-asset outcome type.

Error Handling Convention:
--------------------------
1. **Exceptions** are raised for run-level problems the caller must fix:
   - InvalidIdentifierError: a malformed asset name
   - CatalogNotFoundError: the catalog index file is missing
   - ConfigValidationError / YamlParseError: unusable configuration

2. **Result values** (this module) are returned for every per-asset outcome:
   - the absolute path of the final PNG on success
   - the error code, failing stage and message on failure

3. At boundaries (CLI output, outcome manifest), Results are serialized to
   dicts with a "status" field:
   - {"status": "ok", "path": "..."} for success
   - {"status": "error", "error": "decode_error", "stage": "decode", "message": "..."}

Usage:
------
    from ddsm_fetch.result import Ok, Result, err_from_exception

    def run_asset(...) -> Result[Path]:
        try:
            ...
            return Ok(final_path)
        except AssetError as exc:
            return err_from_exception(exc)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, TypeVar

from ddsm_fetch.exceptions import AssetError

T = TypeVar("T")


@dataclass
class Result(Generic[T]):
    """
    Outcome of converting one asset: success (Ok) or failure (Err).

    Attributes:
        status: "ok" for success, "error" for failure
        value: The final image path (only meaningful when status="ok")
        error: Error code (only meaningful when status="error")
        stage: Pipeline stage that failed
        message: Human-readable error message
        extras: Additional context (skipped, duration_ms, ...)
    """

    status: str
    value: T | None = None
    error: str | None = None
    stage: str | None = None
    message: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_err(self) -> bool:
        return self.status == "error"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for JSON output."""
        d: dict[str, Any] = {"status": self.status}
        if self.status == "ok":
            if self.value is not None:
                d["path"] = str(self.value) if isinstance(self.value, Path) else self.value
        else:
            if self.error:
                d["error"] = self.error
            if self.stage:
                d["stage"] = self.stage
            if self.message:
                d["message"] = self.message
        d.update(self.extras)
        return d


def Ok(value: T = None, **extras: Any) -> Result[T]:  # noqa: N802 - intentional PascalCase
    """Create a successful result."""
    return Result(status="ok", value=value, extras=extras)


def Err(  # noqa: N802
    error: str,
    message: str | None = None,
    *,
    stage: str | None = None,
    **extras: Any,
) -> Result[Any]:
    """Create a failure result."""
    return Result(status="error", error=error, stage=stage, message=message, extras=extras)


def err_from_exception(exc: AssetError, **extras: Any) -> Result[Any]:
    """Create a failure result from a per-asset error, keeping its context."""
    merged = dict(exc.context)
    merged.update(extras)
    return Err(exc.code, exc.message, stage=exc.stage, **merged)


# Type alias for the outcome of one asset
AssetOutcome = Result[Path]
