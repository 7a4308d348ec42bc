"""Anonymous FTP transfer from the DDSM archive."""

from __future__ import annotations

import ftplib
import logging
import posixpath
import re
from pathlib import Path

from ddsm_fetch.exceptions import TransferFailed
from ddsm_fetch.utils.paths import ensure_dir, remove_quietly

FTP = ftplib.FTP

logger = logging.getLogger(__name__)

# Pattern to detect unsafe characters in remote file names
_UNSAFE_FILENAME_PATTERN = re.compile(r"[\x00-\x1f\x7f]|\\")


def _is_safe_filename(fname: str) -> bool:
    """Validate that a file name taken from a catalog entry is safe to write locally.

    Rejects empty names, names made only of dots, control characters and
    backslashes.
    """
    if not fname or not fname.strip():
        return False
    if _UNSAFE_FILENAME_PATTERN.search(fname):
        return False
    if fname.strip(".") == "":
        return False
    return True


def fetch_remote_file(remote_path: str, dest_dir: Path, *, host: str) -> Path:
    """Download one file from the archive and return its local path.

    A fresh anonymous, passive-mode session is opened for every call; sessions
    are never shared between jobs. The file is written as ``<name>.part`` and
    renamed once the transfer completes, so a partial download never looks
    like a cache hit.

    Args:
        remote_path: Absolute path on the server, verbatim from the catalog.
        dest_dir: Directory receiving the file under its original base name.
        host: FTP host name.

    Raises:
        TransferFailed: The session failed or the file did not materialize.
    """
    remote_path = remote_path.strip()
    fname = posixpath.basename(remote_path)
    context = {"remote_path": remote_path, "host": host}
    if not _is_safe_filename(fname):
        raise TransferFailed(f"Unsafe file name in catalog entry: {remote_path!r}", context=context)

    ensure_dir(dest_dir)
    local = dest_dir / fname
    temp_path = local.with_name(f"{local.name}.part")
    logger.info("Fetching %s from %s.", remote_path, host)
    try:
        with FTP(host) as ftp:
            ftp.login()
            ftp.set_pasv(True)
            with temp_path.open("wb") as f:
                ftp.retrbinary(f"RETR {remote_path}", f.write)
        temp_path.replace(local)
    except ftplib.all_errors as exc:
        remove_quietly(temp_path)
        raise TransferFailed(
            f"Could not get {fname} from {host}; perhaps the server is busy ({exc}).",
            context=context,
        ) from exc

    if not local.is_file():
        raise TransferFailed(f"Transfer of {fname} from {host} produced no file.", context=context)
    logger.debug("Fetched %s (%d bytes).", local, local.stat().st_size)
    return local
