"""Locate or download the LJPEG payload of an image."""

from __future__ import annotations

import logging
from pathlib import Path

from ddsm_fetch.catalog import CatalogIndex
from ddsm_fetch.config import FetchConfig
from ddsm_fetch.exceptions import CatalogMiss
from ddsm_fetch.identifiers import AssetIdentifier
from ddsm_fetch.job import ConversionJob
from ddsm_fetch.transfer import fetch_remote_file

logger = logging.getLogger(__name__)


def fetch_payload(
    identifier: AssetIdentifier,
    config: FetchConfig,
    catalog: CatalogIndex,
    job: ConversionJob,
) -> Path:
    """Return a local path to ``<identifier>.LJPEG``.

    A file already present in ``config.data_dir`` is used as is and no
    connection is opened. Otherwise the catalog entry ending in the file name
    is downloaded into the job workspace.

    Raises:
        CatalogMiss: The file is not cached and the catalog does not list it.
        TransferFailed: The download failed.
    """
    filename = identifier.payload_filename
    local = config.data_dir / filename
    logger.info("Checking if LJPEG file exists: %s", local)
    if local.is_file():
        return local

    remote = catalog.find_ending_with(filename)
    if remote is None:
        raise CatalogMiss(
            f"File does not exist locally or in the catalog: {filename}",
            stage="fetch",
            context={"filename": filename},
        )
    logger.warning("LJPEG file not found in %s; fetching %s from the archive.", config.data_dir, filename)
    return job.record_download(fetch_remote_file(remote, job.workspace, host=config.ftp_host))
