"""Fetch DDSM mammograms and convert them to PNG images."""

from ddsm_fetch.__version__ import __version__
from ddsm_fetch.batch import effective_workers, run_batch
from ddsm_fetch.catalog import CatalogIndex
from ddsm_fetch.config import FetchConfig, ToolConfig, load_config
from ddsm_fetch.identifiers import AssetIdentifier
from ddsm_fetch.metadata import MetadataRecord
from ddsm_fetch.pipeline import run_asset
from ddsm_fetch.result import Err, Ok, Result

__all__ = [
    "__version__",
    "AssetIdentifier",
    "CatalogIndex",
    "Err",
    "FetchConfig",
    "MetadataRecord",
    "Ok",
    "Result",
    "ToolConfig",
    "effective_workers",
    "load_config",
    "run_asset",
    "run_batch",
]
