from .ingest import (
    Ingested,
    collect_folder,
    ingest_archive,
    ingest_folder,
    ingest_folder_entries,
)
from .registry import SourceRegistry

__all__ = [
    "Ingested",
    "SourceRegistry",
    "collect_folder",
    "ingest_archive",
    "ingest_folder",
    "ingest_folder_entries",
]
