from .ingest import IngestError
from .patch import PatchParseError
from .source import SourceError, SourceNotFoundError
from .store import StoreError
from .transport import ServiceError, TransportError

__all__ = [
    "IngestError",
    "PatchParseError",
    "SourceError",
    "SourceNotFoundError",
    "StoreError",
    "ServiceError",
    "TransportError",
]
