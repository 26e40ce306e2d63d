from .config import Settings
from .core import generate_preview, refresh_source
from .errors import (
    IngestError,
    PatchParseError,
    ServiceError,
    SourceError,
    SourceNotFoundError,
    StoreError,
    TransportError,
)
from .models import LocalSource, Outcome, RemoteSource, ResolvedFile, TreeConflict, TreeNode
from .patch import (
    ApplyFailure,
    ApplyResult,
    PreviewResult,
    PreviewStatus,
    apply_patch,
    apply_to_selected,
    parse_patch,
    render_text,
    required_paths,
)
from .resolve import ContentResolver
from .sources import SourceRegistry, ingest_archive, ingest_folder, ingest_folder_entries
from .store import ContentStore, SettingsStore
from .transport import RemoteClient
from .utils.tree import insert_path
from .workbench import Workbench

__all__ = [
    "Settings",
    "Workbench",
    "generate_preview",
    "refresh_source",
    "ContentResolver",
    "SourceRegistry",
    "ContentStore",
    "SettingsStore",
    "RemoteClient",
    "ingest_archive",
    "ingest_folder",
    "ingest_folder_entries",
    "insert_path",
    "parse_patch",
    "required_paths",
    "render_text",
    "apply_patch",
    "apply_to_selected",
    "ApplyFailure",
    "ApplyResult",
    "PreviewResult",
    "PreviewStatus",
    "LocalSource",
    "RemoteSource",
    "Outcome",
    "ResolvedFile",
    "TreeConflict",
    "TreeNode",
    "IngestError",
    "PatchParseError",
    "ServiceError",
    "SourceError",
    "SourceNotFoundError",
    "StoreError",
    "TransportError",
]
