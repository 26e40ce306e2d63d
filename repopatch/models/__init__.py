from .resolution import Outcome, ResolvedFile
from .source import (
    LocalSource,
    ProjectSource,
    RemoteSource,
    SourceKind,
    source_from_record,
    source_to_record,
)
from .tree import FILE, FOLDER, ConflictKind, Tree, TreeConflict, TreeNode

__all__ = [
    "FILE",
    "FOLDER",
    "ConflictKind",
    "LocalSource",
    "Outcome",
    "ProjectSource",
    "RemoteSource",
    "ResolvedFile",
    "SourceKind",
    "Tree",
    "TreeConflict",
    "TreeNode",
    "source_from_record",
    "source_to_record",
]
