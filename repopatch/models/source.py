from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from .tree import Tree


class SourceKind(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


# Record kinds written by older state files.
_LEGACY_KINDS = {"path": SourceKind.REMOTE, "uploaded": SourceKind.LOCAL}


@dataclass
class RemoteSource:
    """A directory on the machine running the file service."""

    id: int
    root_path: str
    display_name: str
    tree: Optional[Tree] = field(default=None, repr=False)
    last_error: Optional[str] = None

    @property
    def kind(self) -> SourceKind:
        return SourceKind.REMOTE


@dataclass
class LocalSource:
    """An uploaded archive or folder whose contents live in the content store."""

    id: int
    display_name: str
    tree: Optional[Tree] = field(default=None, repr=False)
    last_error: Optional[str] = None

    @property
    def kind(self) -> SourceKind:
        return SourceKind.LOCAL


ProjectSource = Union[RemoteSource, LocalSource]


def source_to_record(source: ProjectSource) -> Dict[str, Any]:
    """Persistable shape of a source. Trees are never persisted."""
    record: Dict[str, Any] = {
        "id": source.id,
        "kind": source.kind.value,
        "displayName": source.display_name,
    }
    if isinstance(source, RemoteSource):
        record["rootPath"] = source.root_path
    if source.last_error:
        record["lastError"] = source.last_error
    return record


def source_from_record(record: Dict[str, Any]) -> ProjectSource | None:
    """Inverse of ``source_to_record``; returns None for unusable records."""
    raw_kind = record.get("kind") or record.get("type")
    try:
        kind = SourceKind(_LEGACY_KINDS.get(raw_kind, raw_kind) if isinstance(raw_kind, str) else raw_kind)
    except (TypeError, ValueError):
        return None
    try:
        source_id = int(record["id"])
    except (KeyError, TypeError, ValueError):
        return None

    last_error = record.get("lastError") or record.get("error") or None
    name = record.get("displayName") or record.get("name") or ""
    if kind is SourceKind.REMOTE:
        root = record.get("rootPath") or record.get("path") or ""
        return RemoteSource(
            id=source_id,
            root_path=root,
            display_name=name or f"path-{source_id}",
            last_error=last_error,
        )
    return LocalSource(id=source_id, display_name=name or f"source-{source_id}", last_error=last_error)
