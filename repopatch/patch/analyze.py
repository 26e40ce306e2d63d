# repopatch/patch/analyze.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Set

from ..models.resolution import Outcome, ResolvedFile
from ..utils.paths import strip_diff_prefix
from .diff import DEV_NULL, DiffRecord


class LineKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"
    NO_NEWLINE = "no_newline"


class Annotation(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    NEW_FILE = "new_file"
    DELETION = "deletion"


_MARKERS = {
    "+": LineKind.ADDED,
    "-": LineKind.REMOVED,
    " ": LineKind.CONTEXT,
    "\\": LineKind.NO_NEWLINE,
}


def classify_line(line: str) -> LineKind:
    """Class of a hunk line from its marker; anything unrecognized reads as context."""
    return _MARKERS.get(line[:1], LineKind.CONTEXT)


def old_relative_path(record: DiffRecord) -> Optional[str]:
    return strip_diff_prefix(record.old_path, "a/")


def new_relative_path(record: DiffRecord) -> Optional[str]:
    return strip_diff_prefix(record.new_path, "b/")


def required_paths(records: Iterable[DiffRecord]) -> Set[str]:
    """Relative paths whose current content a preview needs (creations need none)."""
    paths: Set[str] = set()
    for record in records:
        if record.old_path and record.old_path != DEV_NULL:
            paths.add(old_relative_path(record))
    return paths


def lookup_key(record: DiffRecord) -> str:
    """Old path when the file already exists, else the new path."""
    old = old_relative_path(record)
    if old and old != DEV_NULL:
        return old
    return new_relative_path(record) or ""


@dataclass
class PreviewUnit:
    """One file's worth of preview: where it came from and how to annotate it."""

    path: str
    record: DiffRecord
    resolved: Optional[ResolvedFile]
    annotation: Optional[Annotation] = None
    message: Optional[str] = None
    lines_by_hunk: List[List[tuple]] = field(default_factory=list)

    @property
    def is_error(self) -> bool:
        return self.annotation is Annotation.ERROR


def _annotate(record: DiffRecord, resolved: Optional[ResolvedFile]):
    if resolved is not None and resolved.outcome is Outcome.ERROR:
        message = resolved.error or "unknown error"
        if "not found" not in message.lower():
            return Annotation.ERROR, message
    if resolved is None or resolved.outcome is not Outcome.OK:
        if record.old_path == DEV_NULL or record.new_path == DEV_NULL:
            if record.new_path == DEV_NULL:
                return Annotation.DELETION, "Deletion"
            return Annotation.NEW_FILE, "New File"
        return Annotation.WARNING, "Original not found - assuming empty"
    return None, None


def resolve_for_preview(
    records: Iterable[DiffRecord],
    resolved: Mapping[str, ResolvedFile],
) -> List[PreviewUnit]:
    """Pair each diff record, in patch order, with its resolution and classify it."""
    units: List[PreviewUnit] = []
    for record in records:
        key = lookup_key(record)
        found = resolved.get(key)
        annotation, message = _annotate(record, found)
        units.append(
            PreviewUnit(
                path=key,
                record=record,
                resolved=found,
                annotation=annotation,
                message=message,
                lines_by_hunk=[
                    [(classify_line(line), line) for line in hunk.lines] for hunk in record.hunks
                ],
            )
        )
    return units


def error_paths(units: Iterable[PreviewUnit]) -> List[str]:
    return [u.path for u in units if u.is_error]

