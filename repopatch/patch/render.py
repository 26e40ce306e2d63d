# repopatch/patch/render.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .analyze import Annotation, LineKind, PreviewUnit


class PreviewStatus(str, Enum):
    EMPTY = "empty"  # nothing to preview; not an error
    INVALID = "invalid"  # could not start (no source, bad patch, ...)
    SUCCESS = "success"
    FETCH_FAILURES = "fetch_failures"
    ERRORS = "errors"


@dataclass
class PreviewLine:
    kind: LineKind
    text: str


@dataclass
class PreviewHunk:
    header: str
    lines: List[PreviewLine] = field(default_factory=list)


@dataclass
class PreviewBlock:
    path: str
    annotation: Optional[Annotation] = None
    message: Optional[str] = None
    hunks: List[PreviewHunk] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.hunks)


@dataclass
class PreviewResult:
    status: PreviewStatus
    message: str
    body: List[PreviewBlock] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)
    error_files: List[str] = field(default_factory=list)
    generation: int = 0

    @property
    def is_error(self) -> bool:
        return self.status in (PreviewStatus.INVALID, PreviewStatus.ERRORS, PreviewStatus.FETCH_FAILURES)

    @property
    def text(self) -> str:
        return render_text(self)


def empty(message: str) -> PreviewResult:
    return PreviewResult(PreviewStatus.EMPTY, message)


def invalid(message: str, failures: Iterable[str] = ()) -> PreviewResult:
    return PreviewResult(PreviewStatus.INVALID, message, failures=sorted(failures))


def _line(kind: LineKind, raw: str) -> PreviewLine:
    # Marker stripped for real diff lines; annotations and oddities stay verbatim.
    if kind in (LineKind.ADDED, LineKind.REMOVED) or (kind is LineKind.CONTEXT and raw[:1] == " "):
        return PreviewLine(kind, raw[1:])
    return PreviewLine(kind, raw)


def render(units: Iterable[PreviewUnit], failures: Iterable[str] = ()) -> PreviewResult:
    """
    Build the structured preview for analyzed units.

    Status considers both preview-level errors (per-file annotations) and
    resolver-level failures, which are tracked separately.
    """
    blocks: List[PreviewBlock] = []
    error_files: List[str] = []
    for unit in units:
        block = PreviewBlock(path=unit.path, annotation=unit.annotation, message=unit.message)
        for index, hunk in enumerate(unit.record.hunks):
            lines = [_line(kind, raw) for kind, raw in unit.lines_by_hunk[index]]
            block.hunks.append(PreviewHunk(header=hunk.header or f"@@ Hunk {index + 1} @@", lines=lines))
        if unit.is_error:
            error_files.append(unit.path)
        blocks.append(block)

    failed = sorted(failures)
    if error_files:
        status = PreviewStatus.ERRORS
        message = f"Preview generated with errors in {len(error_files)} file(s): {', '.join(error_files)}"
    elif failed:
        status = PreviewStatus.FETCH_FAILURES
        message = "Preview generated. Some files failed to fetch."
    else:
        status = PreviewStatus.SUCCESS
        message = "Preview generated successfully."
    return PreviewResult(status, message, body=blocks, failures=failed, error_files=error_files)


_PREFIX = {
    LineKind.ADDED: "+ ",
    LineKind.REMOVED: "- ",
    LineKind.CONTEXT: "  ",
}


def _header(block: PreviewBlock) -> str:
    header = f"File: {block.path}"
    if block.annotation is Annotation.ERROR:
        header += f" (Error: {block.message})"
    elif block.annotation is Annotation.WARNING:
        header += f" (Warning: {block.message})"
    elif block.annotation is not None:
        header += f" ({block.message})"
    return header


def render_text(result: PreviewResult) -> str:
    """Plain-text body: one header per file, hunk headers, marker-prefixed lines."""
    out: List[str] = []
    for block in result.body:
        out.append(_header(block))
        if not block.has_changes:
            out.append("  (No content changes in patch)")
            out.append("")
            continue
        for hunk in block.hunks:
            out.append(hunk.header)
            for line in hunk.lines:
                if line.kind is LineKind.NO_NEWLINE:
                    out.append(line.text)
                else:
                    out.append(_PREFIX.get(line.kind, "") + line.text)
        out.append("")
    return "\n".join(out)
