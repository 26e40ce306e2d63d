from .analyze import (
    Annotation,
    LineKind,
    PreviewUnit,
    classify_line,
    lookup_key,
    required_paths,
    resolve_for_preview,
)
from .apply import ApplyFailure, ApplyResult, apply_patch, apply_to_selected
from .diff import DEV_NULL, DiffHunk, DiffRecord, parse_patch
from .render import PreviewResult, PreviewStatus, render, render_text

__all__ = [
    "DEV_NULL",
    "Annotation",
    "ApplyFailure",
    "ApplyResult",
    "DiffHunk",
    "DiffRecord",
    "LineKind",
    "PreviewResult",
    "PreviewStatus",
    "PreviewUnit",
    "apply_patch",
    "apply_to_selected",
    "classify_line",
    "lookup_key",
    "parse_patch",
    "render",
    "render_text",
    "required_paths",
    "resolve_for_preview",
]
