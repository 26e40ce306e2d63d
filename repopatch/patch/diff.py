# repopatch/patch/diff.py
"""
Per-file diff records produced from unified-diff text.

Parsing itself is delegated to `unidiff`; this module only reshapes its
output into plain records so the analyzer never depends on parser types.
File names are kept exactly as written in the patch (``a/`` and ``b/``
markers included); ``/dev/null`` marks a side that does not exist.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from ..errors import PatchParseError

DEV_NULL = "/dev/null"


@dataclass
class DiffHunk:
    header: str
    # Raw lines, each still carrying its leading marker character.
    lines: List[str] = field(default_factory=list)


@dataclass
class DiffRecord:
    old_path: Optional[str]
    new_path: Optional[str]
    hunks: List[DiffHunk] = field(default_factory=list)

    @property
    def is_creation(self) -> bool:
        return self.old_path == DEV_NULL

    @property
    def is_deletion(self) -> bool:
        return self.new_path == DEV_NULL


def _hunk_header(hunk) -> str:
    header = f"@@ -{hunk.source_start},{hunk.source_length} +{hunk.target_start},{hunk.target_length} @@"
    if hunk.section_header:
        header += f" {hunk.section_header}"
    return header


def parse_patch(patch_text: str) -> List[DiffRecord]:
    """
    Parse (possibly multi-file) unified-diff text into DiffRecords.

    Raises:
        PatchParseError: if the text is not a well-formed unified diff.
    """
    if not patch_text or not patch_text.strip():
        return []
    try:
        patch_set = PatchSet(patch_text)
    except UnidiffParseError as e:
        raise PatchParseError(f"Invalid patch format: {e}") from e

    records: List[DiffRecord] = []
    for patched_file in patch_set:
        hunks = []
        for hunk in patched_file:
            lines = [line.line_type + line.value.rstrip("\r\n") for line in hunk]
            hunks.append(DiffHunk(header=_hunk_header(hunk), lines=lines))
        records.append(
            DiffRecord(
                old_path=patched_file.source_file,
                new_path=patched_file.target_file,
                hunks=hunks,
            )
        )
    return records
