from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

FILE = "file"
FOLDER = "folder"


@dataclass
class TreeNode:
    """One entry of a source tree. Folders own their children by name."""

    type: str  # "file" or "folder"
    path: str
    children: Optional[Dict[str, "TreeNode"]] = None

    @property
    def is_file(self) -> bool:
        return self.type == FILE

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER


Tree = Dict[str, TreeNode]


class ConflictKind(str, Enum):
    # Terminal segment already exists as a folder; the file was not inserted.
    FILE_OVER_FOLDER = "file_over_folder"
    # Terminal segment already exists as a file; the folder was not inserted.
    FOLDER_OVER_FILE = "folder_over_file"
    # An intermediate segment is a file; the rest of the path was abandoned.
    BLOCKED_BY_FILE = "blocked_by_file"


@dataclass(frozen=True)
class TreeConflict:
    """Returned by ``insert_path`` when an entry could not be placed."""

    kind: ConflictKind
    path: str
    at: str  # the already-present node's path

    def describe(self) -> str:
        if self.kind is ConflictKind.BLOCKED_BY_FILE:
            return (
                f"Path conflict: a file exists at '{self.at}' where a directory is needed "
                f"for '{self.path}'. Skipping subtree."
            )
        if self.kind is ConflictKind.FILE_OVER_FOLDER:
            return f"File path conflicts with existing folder structure: {self.path}"
        return f"Folder path conflicts with existing file: {self.path}"
