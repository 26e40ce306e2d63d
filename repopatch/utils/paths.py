# repopatch/utils/paths.py
import re
from typing import Iterable, List, Optional

_SEP_RE = re.compile(r"[\\/]+")


def split_path(path: str) -> List[str]:
    """Split on either separator, discarding empty segments from leading/trailing/double slashes."""
    return [part for part in _SEP_RE.split(path or "") if part]


def normalize_path(path: str) -> str:
    """Forward-slash relative form of `path`: no empty or '.' segments."""
    return "/".join(part for part in split_path(path) if part != ".")


def join_root(root: str, relative: str) -> str:
    """
    Join a source root with a relative path the way the file service expects.

    A leading slash on the root is preserved; everything else is collapsed to
    single forward slashes. ``join_root("/srv/app/", "src//main.py")`` gives
    ``"/srv/app/src/main.py"``.
    """
    parts = [p for p in split_path(root) + split_path(relative) if p != "."]
    joined = "/".join(parts)
    if root.startswith(("/", "\\")):
        joined = "/" + joined
    return joined


def strip_diff_prefix(path: Optional[str], prefix: str) -> Optional[str]:
    """Drop a conventional 'a/' or 'b/' marker from a diff file name."""
    if path and path.startswith(prefix):
        return path[len(prefix):]
    return path


def strip_base_folder(path: str, base: str) -> str:
    """Return `path` relative to `base` when it lives under it, else `path` unchanged."""
    if base and path.startswith(base + "/"):
        return path[len(base) + 1:]
    return path


def common_root_folder(paths: Iterable[str]) -> Optional[str]:
    """
    Name of the single top-level folder every path sits under, if any.

    Paths with only one segment (files at the top level) mean there is no
    shared folder.
    """
    root: Optional[str] = None
    seen = False
    for path in paths:
        parts = split_path(path)
        if len(parts) < 2:
            return None
        if root is None:
            root = parts[0]
        elif parts[0] != root:
            return None
        seen = True
    return root if seen else None


def display_name_for(path: str, fallback: str) -> str:
    """Last segment of a path, or `fallback` when the path has none."""
    parts = [p for p in split_path(path) if p != "."]
    return parts[-1] if parts else fallback
