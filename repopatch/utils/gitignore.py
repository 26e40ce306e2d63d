# repopatch/utils/gitignore.py
import os
import posixpath
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pathspec

DEFAULT_IGNORES: List[str] = [".git/", "__MACOSX/"]


@dataclass(frozen=True)
class IgnoreRules:
    """
    Ignore patterns for one folder being ingested.

    `prefix` is the ingested folder's POSIX path relative to the directory of
    the .gitignore the patterns came from; walk-relative paths are re-anchored
    onto it before matching so parent-level patterns like `/pkg/build/` apply.
    """

    spec: pathspec.PathSpec
    gitignore: Optional[str] = None
    prefix: str = ""

    def ignores(self, relative_path: str, is_dir: bool = False) -> bool:
        """Match a path relative to the ingested folder; directories get a trailing '/'."""
        probe = relative_path.replace(os.sep, "/")
        if self.prefix:
            probe = posixpath.join(self.prefix, probe)
        return self.spec.match_file(probe + ("/" if is_dir else ""))


def _nearest_gitignore(folder: str) -> Tuple[Optional[str], List[str]]:
    cur = folder
    while True:
        gi = os.path.join(cur, ".gitignore")
        try:
            with open(gi, "r", encoding="utf-8", errors="ignore") as f:
                return gi, f.read().splitlines()
        except FileNotFoundError:
            pass
        except OSError:
            # Unreadable; keep walking upward
            pass
        parent = os.path.dirname(cur)
        if parent == cur:
            return None, []
        cur = parent


def load_ignore_rules(folder: str) -> IgnoreRules:
    """
    Rules for a folder about to be ingested: the nearest .gitignore found by
    walking upward from `folder`, plus the default ignores. An unreadable or
    missing .gitignore (or one pathspec rejects) still yields the defaults.
    """
    base = os.path.abspath(folder or ".")
    if os.path.isfile(base):
        base = os.path.dirname(base)

    gitignore, lines = _nearest_gitignore(base)
    prefix = ""
    if gitignore is not None:
        prefix = os.path.relpath(base, os.path.dirname(gitignore)).replace(os.sep, "/")
        prefix = "" if prefix == "." else prefix

    try:
        spec = pathspec.PathSpec.from_lines("gitwildmatch", DEFAULT_IGNORES + lines)
    except Exception:
        return IgnoreRules(pathspec.PathSpec.from_lines("gitwildmatch", DEFAULT_IGNORES))
    return IgnoreRules(spec, gitignore=gitignore, prefix=prefix)
