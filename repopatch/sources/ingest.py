"""
Turn uploaded archives and folders into (tree, files) pairs.

Both flows share the same tree builder; they only differ in how entries are
collected and how the path prefix (archive root folder, webkit base folder)
is removed. Only whitelisted text files are kept.
"""
from __future__ import annotations

import io
import os
import re
import zipfile
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple, Union

from .._logging import resolve_logger
from ..errors import IngestError
from ..models.tree import Tree, TreeConflict
from ..utils.gitignore import load_ignore_rules
from ..utils.paths import common_root_folder, normalize_path, split_path, strip_base_folder
from ..utils.text import is_text_file
from ..utils.tree import insert_path

MACOS_METADATA_PREFIX = "__MACOSX/"
_ZIP_SUFFIX_RE = re.compile(r"\.zip$", re.IGNORECASE)

ArchiveInput = Union[bytes, str, "os.PathLike[str]", BinaryIO]


@dataclass
class Ingested:
    """Everything a local source needs after ingestion."""

    tree: Tree = field(default_factory=dict)
    files: Dict[str, str] = field(default_factory=dict)
    conflicts: List[TreeConflict] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    display_name: str = ""


def _add_files(result: Ingested, entries: Iterable[Tuple[str, str]], log) -> None:
    for path, content in sorted(entries):
        conflict = insert_path(result.tree, path, True)
        if conflict is not None:
            log.warning(conflict.describe())
            result.conflicts.append(conflict)
            continue
        result.files[path] = content


def archive_display_name(name: Optional[str], fallback: str = "archive") -> str:
    base = os.path.basename(name or "")
    return _ZIP_SUFFIX_RE.sub("", base) or fallback


def ingest_archive(
    archive: ArchiveInput,
    *,
    name: Optional[str] = None,
    strip_root: bool = True,
    logger=None,
    log: bool = False,
) -> Ingested:
    """
    Read a zip archive into a tree plus a path -> text mapping.

    Entries are processed in name order. macOS metadata, directory entries and
    non-text files are skipped; entries that cannot be read or are not valid
    UTF-8 are recorded in `skipped`. With `strip_root`, a single top-level
    folder shared by every kept entry is removed from the paths.

    Raises:
        IngestError: if the input is not a readable zip archive.
    """
    log = resolve_logger(logger=logger, enabled=log, name=__name__)
    if name is None and isinstance(archive, (str, os.PathLike)):
        name = os.fspath(archive)
    source = io.BytesIO(archive) if isinstance(archive, (bytes, bytearray)) else archive

    result = Ingested(display_name=archive_display_name(name))
    decoded: List[Tuple[str, str]] = []
    try:
        with zipfile.ZipFile(source) as zf:
            for info in sorted(zf.infolist(), key=lambda i: i.filename):
                file_path = info.filename.replace("\\", "/")
                if file_path.startswith(MACOS_METADATA_PREFIX):
                    continue
                if info.is_dir() or file_path.endswith("/"):
                    continue
                if not is_text_file(file_path):
                    continue
                try:
                    content = zf.read(info).decode("utf-8")
                except Exception as e:
                    log.warning(f"Could not read content as text for {file_path}: {e}")
                    result.skipped.append(file_path)
                    continue
                decoded.append((normalize_path(file_path), content))
    except (zipfile.BadZipFile, OSError) as e:
        raise IngestError(f"Failed to process zip file: {e}") from e

    root = common_root_folder(p for p, _ in decoded) if strip_root else None
    if root:
        log.info(f"Stripping shared archive root folder '{root}/'")
        decoded = [(strip_base_folder(p, root), c) for p, c in decoded]

    _add_files(result, decoded, log)
    log.info(f"Read {len(result.files)} text file(s) from archive '{result.display_name}'.")
    return result


def ingest_folder_entries(
    entries: Iterable[Tuple[str, Optional[str]]],
    *,
    fallback_name: str = "",
    logger=None,
    log: bool = False,
) -> Ingested:
    """
    Build a tree from browser-style folder entries.

    Each entry is ``(relative_path, content)`` where the path starts with the
    selected folder's own name (``"project/src/app.py"``). The base folder is
    taken from the first entry and stripped from every path under it; entries
    whose content is None could not be read and are skipped.
    """
    log = resolve_logger(logger=logger, enabled=log, name=__name__)
    entries = list(entries)
    result = Ingested(display_name=fallback_name)
    if not entries:
        return result

    first_parts = split_path(entries[0][0])
    base_folder = first_parts[0] if len(first_parts) > 1 else ""
    result.display_name = base_folder or fallback_name

    collected: List[Tuple[str, str]] = []
    for raw_path, content in entries:
        full_path = normalize_path(raw_path)
        if not is_text_file(full_path):
            continue
        if base_folder and not full_path.startswith(base_folder + "/"):
            log.warning(
                f"File path {full_path} does not start with detected base folder {base_folder}. Using full path as key."
            )
        relative_path = strip_base_folder(full_path, base_folder)
        if not relative_path:
            log.warning(f"Skipping file with empty relative path: {raw_path}")
            continue
        if content is None:
            log.warning(f"Could not read content for {relative_path}")
            result.skipped.append(relative_path)
            continue
        collected.append((relative_path, content))

    _add_files(result, collected, log)
    log.info(f"Read {len(result.files)} text file(s) from folder '{result.display_name}'.")
    return result


def collect_folder(path: Union[str, "os.PathLike[str]"], *, logger=None, log: bool = False) -> List[Tuple[str, Optional[str]]]:
    """
    Walk an on-disk folder and return browser-style entries rooted at its name.
    The nearest .gitignore is honored; unreadable or non-UTF-8 files yield None content.

    Raises:
        IngestError: if `path` is not a directory.
    """
    log = resolve_logger(logger=logger, enabled=log, name=__name__)
    base = os.path.abspath(os.fspath(path))
    if not os.path.isdir(base):
        raise IngestError(f"Not a directory: {base}")
    base_name = os.path.basename(base.rstrip(os.sep)) or "folder"
    rules = load_ignore_rules(base)
    if rules.gitignore:
        log.debug(f"Using {rules.gitignore} for {base}")

    entries: List[Tuple[str, Optional[str]]] = []
    for root, dirs, files in os.walk(base):
        rel_root = os.path.relpath(root, base).replace(os.sep, "/")
        rel_root = "" if rel_root == "." else rel_root
        dirs[:] = sorted(
            d for d in dirs
            if not rules.ignores(f"{rel_root}/{d}" if rel_root else d, is_dir=True)
        )
        for name in sorted(files):
            rel = f"{rel_root}/{name}" if rel_root else name
            if rules.ignores(rel) or not is_text_file(name):
                continue
            try:
                with open(os.path.join(root, name), "r", encoding="utf-8") as f:
                    content: Optional[str] = f.read()
            except (OSError, UnicodeDecodeError) as e:
                log.warning(f"Could not read {rel}: {e}")
                content = None
            entries.append((f"{base_name}/{rel}", content))
    return entries


def ingest_folder(path: Union[str, "os.PathLike[str]"], *, logger=None, log: bool = False) -> Ingested:
    entries = collect_folder(path, logger=logger, log=log)
    fallback = os.path.basename(os.path.abspath(os.fspath(path)))
    return ingest_folder_entries(entries, fallback_name=fallback, logger=logger, log=log)
