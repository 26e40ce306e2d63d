# repopatch/utils/tree.py
from typing import Any, Dict, List, Optional

from ..models.tree import FILE, FOLDER, ConflictKind, Tree, TreeConflict, TreeNode
from .paths import split_path


def insert_path(tree: Tree, relative_path: str, is_file: bool = True) -> Optional[TreeConflict]:
    """
    Insert one entry into a mutable tree root, creating intermediate folders.

    The final segment becomes a file node carrying the full normalized path
    (or a folder node when `is_file` is False). Existing folders are merged
    into, never replaced. Returns a TreeConflict when the entry could not be
    placed, else None:

      - terminal segment already a folder -> file skipped
      - intermediate segment already a file -> remaining subtree abandoned
    """
    parts = split_path(relative_path)
    if not parts:
        return None
    full_path = "/".join(parts)
    current = tree

    for i, part in enumerate(parts[:-1]):
        node_path = "/".join(parts[: i + 1])
        node = current.get(part)
        if node is None:
            node = TreeNode(type=FOLDER, path=node_path, children={})
            current[part] = node
        elif node.type != FOLDER:
            return TreeConflict(ConflictKind.BLOCKED_BY_FILE, full_path, node.path)
        if node.children is None:
            node.children = {}
        current = node.children

    last = parts[-1]
    existing = current.get(last)
    if is_file:
        if existing is not None and existing.type == FOLDER:
            return TreeConflict(ConflictKind.FILE_OVER_FOLDER, full_path, existing.path)
        current[last] = TreeNode(type=FILE, path=full_path)
        return None

    if existing is None:
        current[last] = TreeNode(type=FOLDER, path=full_path, children={})
    elif existing.type != FOLDER:
        return TreeConflict(ConflictKind.FOLDER_OVER_FILE, full_path, existing.path)
    return None


def build_tree(paths, conflicts: Optional[List[TreeConflict]] = None) -> Tree:
    """Insert every path (sorted, for a deterministic shape) into a fresh tree."""
    tree: Tree = {}
    for path in sorted(paths):
        conflict = insert_path(tree, path, True)
        if conflict is not None and conflicts is not None:
            conflicts.append(conflict)
    return tree


def file_paths(tree: Optional[Tree], current_path: str = "") -> List[str]:
    """All file paths in a tree, depth-first, preferring each node's own path."""
    paths: List[str] = []
    if not tree:
        return paths
    for name, node in tree.items():
        node_path = node.path or (f"{current_path}/{name}" if current_path else name)
        if node.type == FILE:
            paths.append(node_path)
        elif node.type == FOLDER and node.children:
            paths.extend(file_paths(node.children, node_path))
    return paths


def tree_from_json(data: Any) -> Tree:
    """
    Build a Tree from the service's JSON shape:
    ``{name: {"type": "file"|"folder", "path": str, "children": {...}|null}}``.
    Unknown node types are dropped.
    """
    tree: Tree = {}
    if not isinstance(data, dict):
        return tree
    for name, raw in data.items():
        if not isinstance(raw, dict):
            continue
        node_type = raw.get("type")
        path = raw.get("path") or name
        if node_type == FILE:
            tree[name] = TreeNode(type=FILE, path=path)
        elif node_type == FOLDER:
            tree[name] = TreeNode(type=FOLDER, path=path, children=tree_from_json(raw.get("children")))
    return tree


def tree_to_json(tree: Optional[Tree]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, node in (tree or {}).items():
        out[name] = {
            "type": node.type,
            "path": node.path,
            "children": tree_to_json(node.children) if node.type == FOLDER else None,
        }
    return out


def render_tree_string(tree: Optional[Tree]) -> str:
    """Generates a string representation of a source tree, folders first."""
    tree_lines: List[str] = []

    def build_string_tree(current: Tree, prefix: str = "") -> None:
        dirs = sorted(name for name, node in current.items() if node.type == FOLDER)
        files = sorted(name for name, node in current.items() if node.type != FOLDER)
        valid_items = dirs + files

        for i, item in enumerate(valid_items):
            is_last = i == len(valid_items) - 1
            connector = "└── " if is_last else "├── "
            tree_lines.append(f"{prefix}{connector}{item}")

            node = current[item]
            if node.type == FOLDER and node.children:
                new_prefix = prefix + ("    " if is_last else "│   ")
                build_string_tree(node.children, new_prefix)

    build_string_tree(tree or {})
    return "\n".join(tree_lines)
