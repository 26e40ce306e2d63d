# repopatch/utils/__init__.py
from .gitignore import IgnoreRules, load_ignore_rules
from .paths import join_root, normalize_path, strip_diff_prefix
from .text import is_text_file
from .tree import build_tree, file_paths, insert_path, render_tree_string

__all__ = [
    "IgnoreRules",
    "build_tree",
    "file_paths",
    "insert_path",
    "is_text_file",
    "join_root",
    "load_ignore_rules",
    "normalize_path",
    "render_tree_string",
    "strip_diff_prefix",
]
