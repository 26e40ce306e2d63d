from typing import Optional

import pathspec

# Only text-like files are ingested from uploads; everything else is skipped.
DEFAULT_TEXT_PATTERNS = (
    "dockerfile*",
    ".txt", ".md", ".json", ".xml", ".html", ".css", ".js", ".py", ".java", ".c",
    ".cpp", ".h", ".hpp", ".sh", ".bat", ".yml", ".yaml", ".ini", ".cfg", ".conf",
    ".log", ".csv", ".ts", ".jsx", ".tsx", ".php", ".rb", ".go", ".rs", ".swift",
    ".kt", ".kts", ".scala", ".pl", ".pm", ".r", ".sql", ".dart", ".lua", ".gitignore",
    ".patch", ".diff",
)


def _to_gitwildmatch(pattern: str) -> str:
    # ".py" means "ends with .py"; ".gitignore" also matches the bare dotfile.
    if pattern.startswith("."):
        return "*" + pattern
    return pattern


def compile_whitelist(patterns=DEFAULT_TEXT_PATTERNS) -> pathspec.PathSpec:
    lines = [_to_gitwildmatch(p.lower()) for p in patterns]
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


_DEFAULT_SPEC = compile_whitelist()


def is_text_file(file_name: str, spec: Optional[pathspec.PathSpec] = None) -> bool:
    """
    True if `file_name` looks like a text file according to the whitelist.
    Matching is case-insensitive and uses only the base name, so full paths work.
    """
    base_name = file_name.replace("\\", "/").rsplit("/", 1)[-1].lower()
    if not base_name:
        return False
    return (spec or _DEFAULT_SPEC).match_file(base_name)
