import itertools

from repopatch.models.tree import FILE, FOLDER, ConflictKind
from repopatch.utils.tree import (
    build_tree,
    file_paths,
    insert_path,
    render_tree_string,
    tree_from_json,
    tree_to_json,
)


def test_insert_creates_intermediate_folders():
    tree = {}
    assert insert_path(tree, "src/pkg/app.py") is None

    src = tree["src"]
    assert src.type == FOLDER and src.path == "src"
    pkg = src.children["pkg"]
    assert pkg.path == "src/pkg"
    leaf = pkg.children["app.py"]
    assert leaf.type == FILE
    assert leaf.path == "src/pkg/app.py"
    assert leaf.children is None


def test_insert_discards_empty_segments():
    tree = {}
    insert_path(tree, "/src//main.py/")
    assert list(tree) == ["src"]
    assert tree["src"].children["main.py"].path == "src/main.py"


def test_insert_merges_into_existing_folder():
    tree = {}
    insert_path(tree, "src/a.py")
    insert_path(tree, "src/b.py")
    assert sorted(tree["src"].children) == ["a.py", "b.py"]


def test_file_over_existing_folder_is_rejected():
    tree = {}
    insert_path(tree, "docs/readme.md")
    conflict = insert_path(tree, "docs")

    assert conflict is not None
    assert conflict.kind is ConflictKind.FILE_OVER_FOLDER
    assert conflict.path == "docs"
    # Folder left untouched.
    assert tree["docs"].type == FOLDER
    assert "readme.md" in tree["docs"].children


def test_intermediate_file_blocks_subtree():
    tree = {}
    insert_path(tree, "notes")
    conflict = insert_path(tree, "notes/today.txt")

    assert conflict.kind is ConflictKind.BLOCKED_BY_FILE
    assert conflict.at == "notes"
    assert tree["notes"].type == FILE
    assert "Skipping subtree" in conflict.describe()


def test_folder_over_file_is_reported():
    tree = {}
    insert_path(tree, "a.txt")
    conflict = insert_path(tree, "a.txt", is_file=False)
    assert conflict.kind is ConflictKind.FOLDER_OVER_FILE
    assert tree["a.txt"].type == FILE


def test_empty_path_is_a_noop():
    tree = {}
    assert insert_path(tree, "") is None
    assert insert_path(tree, "///") is None
    assert tree == {}


def test_insertion_order_does_not_change_shape():
    paths = ["src/a.py", "src/lib/b.py", "README.md", "src/lib/c/d.py"]
    expected = tree_to_json(build_tree(paths))
    for perm in itertools.permutations(paths):
        tree = {}
        for p in perm:
            assert insert_path(tree, p) is None
        assert tree_to_json(tree) == expected


def test_conflicts_are_detected_in_any_order():
    paths = ["lib", "lib/util.py", "app.py"]
    for perm in itertools.permutations(paths):
        conflicts = []
        tree = {}
        for p in perm:
            c = insert_path(tree, p)
            if c is not None:
                conflicts.append(c)
        assert len(conflicts) == 1


def test_build_tree_collects_conflicts_sorted():
    conflicts = []
    tree = build_tree(["x/y.txt", "x"], conflicts)
    # "x" sorts first, so the nested file is the one rejected.
    assert tree["x"].type == FILE
    assert [c.kind for c in conflicts] == [ConflictKind.BLOCKED_BY_FILE]


def test_file_paths_lists_every_file():
    tree = build_tree(["b.txt", "src/a.py", "src/lib/c.py"])
    assert sorted(file_paths(tree)) == ["b.txt", "src/a.py", "src/lib/c.py"]
    assert file_paths(None) == []


def test_tree_from_json_drops_unknown_nodes():
    data = {
        "src": {
            "type": "folder",
            "path": "src",
            "children": {
                "main.rs": {"type": "file", "path": "src/main.rs", "children": None},
                "weird": {"type": "symlink", "path": "src/weird"},
            },
        },
        "junk": "not a node",
    }
    tree = tree_from_json(data)
    assert list(tree) == ["src"]
    assert list(tree["src"].children) == ["main.rs"]
    assert tree_from_json(None) == {}


def test_tree_json_round_trip_keeps_paths():
    tree = build_tree(["src/a.py", "top.txt"])
    assert tree_to_json(tree_from_json(tree_to_json(tree))) == tree_to_json(tree)


def test_render_tree_string_folders_first():
    tree = build_tree(["z.txt", "src/main.py", "a.txt"])
    lines = render_tree_string(tree).splitlines()
    assert lines == [
        "├── src",
        "│   └── main.py",
        "├── a.txt",
        "└── z.txt",
    ]
