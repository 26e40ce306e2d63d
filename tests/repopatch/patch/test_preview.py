import asyncio

import httpx
import pytest

from repopatch.core import generate_preview
from repopatch.errors import PatchParseError
from repopatch.models.resolution import ResolvedFile
from repopatch.models.source import LocalSource, RemoteSource
from repopatch.patch.analyze import (
    Annotation,
    LineKind,
    classify_line,
    lookup_key,
    required_paths,
    resolve_for_preview,
)
from repopatch.patch.diff import DEV_NULL, DiffHunk, DiffRecord, parse_patch
from repopatch.patch.render import PreviewStatus, render, render_text
from repopatch.resolve import ContentResolver
from repopatch.sources.registry import SourceRegistry
from repopatch.store import KEY_FAILED_FILES, ContentStore, SettingsStore
from repopatch.transport import RemoteClient

MODIFY = """\
--- a/foo.txt
+++ b/foo.txt
@@ -1,2 +1,2 @@
 keep
-old
+new
"""

CREATE = """\
--- /dev/null
+++ b/bar.txt
@@ -0,0 +1,2 @@
+hello
+world
"""

DELETE = """\
--- a/gone.txt
+++ /dev/null
@@ -1 +0,0 @@
-bye
"""


def test_parse_patch_keeps_markers_and_sentinel():
    records = parse_patch(MODIFY + CREATE)
    assert [(r.old_path, r.new_path) for r in records] == [
        ("a/foo.txt", "b/foo.txt"),
        (DEV_NULL, "b/bar.txt"),
    ]
    assert records[1].is_creation
    assert records[0].hunks[0].lines == [" keep", "-old", "+new"]
    assert records[0].hunks[0].header.startswith("@@ -1,2 +1,2 @@")


def test_parse_patch_empty_and_garbage():
    assert parse_patch("") == []
    assert parse_patch("   \n") == []
    assert parse_patch("just some prose\n") == []


def test_parse_patch_truncated_hunk_raises():
    with pytest.raises(PatchParseError):
        parse_patch("--- a/x.txt\n+++ b/x.txt\n@@ -1,3 +1,3 @@\n-old\n+new\n")


def test_required_paths_strip_prefix_and_skip_creations():
    records = parse_patch(MODIFY + CREATE + DELETE)
    assert required_paths(records) == {"foo.txt", "gone.txt"}
    assert [lookup_key(r) for r in records] == ["foo.txt", "bar.txt", "gone.txt"]


@pytest.mark.parametrize(
    "line, kind",
    [
        ("+x", LineKind.ADDED),
        ("-x", LineKind.REMOVED),
        (" x", LineKind.CONTEXT),
        ("\\ No newline at end of file", LineKind.NO_NEWLINE),
        ("?odd", LineKind.CONTEXT),
        ("", LineKind.CONTEXT),
    ],
)
def test_classify_line(line, kind):
    assert classify_line(line) is kind


def test_new_file_is_not_an_error_even_when_not_found():
    records = parse_patch(CREATE)
    resolved = {"bar.txt": ResolvedFile.not_found("bar.txt", "File not found by server")}
    (unit,) = resolve_for_preview(records, resolved)
    assert unit.annotation is Annotation.NEW_FILE
    assert not unit.is_error

    result = render([unit])
    assert result.status is PreviewStatus.SUCCESS
    assert result.error_files == []


def test_deletion_and_missing_original_classification():
    records = parse_patch(DELETE + MODIFY)
    deletion, modify = resolve_for_preview(records, {})
    assert deletion.annotation is Annotation.DELETION
    assert modify.annotation is Annotation.WARNING
    assert modify.message == "Original not found - assuming empty"


def test_resolution_error_marks_preview_error():
    records = parse_patch(MODIFY)
    (unit,) = resolve_for_preview(records, {"foo.txt": ResolvedFile.failed("foo.txt", "permission denied")})
    assert unit.is_error
    result = render([unit], {"foo.txt"})
    assert result.status is PreviewStatus.ERRORS
    assert result.message == "Preview generated with errors in 1 file(s): foo.txt"
    assert "File: foo.txt (Error: permission denied)" in render_text(result)


def test_fetch_failures_without_preview_errors():
    records = parse_patch(MODIFY)
    (unit,) = resolve_for_preview(records, {"foo.txt": ResolvedFile.ok("foo.txt", "keep\nold\n")})
    result = render([unit], {"other.txt"})
    assert result.status is PreviewStatus.FETCH_FAILURES
    assert result.failures == ["other.txt"]
    assert result.is_error


def test_render_text_format():
    records = [
        DiffRecord("a/n.txt", "b/n.txt", [DiffHunk("", ["-a", "\\ No newline at end of file", "+b", " c"])]),
        DiffRecord("a/empty.txt", "b/empty.txt", []),
    ]
    units = resolve_for_preview(records, {
        "n.txt": ResolvedFile.ok("n.txt", "a"),
        "empty.txt": ResolvedFile.ok("empty.txt", ""),
    })
    text = render_text(render(units))
    assert text.splitlines() == [
        "File: n.txt",
        "@@ Hunk 1 @@",
        "- a",
        "\\ No newline at end of file",
        "+ b",
        "  c",
        "",
        "File: empty.txt",
        "  (No content changes in patch)",
    ]


# ----- full pipeline -----


def local_setup(tmp_path, files=None):
    db = tmp_path / "state.sqlite3"
    registry = SourceRegistry(SettingsStore(db))
    store = ContentStore(db)
    client = RemoteClient("/", client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))))
    resolver = ContentResolver(registry, client, store)

    async def prepare():
        await registry.add_source(LocalSource(id=1, display_name="up"))
        await store.put_many(1, (files or {}).items())

    asyncio.run(prepare())
    return registry, resolver


def test_pipeline_renders_removed_and_added_lines(tmp_path):
    registry, resolver = local_setup(tmp_path, {"foo.txt": "keep\nold\n"})
    result = asyncio.run(generate_preview(registry, resolver, MODIFY))

    assert result.status is PreviewStatus.SUCCESS
    assert result.message == "Preview generated successfully."
    (block,) = result.body
    assert block.path == "foo.txt"
    lines = [(line.kind, line.text) for line in block.hunks[0].lines]
    assert (LineKind.REMOVED, "old") in lines
    assert (LineKind.ADDED, "new") in lines


def test_pipeline_creation_alongside_modification(tmp_path):
    registry, resolver = local_setup(tmp_path, {"foo.txt": "keep\nold\n"})
    result = asyncio.run(generate_preview(registry, resolver, MODIFY + CREATE))
    assert result.status is PreviewStatus.SUCCESS
    assert [b.annotation for b in result.body] == [None, Annotation.NEW_FILE]
    assert "File: bar.txt (New File)" in result.text


@pytest.mark.parametrize(
    "text, status, message",
    [
        ("", PreviewStatus.EMPTY, "Paste patch content to see preview."),
        ("hello there\n", PreviewStatus.INVALID, "Invalid patch format"),
        ("--- a/foo.txt\n+++ b/foo.txt\n@@ -1,3 +1,3 @@\n-old\n+new\n", PreviewStatus.INVALID, "Invalid patch format"),
        (CREATE, PreviewStatus.EMPTY, "Patch seems empty"),
    ],
)
def test_pipeline_short_circuits(tmp_path, text, status, message):
    registry, resolver = local_setup(tmp_path)
    result = asyncio.run(generate_preview(registry, resolver, text))
    assert result.status is status
    assert result.message.startswith(message)
    assert result.body == []


def test_pipeline_requires_healthy_selection(tmp_path):
    registry, resolver = local_setup(tmp_path)

    async def main():
        await registry.record_error(1, "Directory not found: /x")
        errored = await generate_preview(registry, resolver, MODIFY)
        await registry.remove_source(1)
        unselected = await generate_preview(registry, resolver, MODIFY)
        return errored, unselected

    errored, unselected = asyncio.run(main())
    assert errored.status is PreviewStatus.INVALID
    assert errored.message == "Cannot preview: Source has error - Directory not found: /x"
    assert unselected.status is PreviewStatus.INVALID
    assert unselected.message == "Select a project source first."


def test_pipeline_persists_failures(tmp_path):
    def respond(request):
        return httpx.Response(200, json={"success": True, "files": {
            "/srv/foo.txt": {"success": False, "error": "permission denied"}}})

    db = tmp_path / "state.sqlite3"
    settings = SettingsStore(db)
    registry = SourceRegistry(settings)
    client = RemoteClient("/", client=httpx.AsyncClient(transport=httpx.MockTransport(respond)))
    resolver = ContentResolver(registry, client, ContentStore(db))

    async def main():
        await registry.add_source(RemoteSource(id=1, root_path="/srv", display_name="srv"))
        result = await generate_preview(registry, resolver, MODIFY)
        return result, await settings.get_value(KEY_FAILED_FILES)

    result, persisted = asyncio.run(main())
    assert result.status is PreviewStatus.ERRORS
    assert result.failures == ["foo.txt"]
    assert persisted == ["foo.txt"]
