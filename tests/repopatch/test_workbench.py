import asyncio
import io
import json
import struct
import zipfile

import httpx

from repopatch.config import Settings
from repopatch.errors import StoreError
from repopatch.models.source import LocalSource, RemoteSource
from repopatch.patch.apply import ApplyFailure
from repopatch.patch.render import PreviewStatus
from repopatch.workbench import Workbench

PATCH = "--- a/src/app.py\n+++ b/src/app.py\n@@ -1 +1 @@\n-print('old')\n+print('new')\n"

TREE = {"src": {"type": "folder", "path": "src", "children": {
    "app.py": {"type": "file", "path": "src/app.py", "children": None}}}}


class FakeService:
    """In-memory stand-in for the remote file service."""

    def __init__(self):
        self.requests = []
        self.files = {"/srv/proj/src/app.py": "print('old')\n"}

    def __call__(self, request):
        self.requests.append(request)
        path = request.url.path
        if path == "/api/connect":
            return httpx.Response(200, json={"success": True})
        if path == "/api/directory":
            if request.url.params["path"].startswith("/srv/proj"):
                return httpx.Response(200, json={"success": True, "root": "/srv/proj", "tree": TREE})
            return httpx.Response(404, json={"success": False, "error": "missing"})
        if path == "/api/files":
            paths = json.loads(request.content)["paths"]
            files = {
                p: {"success": True, "content": self.files[p]} if p in self.files
                else {"success": False, "error": "File not found"}
                for p in paths
            }
            return httpx.Response(200, json={"success": True, "files": files})
        if path == "/api/apply_patch":
            return httpx.Response(200, json={"success": True, "appliedFiles": ["src/app.py"]})
        return httpx.Response(404)

    def count(self, route):
        return sum(1 for r in self.requests if r.url.path == route)


def make_workbench(tmp_path, service=None, **overrides):
    settings = Settings(state_path=tmp_path / "state.sqlite3", origin="http://svc.test", **overrides)
    http = httpx.AsyncClient(transport=httpx.MockTransport(service or FakeService()))
    return Workbench(settings, http_client=http)


def zip_bytes(entries):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, text in entries.items():
            zf.writestr(name, text)
    return buf.getvalue()


def test_remote_source_preview_and_apply(tmp_path):
    service = FakeService()
    wb = make_workbench(tmp_path, service)

    async def main():
        async with wb:
            connected = await wb.connect("/")
            source = await wb.add_remote("  /srv/proj/./  ")
            preview = await wb.preview(PATCH)
            applied = await wb.apply(PATCH)
            return connected, source, preview, applied

    connected, source, preview, applied = asyncio.run(main())
    assert connected.success
    assert isinstance(source, RemoteSource)
    assert source.root_path == "/srv/proj"
    assert source.last_error is None
    assert "src" in source.tree
    assert preview.status is PreviewStatus.SUCCESS
    assert wb.latest_preview is preview
    assert applied.success
    assert service.count("/api/directory") == 1


def test_remote_refresh_failure_blocks_preview(tmp_path):
    wb = make_workbench(tmp_path)

    async def main():
        source = await wb.add_remote("/elsewhere")
        preview = await wb.preview(PATCH)
        return source, preview

    source, preview = asyncio.run(main())
    assert source.last_error == "Directory not found: /elsewhere"
    assert source.tree == {}
    assert preview.status is PreviewStatus.INVALID


def test_archive_source_preview_and_apply_rejected(tmp_path):
    service = FakeService()
    wb = make_workbench(tmp_path, service)
    data = zip_bytes({"proj/src/app.py": "print('old')\n", "proj/README.md": "# hi\n"})

    async def main():
        source = await wb.add_archive(data, name="proj.zip")
        stored = await wb.content_store.paths(source.id)
        preview = await wb.preview(PATCH)
        applied = await wb.apply(PATCH)
        return source, stored, preview, applied

    source, stored, preview, applied = asyncio.run(main())
    assert isinstance(source, LocalSource)
    assert source.display_name == "proj"
    assert stored == ["README.md", "src/app.py"]
    assert preview.status is PreviewStatus.SUCCESS
    assert applied.reason is ApplyFailure.LOCAL_UNSUPPORTED
    assert not wb.can_apply(PATCH)
    # Local sources never talk to the service.
    assert service.requests == []


def test_bad_archive_records_error(tmp_path):
    wb = make_workbench(tmp_path)
    source = asyncio.run(wb.add_archive(b"nope", name="broken.zip"))
    assert source.last_error.startswith("Failed to process zip file")
    assert source.tree == {}
    assert wb.registry.selected_id == source.id


def test_corrupt_archive_entry_is_skipped_not_raised(tmp_path):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("proj/a.py", "print('hello')\n" * 50)
        zf.writestr("proj/b.py", "b = 1\n")
    raw = bytearray(buf.getvalue())
    name_len, extra_len = struct.unpack("<HH", raw[26:30])
    for i in range(30 + name_len + extra_len, 38 + name_len + extra_len):
        raw[i] ^= 0xFF
    wb = make_workbench(tmp_path)

    async def main():
        source = await wb.add_archive(bytes(raw), name="proj.zip")
        return source, await wb.content_store.paths(source.id)

    source, stored = asyncio.run(main())
    assert source.last_error is None
    assert stored == ["b.py"]
    assert wb.registry.selected_id == source.id


def test_store_failure_during_ingestion_records_error(tmp_path):
    wb = make_workbench(tmp_path)

    async def failing_put_many(source_id, items):
        raise StoreError("disk full")

    wb.content_store.put_many = failing_put_many

    async def main():
        archived = await wb.add_archive(zip_bytes({"a.py": "a"}), name="a.zip")
        folder = await wb.add_folder_entries([("proj/a.py", "a")])
        return archived, folder

    archived, folder = asyncio.run(main())
    assert archived.last_error == "Failed to process zip file: disk full"
    assert archived.tree == {}
    assert folder.last_error == "Failed to process folder: disk full"
    assert folder.tree == {}
    assert wb.registry.selected_id == folder.id


def test_folder_source_and_removal_clears_content(tmp_path):
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text("print('old')\n")
    wb = make_workbench(tmp_path)

    async def main():
        source = await wb.add_folder(root)
        before = await wb.content_store.paths(source.id)
        await wb.remove_source(source.id)
        after = await wb.content_store.paths(source.id)
        return source, before, after

    source, before, after = asyncio.run(main())
    assert source.display_name == "proj"
    assert before == ["src/app.py"]
    assert after == []
    assert wb.registry.selected_id is None


def test_empty_folder_selection_records_error(tmp_path):
    wb = make_workbench(tmp_path)
    source = asyncio.run(wb.add_folder_entries([]))
    assert source.last_error == "Failed to process folder: no files selected"


def test_state_survives_reload(tmp_path):
    async def first():
        wb = make_workbench(tmp_path)
        await wb.connect("/")
        await wb.add_folder_entries([("proj/a.py", "a")])
        remote = await wb.add_remote("/srv/proj")
        await wb.close()
        return remote.id

    async def second():
        wb = make_workbench(tmp_path)
        await wb.load()
        return wb

    remote_id = asyncio.run(first())
    wb = asyncio.run(second())
    assert wb.registry.selected_id == remote_id
    assert [s.kind.value for s in wb.registry.sources] == ["local", "remote"]
    assert wb.client.endpoint == "/"
    # Trees are not persisted; a manual refresh repopulates them.
    assert asyncio.run(wb.refresh()) is True
    assert "src" in wb.registry.get(remote_id).tree


def test_debounced_preview_runs_last_input_only(tmp_path):
    wb = make_workbench(tmp_path, debounce_seconds=0.05)
    seen = []

    async def main():
        await wb.add_folder_entries([("proj/src/app.py", "print('old')\n")])
        original = wb.preview

        async def tracking(text):
            seen.append(text)
            return await original(text)

        wb.preview = tracking
        wb.schedule_preview("first")
        wb.schedule_preview("second")
        wb.schedule_preview(PATCH)
        return await wb.wait_for_previews()

    result = asyncio.run(main())
    assert seen == [PATCH]
    assert result.status is PreviewStatus.SUCCESS
    assert result.generation == 1


def test_stale_preview_can_be_discarded(tmp_path):
    wb = make_workbench(tmp_path, discard_stale_previews=True)

    async def main():
        await wb.add_folder_entries([("proj/src/app.py", "print('old')\n")])
        release = asyncio.Event()
        original = wb.resolver.resolve_files

        async def slow_first(source_id, paths):
            if not release.is_set():
                release.set()
                await asyncio.sleep(0.05)
            return await original(source_id, paths)

        wb.resolver.resolve_files = slow_first
        slow = asyncio.ensure_future(wb.preview(PATCH))
        await release.wait()
        fast = await wb.preview(PATCH)
        stale = await slow
        return stale, fast

    stale, fast = asyncio.run(main())
    assert (stale.generation, fast.generation) == (1, 2)
    assert wb.latest_preview is fast


def test_stale_preview_published_by_default(tmp_path):
    wb = make_workbench(tmp_path)

    async def main():
        await wb.add_folder_entries([("proj/src/app.py", "print('old')\n")])
        release = asyncio.Event()
        original = wb.resolver.resolve_files

        async def slow_first(source_id, paths):
            if not release.is_set():
                release.set()
                await asyncio.sleep(0.05)
            return await original(source_id, paths)

        wb.resolver.resolve_files = slow_first
        slow = asyncio.ensure_future(wb.preview(PATCH))
        await release.wait()
        await wb.preview(PATCH)
        return await slow

    stale = asyncio.run(main())
    assert wb.latest_preview is stale
