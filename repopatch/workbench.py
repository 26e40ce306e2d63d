"""
Application controller: owns the registry, stores, HTTP client and resolver,
and is the only place that wires them together.

Typical use::

    async with Workbench(Settings.from_env()) as wb:
        await wb.load()
        await wb.add_remote("/srv/project")
        result = await wb.preview(patch_text)
        print(result.text)
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import BinaryIO, Iterable, Optional, Tuple, Union

import httpx

from .config import Settings
from .core import generate_preview, refresh_source
from .errors import IngestError
from .models.source import LocalSource, ProjectSource, RemoteSource
from .patch.apply import ApplyResult, apply_to_selected
from .patch.render import PreviewResult
from .resolve import ContentResolver
from .sources.ingest import Ingested, archive_display_name, collect_folder, ingest_archive, ingest_folder_entries
from .sources.registry import SourceRegistry
from .store import ContentStore, SettingsStore
from .transport import ConnectResult, RemoteClient
from .utils.debounce import Debouncer
from .utils.paths import display_name_for

log = logging.getLogger(__name__)


class Workbench:
    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or Settings.from_env()
        self.content_store = ContentStore(self.settings.state_path)
        self.settings_store = SettingsStore(self.settings.state_path)
        self.registry = SourceRegistry(self.settings_store, endpoint=self.settings.endpoint)
        self.client = RemoteClient(
            self.registry.endpoint,
            origin=self.settings.origin,
            timeout=self.settings.request_timeout,
            client=http_client,
        )
        self.resolver = ContentResolver(self.registry, self.client, self.content_store)
        self.latest_preview: Optional[PreviewResult] = None
        self._generation = 0
        self._published_generation = 0
        # Created on first use so it binds to the running loop.
        self._debouncer: Optional[Debouncer] = None

    async def __aenter__(self) -> "Workbench":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def load(self) -> None:
        """Restore endpoint, sources and selection from the settings store."""
        await self.registry.load()
        self.client.endpoint = self.registry.endpoint
        log.info("Loaded %d source(s) from %s", len(self.registry), self.settings.state_path)

    async def close(self) -> None:
        if self._debouncer is not None:
            self._debouncer.cancel()
        await self.client.aclose()

    # ----- connection -----

    async def connect(self, endpoint: Optional[str] = None) -> ConnectResult:
        result = await self.client.connect(endpoint)
        if result.success:
            await self.registry.set_endpoint(result.endpoint)
        else:
            log.warning("Connection failed: %s", result.error)
        return result

    # ----- sources -----

    async def add_remote(self, path: str) -> RemoteSource:
        """Register a server-side directory and fetch its tree once."""
        root_path = (path or "").strip()
        source_id = self.registry.new_id()
        source = RemoteSource(
            id=source_id,
            root_path=root_path,
            display_name=display_name_for(root_path, f"path-{source_id}"),
        )
        await self.registry.add_source(source)
        await refresh_source(self.registry, self.client, source_id)
        return source

    async def add_archive(
        self,
        archive: Union[bytes, str, "os.PathLike[str]", BinaryIO],
        name: Optional[str] = None,
    ) -> LocalSource:
        source_id = self.registry.new_id()
        if name is None and isinstance(archive, (str, os.PathLike)):
            name = os.fspath(archive)
        source = LocalSource(id=source_id, display_name=archive_display_name(name, f"zip-{source_id}"))
        await self.registry.add_source(source)
        try:
            ingested = await asyncio.to_thread(
                ingest_archive,
                archive,
                name=name,
                strip_root=self.settings.strip_archive_root,
                log=self.settings.log_enabled,
            )
            await self._store_ingested(source, ingested)
        except IngestError as e:
            log.error("Error processing zip for source %s: %s", source_id, e)
            await self.registry.record_error(source_id, str(e))
        except Exception as e:
            log.exception("Error processing zip for source %s", source_id)
            await self.registry.record_error(source_id, f"Failed to process zip file: {e}")
        return source

    async def add_folder(self, path: Union[str, "os.PathLike[str]"]) -> LocalSource:
        """Ingest an on-disk folder, honoring its .gitignore."""
        entries = await asyncio.to_thread(collect_folder, path, log=self.settings.log_enabled)
        fallback = os.path.basename(os.path.abspath(os.fspath(path)))
        return await self.add_folder_entries(entries, fallback_name=fallback)

    async def add_folder_entries(
        self,
        entries: Iterable[Tuple[str, Optional[str]]],
        fallback_name: Optional[str] = None,
    ) -> LocalSource:
        entries = list(entries)
        source_id = self.registry.new_id()
        fallback = fallback_name or f"folder-{source_id}"
        source = LocalSource(id=source_id, display_name=fallback)
        await self.registry.add_source(source)
        if not entries:
            await self.registry.record_error(source_id, "Failed to process folder: no files selected")
            return source
        try:
            ingested = ingest_folder_entries(entries, fallback_name=fallback, log=self.settings.log_enabled)
            await self._store_ingested(source, ingested)
        except Exception as e:
            log.exception("Error processing folder for source %s", source_id)
            await self.registry.record_error(source_id, f"Failed to process folder: {e}")
        return source

    async def _store_ingested(self, source: LocalSource, ingested: Ingested) -> None:
        # Previous content of this source is replaced, never merged.
        await self.content_store.clear_source(source.id)
        await self.content_store.put_many(source.id, ingested.files.items())
        await self.registry.record_tree(source.id, ingested.tree, display_name=ingested.display_name)
        log.info(
            "Stored %d file(s) for source %s (%d conflict(s), %d skipped)",
            len(ingested.files), source.id, len(ingested.conflicts), len(ingested.skipped),
        )

    async def remove_source(self, source_id: int) -> ProjectSource:
        source = await self.registry.remove_source(source_id)
        if isinstance(source, LocalSource):
            await self.content_store.clear_source(source_id)
        return source

    async def select(self, source_id: int) -> ProjectSource:
        return await self.registry.select(source_id)

    async def refresh(self, source_id: Optional[int] = None) -> bool:
        """Manual cache invalidation: re-fetch the tree of `source_id` (default: selected)."""
        target = source_id if source_id is not None else self.registry.selected_id
        if target is None:
            return False
        return await refresh_source(self.registry, self.client, target)

    # ----- preview -----

    async def preview(self, patch_text: str) -> PreviewResult:
        self._generation += 1
        generation = self._generation
        result = await generate_preview(self.registry, self.resolver, patch_text)
        result.generation = generation
        if self.settings.discard_stale_previews and generation < self._published_generation:
            log.debug("Discarding stale preview %d (latest published: %d)", generation, self._published_generation)
            return result
        self._published_generation = max(self._published_generation, generation)
        self.latest_preview = result
        return result

    def schedule_preview(self, patch_text: str) -> None:
        """Debounced `preview`; must be called from within the running loop."""
        if self._debouncer is None:
            self._debouncer = Debouncer(self.preview, self.settings.debounce_seconds)
        self._debouncer(patch_text)

    async def wait_for_previews(self) -> Optional[PreviewResult]:
        if self._debouncer is not None:
            await self._debouncer.wait_idle()
        return self.latest_preview

    # ----- apply -----

    def can_apply(self, patch_text: str) -> bool:
        source = self.registry.selected()
        return (
            isinstance(source, RemoteSource)
            and bool(source.root_path)
            and bool(patch_text and patch_text.strip())
        )

    async def apply(self, patch_text: str) -> ApplyResult:
        return await apply_to_selected(self.registry, self.client, patch_text)
