"""
Content resolution: turn (source, relative paths) into per-path file contents.

Remote sources are resolved with one batched request; local sources with one
store lookup per path. Either way the result has exactly one entry per
requested path, and paths whose resolution genuinely failed (not the benign
"not found") are recorded in the registry's failure set, which is cleared at
the start of every call.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List

from .errors import TransportError
from .models.resolution import ResolvedFile
from .models.source import LocalSource, ProjectSource, RemoteSource
from .sources.registry import SourceRegistry
from .store import ContentStore
from .transport import RemoteClient
from .utils.paths import join_root

log = logging.getLogger(__name__)

LOCAL_NOT_FOUND = "File not found in uploaded data (may be deleted by patch)"
REMOTE_NOT_FOUND = "File not found by server (may be deleted by patch)"
NO_RESPONSE = "No response from server for this file."


def means_not_found(message: str | None) -> bool:
    return bool(message) and "not found" in message.lower()


class ContentResolver:
    def __init__(self, registry: SourceRegistry, client: RemoteClient, store: ContentStore):
        self.registry = registry
        self.client = client
        self.store = store

    async def resolve_files(self, source_id: int | None, relative_paths: Iterable[str]) -> Dict[str, ResolvedFile]:
        paths = list(dict.fromkeys(relative_paths))
        failures = self.registry.failures
        failures.clear()

        source = self.registry.get(source_id)
        if source is None:
            log.error("resolve_files: source %s not found", source_id)
            return {p: ResolvedFile.failed(p, "Target source not found") for p in paths}

        log.info("Fetching %d file(s) from source %s (%s)", len(paths), source.id, source.kind.value)
        if isinstance(source, LocalSource):
            results = await self._resolve_local(source, paths)
        elif isinstance(source, RemoteSource):
            results = await self._resolve_remote(source, paths)
        else:
            results = self._unsupported(source, paths)

        log.info("Finished fetching files. Results: %d. Failed: %d", len(results), len(failures))
        return results

    async def _resolve_local(self, source: LocalSource, paths: List[str]) -> Dict[str, ResolvedFile]:
        async def lookup(path: str) -> ResolvedFile:
            try:
                content = await self.store.get(source.id, path)
            except Exception as e:
                log.error("Error reading uploaded file %s for source %s: %s", path, source.id, e)
                self.registry.failures.add(path)
                return ResolvedFile.failed(path, f"DB error: {e}")
            if content is None:
                # Expected when the patch creates the file.
                log.warning("File %s not found in uploaded data for source %s.", path, source.id)
                return ResolvedFile.not_found(path, LOCAL_NOT_FOUND)
            return ResolvedFile.ok(path, content)

        # Completion order is irrelevant; results are keyed by path.
        resolved = await asyncio.gather(*(lookup(p) for p in paths))
        return {r.path: r for r in resolved}

    async def _resolve_remote(self, source: RemoteSource, paths: List[str]) -> Dict[str, ResolvedFile]:
        failures = self.registry.failures
        if not paths:
            return {}
        by_absolute: Dict[str, List[str]] = {}
        for rel in paths:
            by_absolute.setdefault(join_root(source.root_path, rel), []).append(rel)

        try:
            batch = await self.client.fetch_files(list(by_absolute))
        except TransportError as e:
            log.error("Batch fetch network/request error: %s", e)
            failures.update(paths)
            return {p: ResolvedFile.failed(p, f"Network error: {e}") for p in paths}

        if not batch.success:
            log.error("Batch fetch failed: %s", batch.error)
            failures.update(paths)
            return {p: ResolvedFile.failed(p, batch.error or "Batch fetch failed") for p in paths}

        results: Dict[str, ResolvedFile] = {}
        for abs_path, rels in by_absolute.items():
            item = batch.files.get(abs_path)
            for rel in rels:
                if item is None:
                    log.warning("Path %s requested but no result received from server.", rel)
                    failures.add(rel)
                    results[rel] = ResolvedFile.failed(rel, NO_RESPONSE)
                elif item.success:
                    results[rel] = ResolvedFile.ok(rel, item.content or "")
                else:
                    message = item.error or REMOTE_NOT_FOUND
                    log.warning("Server fetch issue for %s (relative: %s): %s", abs_path, rel, message)
                    if means_not_found(message):
                        results[rel] = ResolvedFile.not_found(rel, message)
                    else:
                        failures.add(rel)
                        results[rel] = ResolvedFile.failed(rel, message)
        return results

    def _unsupported(self, source: ProjectSource, paths: List[str]) -> Dict[str, ResolvedFile]:
        kind = getattr(source, "kind", type(source).__name__)
        log.error("Unsupported source kind: %s", kind)
        self.registry.failures.update(paths)
        return {p: ResolvedFile.failed(p, f"Unsupported source kind: {kind}") for p in paths}
