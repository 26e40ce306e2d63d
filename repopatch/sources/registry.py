# repopatch/sources/registry.py
from __future__ import annotations

import logging
import time
from typing import Iterator, List, Optional, Set

from ..errors import SourceError, SourceNotFoundError
from ..models.source import ProjectSource, RemoteSource
from ..models.tree import Tree
from ..store import KEY_ENDPOINT_URL, KEY_FAILED_FILES, KEY_SELECTED_SOURCE_ID, SettingsStore

log = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "/"
_BAD_ENDPOINTS = {"", "null", "undefined", "None"}


class SourceRegistry:
    """
    The list of project sources plus the single selection.

    All mutation goes through the async methods below, each of which re-checks
    the selection invariant and then persists. A failed save leaves memory and
    storage diverged until the next successful save; there is no rollback.
    """

    def __init__(self, store: Optional[SettingsStore] = None, *, endpoint: str = DEFAULT_ENDPOINT):
        self._store = store
        self._sources: List[ProjectSource] = []
        self._selected_id: Optional[int] = None
        self._last_id = 0
        self.endpoint = endpoint or DEFAULT_ENDPOINT
        # Paths that failed resolution during the current preview/apply cycle.
        self.failures: Set[str] = set()

    # ----- reads -----

    @property
    def sources(self) -> List[ProjectSource]:
        return list(self._sources)

    @property
    def selected_id(self) -> Optional[int]:
        return self._selected_id

    def __iter__(self) -> Iterator[ProjectSource]:
        return iter(list(self._sources))

    def __len__(self) -> int:
        return len(self._sources)

    def get(self, source_id: Optional[int]) -> Optional[ProjectSource]:
        if source_id is None:
            return None
        for source in self._sources:
            if source.id == source_id:
                return source
        return None

    def require(self, source_id: int) -> ProjectSource:
        source = self.get(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    def selected(self) -> Optional[ProjectSource]:
        return self.get(self._selected_id)

    def new_id(self) -> int:
        """Creation-time id in milliseconds, bumped if two sources arrive in the same tick."""
        candidate = int(time.time() * 1000)
        taken = {s.id for s in self._sources}
        candidate = max(candidate, self._last_id + 1)
        while candidate in taken:
            candidate += 1
        self._last_id = candidate
        return candidate

    # ----- mutations -----

    async def add_source(self, source: ProjectSource) -> ProjectSource:
        if self.get(source.id) is not None:
            raise SourceError(f"Duplicate project source id: {source.id}")
        self._sources.append(source)
        self._last_id = max(self._last_id, source.id)
        self._selected_id = source.id
        log.info("Added %s source %s (%s)", source.kind.value, source.id, source.display_name)
        await self.save()
        return source

    async def remove_source(self, source_id: int) -> ProjectSource:
        source = self.require(source_id)
        self._sources = [s for s in self._sources if s.id != source_id]
        if self._selected_id == source_id:
            self._selected_id = None
        self._revalidate_selection()
        log.info("Removed source %s; selection is now %s", source_id, self._selected_id)
        await self.save()
        return source

    async def select(self, source_id: int) -> ProjectSource:
        source = self.require(source_id)
        if self._selected_id != source_id:
            self._selected_id = source_id
            await self.save()
        return source

    async def set_endpoint(self, endpoint: str) -> None:
        self.endpoint = endpoint or DEFAULT_ENDPOINT
        await self.save()

    async def record_tree(
        self,
        source_id: int,
        tree: Tree,
        *,
        root_path: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> ProjectSource:
        """Replace a source's tree wholesale after a successful structural resolution."""
        source = self.require(source_id)
        source.tree = tree
        source.last_error = None
        if root_path and isinstance(source, RemoteSource):
            source.root_path = root_path
        if display_name:
            source.display_name = display_name
        await self.save()
        return source

    async def record_error(self, source_id: int, message: str) -> ProjectSource:
        source = self.require(source_id)
        source.last_error = message
        source.tree = {}
        await self.save()
        return source

    async def clear_error(self, source_id: int) -> ProjectSource:
        source = self.require(source_id)
        if source.last_error is not None:
            source.last_error = None
            await self.save()
        return source

    def _revalidate_selection(self, preferred: Optional[int] = None) -> None:
        # Previously-saved id if still present, else the first source, else none.
        for candidate in (preferred, self._selected_id):
            if candidate is not None and self.get(candidate) is not None:
                self._selected_id = candidate
                return
        self._selected_id = self._sources[0].id if self._sources else None

    # ----- persistence -----

    async def save(self) -> None:
        if self._store is None:
            return
        await self._store.save_state(
            endpoint=self.endpoint,
            selected_id=self._selected_id,
            sources=self._sources,
            failed_files=self.failures,
        )

    async def load(self) -> None:
        if self._store is None:
            return
        saved_endpoint = await self._store.get_value(KEY_ENDPOINT_URL)
        if not isinstance(saved_endpoint, str) or saved_endpoint.strip() in _BAD_ENDPOINTS:
            saved_endpoint = None
        if saved_endpoint:
            self.endpoint = saved_endpoint

        self._sources = await self._store.load_sources()
        self._last_id = max((s.id for s in self._sources), default=0)

        saved_selected = await self._store.get_value(KEY_SELECTED_SOURCE_ID)
        try:
            preferred = int(saved_selected) if saved_selected is not None else None
        except (TypeError, ValueError):
            preferred = None
        self._selected_id = None
        self._revalidate_selection(preferred)

        failed = await self._store.get_value(KEY_FAILED_FILES, [])
        self.failures = set(failed) if isinstance(failed, list) else set()
        log.debug("Loaded %d source(s); selected=%s", len(self._sources), self._selected_id)
