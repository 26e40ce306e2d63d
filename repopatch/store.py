"""
Local persistence: uploaded file contents and application state.

Both stores share one SQLite file. Blocking SQLite work runs in a worker
thread. Writes are serialized by asyncio.Lock per key: the content store
keys its locks by source id, so writes for different sources never wait on
each other (SQLite's busy timeout covers the file-level lock), while the
settings store uses a single key. Content rows are namespaced by source id,
so clearing one source never touches another's files.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple, TypeVar

from .errors import StoreError
from .models.source import ProjectSource, source_from_record, source_to_record

log = logging.getLogger(__name__)

T = TypeVar("T")

STATE_SCHEMA = """
CREATE TABLE IF NOT EXISTS app_state (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS uploaded_files (
  source_id TEXT NOT NULL,
  path TEXT NOT NULL,
  content TEXT NOT NULL,
  PRIMARY KEY (source_id, path)
);
"""

KEY_ENDPOINT_URL = "endpoint_url"
KEY_SELECTED_SOURCE_ID = "selected_source_id"
KEY_SOURCES = "sources"
KEY_FAILED_FILES = "failed_files"


def connect_state_db(path: Path) -> sqlite3.Connection:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA busy_timeout=5000")
    conn.executescript(STATE_SCHEMA)
    return conn


class _SqliteStore:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._write_locks: Dict[Hashable, asyncio.Lock] = {}

    def _call(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        try:
            with closing(connect_state_db(self.path)) as conn:
                with conn:
                    return fn(conn)
        except sqlite3.Error as e:
            raise StoreError(f"{self.path}: {e}") from e

    async def _read(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self._call, fn)

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._write_locks.get(key)
        if lock is None:
            lock = self._write_locks[key] = asyncio.Lock()
        return lock

    async def _write(self, fn: Callable[[sqlite3.Connection], T], key: Hashable = None) -> T:
        async with self._lock_for(key):
            return await asyncio.to_thread(self._call, fn)


class ContentStore(_SqliteStore):
    """Keyed file contents of local (uploaded) sources."""

    async def put(self, source_id: int, path: str, content: str) -> None:
        await self.put_many(source_id, [(path, content)])

    async def put_many(self, source_id: int, items: Iterable[Tuple[str, str]]) -> int:
        rows = [(str(source_id), path, content) for path, content in items]

        def op(conn: sqlite3.Connection) -> int:
            conn.executemany(
                "INSERT OR REPLACE INTO uploaded_files (source_id, path, content) VALUES (?, ?, ?)",
                rows,
            )
            return len(rows)

        count = await self._write(op, key=source_id)
        log.debug("Stored %d file(s) for source %s", count, source_id)
        return count

    async def get(self, source_id: int, path: str) -> Optional[str]:
        def op(conn: sqlite3.Connection) -> Optional[str]:
            row = conn.execute(
                "SELECT content FROM uploaded_files WHERE source_id = ? AND path = ?",
                (str(source_id), path),
            ).fetchone()
            return row[0] if row else None

        return await self._read(op)

    async def paths(self, source_id: int) -> List[str]:
        def op(conn: sqlite3.Connection) -> List[str]:
            rows = conn.execute(
                "SELECT path FROM uploaded_files WHERE source_id = ? ORDER BY path",
                (str(source_id),),
            ).fetchall()
            return [r[0] for r in rows]

        return await self._read(op)

    async def clear_source(self, source_id: int) -> int:
        def op(conn: sqlite3.Connection) -> int:
            cur = conn.execute("DELETE FROM uploaded_files WHERE source_id = ?", (str(source_id),))
            return cur.rowcount

        count = await self._write(op, key=source_id)
        log.info("Cleared %d uploaded file(s) for source %s.", count, source_id)
        return count

    async def clear_all(self) -> None:
        # Waits out every in-flight per-source write.
        held: List[asyncio.Lock] = []
        try:
            for key in list(self._write_locks):
                lock = self._lock_for(key)
                await lock.acquire()
                held.append(lock)
            await asyncio.to_thread(self._call, lambda conn: conn.execute("DELETE FROM uploaded_files"))
        finally:
            for lock in reversed(held):
                lock.release()


class SettingsStore(_SqliteStore):
    """Small JSON values: endpoint, selection, source list, failed paths."""

    async def get_value(self, key: str, default: Any = None) -> Any:
        def op(conn: sqlite3.Connection) -> Optional[str]:
            row = conn.execute("SELECT value FROM app_state WHERE key = ?", (key,)).fetchone()
            return row[0] if row else None

        raw = await self._read(op)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            log.warning("Discarding malformed state value for key %r", key)
            return default

    async def set_values(self, values: dict) -> None:
        rows = [(key, json.dumps(value)) for key, value in values.items()]

        def op(conn: sqlite3.Connection) -> None:
            conn.executemany("INSERT OR REPLACE INTO app_state (key, value) VALUES (?, ?)", rows)

        await self._write(op)

    async def set_value(self, key: str, value: Any) -> None:
        await self.set_values({key: value})

    async def load_sources(self) -> List[ProjectSource]:
        stored = await self.get_value(KEY_SOURCES)
        if stored is None:
            return []
        if not isinstance(stored, list):
            log.warning("Stored value for 'sources' is not a list, ignoring it: %r", stored)
            return []
        sources: List[ProjectSource] = []
        for record in stored:
            source = source_from_record(record) if isinstance(record, dict) else None
            if source is None:
                log.warning("Skipping unusable source record: %r", record)
                continue
            sources.append(source)
        return sources

    async def save_state(
        self,
        *,
        endpoint: str,
        selected_id: Optional[int],
        sources: Iterable[ProjectSource],
        failed_files: Iterable[str],
    ) -> None:
        await self.set_values({
            KEY_ENDPOINT_URL: endpoint,
            KEY_SELECTED_SOURCE_ID: selected_id,
            KEY_SOURCES: [source_to_record(s) for s in sources],
            KEY_FAILED_FILES: sorted(failed_files),
        })
