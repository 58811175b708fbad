# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Seller locale cache: seller id → domestic/overseas resolution, 24h TTL.

Pure Python module, no network. Entries older than the TTL are treated as
absent and dropped on lookup. Persistence is pluggable via
``CacheStoreProtocol`` and best-effort: a ``put`` marks the cache dirty and a
single background writer coalesces pending changes into serialized saves.
Load/save failures are logged and swallowed.

NOTE: Single event loop assumed. Not thread-safe.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .errors import CacheStoreError

logger = logging.getLogger("listingtrust.seller_cache")

DEFAULT_TTL_SECONDS = 86_400.0  # 24 hours


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SellerLocaleEntry:
    """One resolved seller. ``resolved_at`` is wall-clock seconds (persisted)."""

    key: str
    is_domestic: bool
    address_label: str
    resolved_at: float

    def is_expired(self, ttl: float, now: float) -> bool:
        return (now - self.resolved_at) >= ttl

    def to_dict(self) -> dict[str, Any]:
        return {"isDomestic": self.is_domestic, "addressLabel": self.address_label, "resolvedAt": self.resolved_at}

    @classmethod
    def from_dict(cls, key: str, data: Mapping[str, Any]) -> SellerLocaleEntry:
        return cls(
            key=key,
            is_domestic=bool(data["isDomestic"]),
            address_label=str(data.get("addressLabel", "")),
            resolved_at=float(data["resolvedAt"]),
        )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


@runtime_checkable
class CacheStoreProtocol(Protocol):
    """External key-value store holding the serialized cache mapping."""

    async def load(self) -> dict[str, dict[str, Any]]: ...

    async def save(self, data: dict[str, dict[str, Any]]) -> None: ...


class InMemoryCacheStore:
    """Store kept in a dict. Used by tests and one-shot CLI runs."""

    def __init__(self, data: dict[str, dict[str, Any]] | None = None) -> None:
        self.data: dict[str, dict[str, Any]] = dict(data or {})
        self.save_count = 0

    async def load(self) -> dict[str, dict[str, Any]]:
        return dict(self.data)

    async def save(self, data: dict[str, dict[str, Any]]) -> None:
        self.data = dict(data)
        self.save_count += 1


class JsonFileCacheStore:
    """Store backed by a single JSON file. A missing file loads as empty."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {}
        try:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as e:
            raise CacheStoreError(f"cannot load seller cache from {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise CacheStoreError(f"seller cache file {self._path} is not an object")
        return data

    def _write_atomic(self, payload: str) -> None:
        # Unique temp file per write; os.replace is atomic on the same filesystem.
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self._path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise

    async def save(self, data: dict[str, dict[str, Any]]) -> None:
        payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True)
        try:
            await asyncio.to_thread(self._write_atomic, payload)
        except OSError as e:
            raise CacheStoreError(f"cannot write seller cache to {self._path}: {e}") from e


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass
class SellerCacheStats:
    """Counters for cache behaviour, reported in logs."""

    hits: int = 0
    misses: int = 0
    ttl_expirations: int = 0
    writes: int = 0
    store_failures: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


# ---------------------------------------------------------------------------
# SellerLocaleCache
# ---------------------------------------------------------------------------


class SellerLocaleCache:
    """TTL mapping of seller id → SellerLocaleEntry with pluggable persistence."""

    def __init__(
        self,
        store: CacheStoreProtocol | None = None,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, SellerLocaleEntry] = {}
        self._save_task: asyncio.Task[None] | None = None
        self._save_lock = asyncio.Lock()
        self._dirty = False
        self._stats = SellerCacheStats()

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def stats(self) -> SellerCacheStats:
        return self._stats

    def now(self) -> float:
        return self._clock()

    def is_expired(self, entry: SellerLocaleEntry) -> bool:
        return entry.is_expired(self._ttl, self._clock())

    # -- Lookup --

    def get(self, key: str) -> SellerLocaleEntry | None:
        """Return the live entry for *key*, or None if missing or past TTL."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None
        if self.is_expired(entry):
            del self._entries[key]
            self._stats.ttl_expirations += 1
            self._stats.misses += 1
            logger.debug("Seller cache TTL expired: %s", key)
            return None
        self._stats.hits += 1
        logger.debug("Seller cache hit: %s", key)
        return entry

    def peek(self, key: str) -> SellerLocaleEntry | None:
        """Like ``get`` but without touching stats or evicting."""
        entry = self._entries.get(key)
        if entry is None or self.is_expired(entry):
            return None
        return entry

    # -- Store --

    def put(self, key: str, *, is_domestic: bool, address_label: str) -> SellerLocaleEntry:
        """Record a fresh resolution stamped with the current clock and persist."""
        entry = SellerLocaleEntry(
            key=key,
            is_domestic=is_domestic,
            address_label=address_label,
            resolved_at=self._clock(),
        )
        self._entries[key] = entry
        self._stats.writes += 1
        self._schedule_save()
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.peek(key) is not None

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {k: e.to_dict() for k, e in self._entries.items()}

    # -- Persistence --

    async def load(self) -> int:
        """Load live entries from the store. Returns the number loaded."""
        if self._store is None:
            return 0
        try:
            raw = await self._store.load()
        except Exception:
            self._stats.store_failures += 1
            logger.warning("Seller cache load failed", exc_info=True)
            return 0

        now = self._clock()
        loaded = 0
        for key, value in raw.items():
            try:
                entry = SellerLocaleEntry.from_dict(key, value)
            except (KeyError, TypeError, ValueError):
                logger.debug("Dropping malformed seller cache entry: %s", key)
                continue
            if entry.is_expired(self._ttl, now):
                continue
            self._entries[key] = entry
            loaded += 1
        logger.info("Seller cache loaded: %d entries", loaded)
        return loaded

    async def save(self) -> bool:
        """Write the whole mapping to the store. Failures are logged, never raised."""
        if self._store is None:
            return False
        # One write at a time; each writes the mapping as it is when the lock is taken.
        async with self._save_lock:
            try:
                await self._store.save(self.to_dict())
            except Exception:
                self._stats.store_failures += 1
                logger.warning("Seller cache save failed", exc_info=True)
                return False
        return True

    def _schedule_save(self) -> None:
        """Mark dirty and make sure one background writer is running."""
        if self._store is None:
            return
        self._dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; seller cache save deferred to flush()")
            return
        if self._save_task is None or self._save_task.done():
            self._save_task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        # Puts made while a write is in flight are picked up by the next loop.
        while self._dirty:
            self._dirty = False
            await self.save()

    async def flush(self) -> None:
        """Await the background writer, then write once more so the store is current."""
        if self._save_task is not None and not self._save_task.done():
            await asyncio.gather(self._save_task, return_exceptions=True)
        self._dirty = False
        await self.save()
