"""TTL caches for scored search results.

`ResultCache` keeps entries in-process and evicts lazily on read against an
injectable monotonic clock. `RedisResultCache` stores the same payloads as
JSON with a server-side expiry so several workers share one cache. Both
offer `get_or_build`, which collapses concurrent misses on a key into a
single build.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from pydantic import ValidationError
from redis.exceptions import RedisError

from inkwell.domain.search.schemas import SCORED_RESULTS, CacheStats, ScoredResult
from inkwell.infra.redis import RedisProxy, redis_client
from inkwell.obs import metrics as obs_metrics
from inkwell.settings import settings

logger = logging.getLogger(__name__)

# Builders return the results plus whether they may be stored
ResultBuilder = Callable[[], Awaitable[tuple[list[ScoredResult], bool]]]


@dataclass(slots=True)
class CacheEntry:
	key: str
	results: list[ScoredResult]
	created_at: float
	ttl: float

	def is_live(self, now: float) -> bool:
		return now - self.created_at < self.ttl


class _SingleFlight(ABC):
	"""Per-key locks so one caller builds a missing entry while others wait."""

	def __init__(self) -> None:
		self._locks: dict[str, asyncio.Lock] = {}

	def _lock(self, key: str) -> asyncio.Lock:
		if key not in self._locks:
			self._locks[key] = asyncio.Lock()
		return self._locks[key]

	@abstractmethod
	async def get(self, key: str) -> Optional[list[ScoredResult]]: ...

	@abstractmethod
	async def set(self, key: str, results: list[ScoredResult], ttl: Optional[float] = None) -> None: ...

	@abstractmethod
	async def invalidate(self, key: str) -> bool: ...

	@abstractmethod
	async def clear(self) -> int: ...

	@abstractmethod
	async def stats(self) -> CacheStats: ...

	async def get_or_build(self, key: str, builder: ResultBuilder) -> tuple[list[ScoredResult], bool]:
		"""Return `(results, from_cache)`.

		Only non-empty builds that report themselves cacheable are stored.
		"""

		cached = await self.get(key)
		if cached is not None:
			return cached, True
		lock = self._lock(key)
		try:
			async with lock:
				cached = await self.get(key)
				if cached is not None:
					return cached, True
				results, cacheable = await builder()
				if results and cacheable:
					await self.set(key, results)
				return results, False
		finally:
			if not lock.locked() and self._locks.get(key) is lock:
				del self._locks[key]


class ResultCache(_SingleFlight):
	"""In-process TTL cache keyed by normalized `(term, filter, limit)`."""

	def __init__(
		self,
		*,
		ttl_seconds: Optional[float] = None,
		max_entries: Optional[int] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		super().__init__()
		self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.search_cache_ttl_seconds
		self.max_entries = max_entries if max_entries is not None else settings.search_cache_max_entries
		self._clock = clock
		self._entries: dict[str, CacheEntry] = {}

	async def get(self, key: str) -> Optional[list[ScoredResult]]:
		entry = self._entries.get(key)
		if entry is None:
			obs_metrics.inc_cache_event("miss")
			return None
		if not entry.is_live(self._clock()):
			self._entries.pop(key, None)
			obs_metrics.inc_cache_event("expired")
			return None
		obs_metrics.inc_cache_event("hit")
		return list(entry.results)

	async def set(self, key: str, results: list[ScoredResult], ttl: Optional[float] = None) -> None:
		if key not in self._entries and len(self._entries) >= self.max_entries:
			self._make_room()
		self._entries[key] = CacheEntry(
			key=key,
			results=list(results),
			created_at=self._clock(),
			ttl=ttl if ttl is not None else self.ttl_seconds,
		)
		obs_metrics.inc_cache_event("store")

	def _make_room(self) -> None:
		if self.sweep():
			return
		# Still full: drop the oldest insertion
		oldest = next(iter(self._entries), None)
		if oldest is not None:
			self._entries.pop(oldest, None)
			obs_metrics.inc_cache_event("evict")

	def sweep(self) -> int:
		"""Drop every expired entry and return how many were removed."""

		now = self._clock()
		expired = [key for key, entry in self._entries.items() if not entry.is_live(now)]
		for key in expired:
			del self._entries[key]
		return len(expired)

	async def invalidate(self, key: str) -> bool:
		removed = self._entries.pop(key, None) is not None
		if removed:
			obs_metrics.inc_cache_event("invalidate")
		return removed

	async def clear(self) -> int:
		count = len(self._entries)
		self._entries.clear()
		return count

	async def stats(self) -> CacheStats:
		return CacheStats(size=len(self._entries), keys=list(self._entries))


class RedisResultCache(_SingleFlight):
	"""Redis-backed variant sharing entries across workers."""

	def __init__(
		self,
		redis: RedisProxy | None = None,
		*,
		namespace: str = "search:results:",
		ttl_seconds: Optional[float] = None,
	) -> None:
		super().__init__()
		self.redis = redis or redis_client
		self.namespace = namespace
		self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.search_cache_ttl_seconds

	def _key(self, key: str) -> str:
		return f"{self.namespace}{key}"

	async def get(self, key: str) -> Optional[list[ScoredResult]]:
		try:
			raw = await self.redis.get(self._key(key))
		except RedisError:
			logger.warning("search.cache.unavailable", extra={"cache_key": key, "op": "get"}, exc_info=True)
			obs_metrics.inc_cache_event("error")
			return None
		if not raw:
			obs_metrics.inc_cache_event("miss")
			return None
		try:
			results = SCORED_RESULTS.validate_json(raw)
		except ValidationError:
			logger.warning("search.cache.corrupt", extra={"cache_key": key})
			await self.redis.delete(self._key(key))
			obs_metrics.inc_cache_event("corrupt")
			return None
		obs_metrics.inc_cache_event("hit")
		return results

	async def set(self, key: str, results: list[ScoredResult], ttl: Optional[float] = None) -> None:
		payload = SCORED_RESULTS.dump_json(results)
		seconds = ttl if ttl is not None else self.ttl_seconds
		try:
			await self.redis.set(self._key(key), payload, px=max(int(seconds * 1000), 1))
		except RedisError:
			logger.warning("search.cache.unavailable", extra={"cache_key": key, "op": "set"}, exc_info=True)
			obs_metrics.inc_cache_event("error")
			return
		obs_metrics.inc_cache_event("store")

	async def invalidate(self, key: str) -> bool:
		removed = bool(await self.redis.delete(self._key(key)))
		if removed:
			obs_metrics.inc_cache_event("invalidate")
		return removed

	async def _keys(self) -> list[str]:
		keys = []
		async for raw in self.redis.scan_iter(match=f"{self.namespace}*"):
			name = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
			keys.append(name[len(self.namespace):])
		return keys

	async def clear(self) -> int:
		keys = await self._keys()
		if not keys:
			return 0
		await self.redis.delete(*(self._key(key) for key in keys))
		return len(keys)

	async def stats(self) -> CacheStats:
		keys = await self._keys()
		return CacheStats(size=len(keys), keys=keys)


SearchCache = Union[ResultCache, RedisResultCache]


def build_cache() -> SearchCache:
	if settings.search_cache_backend == "redis":
		return RedisResultCache()
	return ResultCache()
