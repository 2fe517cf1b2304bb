"""Service layer for blended post, author and tag search."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from inkwell.domain.search import clients, models, policy, ranking
from inkwell.domain.search.adapters import AuthorSearchAdapter, PostSearchAdapter, TagSearchAdapter
from inkwell.domain.search.cache import SearchCache, build_cache
from inkwell.domain.search.schemas import (
	AuthorResult,
	CacheStats,
	PostResult,
	ScoredResult,
	SearchFilter,
	SearchQuery,
	TagResult,
)
from inkwell.obs import metrics as obs_metrics
from inkwell.settings import settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def to_result(hit: models.Hit) -> ScoredResult:
	"""Project a scored hit onto its response schema."""

	record = hit.record
	relevance = max(hit.relevance or 0, 0)
	if isinstance(record, models.PostRecord):
		return PostResult(
			id=record.post_id,
			title=record.title,
			content=record.content,
			author_id=record.author_id,
			author_name=record.author_name,
			tags=list(record.tags),
			genre=record.genre,
			views=record.views,
			created_at=record.created_at,
			relevance=relevance,
		)
	if isinstance(record, models.AuthorRecord):
		return AuthorResult(
			id=record.author_id,
			name=record.name,
			username=record.username,
			email=record.email,
			about=record.about,
			relevance=relevance,
		)
	return TagResult(id=f"tag-{record.tag}", tag=record.tag, count=record.count, relevance=relevance)


class SearchService:
	"""Routes a query to the entity adapters, merges, scores and caches."""

	def __init__(
		self,
		source: Optional[clients.ContentSource] = None,
		cache: Optional[SearchCache] = None,
		*,
		clock: Optional[Callable[[], datetime]] = None,
		bulk_page_size: Optional[int] = None,
	) -> None:
		self.source = source or clients.default_source()
		self.cache = cache or build_cache()
		self._clock = clock or _utcnow
		self.posts = PostSearchAdapter(self.source, bulk_page_size=bulk_page_size, clock=self._clock)
		self.authors = AuthorSearchAdapter(self.source, bulk_page_size=bulk_page_size, clock=self._clock)
		self.tags = TagSearchAdapter(self.source, bulk_page_size=bulk_page_size, clock=self._clock)

	async def search(self, query: SearchQuery) -> list[ScoredResult]:
		"""Resolve a query to scored results. Never raises."""

		selected = query.selected_filter()
		if not policy.is_dispatchable(query) or selected is None:
			return []
		term = query.normalized_term()
		key = policy.cache_key(term, selected, query.limit)
		obs_metrics.inc_search_query(selected.value)
		started = time.perf_counter()

		async def build() -> tuple[list[ScoredResult], bool]:
			pinned, hits, complete = await self._dispatch(selected, term, query.limit)
			return self._finalize(pinned, hits, term, query.limit), complete

		try:
			results, cached = await self.cache.get_or_build(key, build)
		except Exception:
			logger.exception("search.failed", extra={"filter": selected.value, "cache_key": key})
			return []

		elapsed = time.perf_counter() - started
		obs_metrics.observe_search_latency(selected.value, elapsed)
		logger.info(
			"search.completed",
			extra={
				"filter": selected.value,
				"limit": query.limit,
				"results": len(results),
				"cached": cached,
				"latency_ms": round(elapsed * 1000, 2),
			},
		)
		return results

	async def search_text(self, term: str, filter: str = SearchFilter.ALL.value, limit: Optional[int] = None) -> list[ScoredResult]:
		"""Convenience entry point taking raw arguments; bad input yields `[]`."""

		try:
			query = SearchQuery(
				term=term or "",
				filter=filter,
				limit=limit if limit is not None else settings.search_default_limit,
			)
		except ValidationError:
			return []
		return await self.search(query)

	async def clear_cache(self) -> int:
		cleared = await self.cache.clear()
		logger.info("search.cache.cleared", extra={"entries": cleared})
		return cleared

	async def invalidate(self, key: str) -> bool:
		return await self.cache.invalidate(key)

	async def cache_stats(self) -> CacheStats:
		return await self.cache.stats()

	async def _dispatch(
		self, selected: SearchFilter, term: str, limit: int
	) -> tuple[list[models.Hit], list[models.Hit], bool]:
		"""Return `(pinned, hits, complete)`; pinned hits lead the results unsorted."""

		if selected is SearchFilter.ALL:
			return await self._blended(term, limit)
		single: dict[SearchFilter, Callable[[], Awaitable[list[models.Hit]]]] = {
			SearchFilter.POSTS: lambda: self.posts.search(term, limit),
			SearchFilter.TITLE: lambda: self.posts.by_title(term, limit),
			SearchFilter.CONTENT: lambda: self.posts.by_content(term, limit),
			SearchFilter.TAGGED: lambda: self.posts.by_tag(term, limit),
			SearchFilter.TAGS: lambda: self.tags.search(term, limit),
			SearchFilter.AUTHORS: lambda: self.authors.search(term, limit),
		}
		(hits,), complete = await self._gather((selected.value, single[selected]()))
		return [], hits, complete

	async def _blended(self, term: str, limit: int) -> tuple[list[models.Hit], list[models.Hit], bool]:
		if len(term) >= policy.MIN_TITLE_PROBE_LEN:
			(title_hits,), complete = await self._gather(("title_probe", self.posts.by_title(term, 1)))
			if title_hits:
				author_share, tag_share = policy.TITLE_HIT_SHARES
				(authors, tags), rest_complete = await self._gather(
					("authors", self.authors.search(term, policy.share_of(limit, author_share))),
					("tags", self.tags.search(term, policy.share_of(limit, tag_share))),
				)
				logger.debug("search.title_hit", extra={"results": len(title_hits)})
				return title_hits, authors + tags, complete and rest_complete

		post_share, author_share, tag_share = policy.BLENDED_SHARES
		(posts, authors, tags), complete = await self._gather(
			("posts", self.posts.search(term, policy.share_of(limit, post_share))),
			("authors", self.authors.search(term, policy.share_of(limit, author_share))),
			("tags", self.tags.search(term, policy.share_of(limit, tag_share))),
		)
		return [], posts + authors + tags, complete

	async def _gather(self, *calls: tuple[str, Awaitable[list[models.Hit]]]) -> tuple[list[list[models.Hit]], bool]:
		"""Await sub-searches concurrently; a failing one contributes `[]`."""

		outcomes = await asyncio.gather(*(call for _, call in calls), return_exceptions=True)
		buckets: list[list[models.Hit]] = []
		complete = True
		for (name, _), outcome in zip(calls, outcomes):
			if isinstance(outcome, BaseException):
				if not isinstance(outcome, Exception):
					raise outcome
				logger.warning("search.subsearch.failed", extra={"subsearch": name}, exc_info=outcome)
				obs_metrics.inc_adapter_failure(name, "subsearch")
				buckets.append([])
				complete = False
				continue
			buckets.append(list(outcome))
		return buckets, complete

	def _finalize(self, pinned: list[models.Hit], hits: list[models.Hit], term: str, limit: int) -> list[ScoredResult]:
		now = self._clock()
		for hit in pinned + hits:
			if hit.relevance is None:
				hit.relevance = ranking.score_record(hit.record, term, now=now)
		# sort() is stable, so equal scores keep adapter order
		hits.sort(key=lambda hit: hit.relevance or 0, reverse=True)
		return [to_result(hit) for hit in (pinned + hits)[:limit]]


_SERVICE: Optional[SearchService] = None


def get_service() -> SearchService:
	global _SERVICE
	if _SERVICE is None:
		_SERVICE = SearchService()
	return _SERVICE


def set_service(service: Optional[SearchService]) -> None:
	global _SERVICE
	_SERVICE = service
