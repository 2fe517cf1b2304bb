"""Per-entity search adapters.

Each adapter turns a normalized term into a list of `Hit`s using an
ordered chain of strategies: the specialised API lookups first, then a
bounded bulk listing filtered client-side. Direct lookups carry a fixed
provisional relevance; fallback matches carry a discounted one or are
scored outright.
Adapters never raise: failing strategies are skipped by `first_non_empty`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional

from inkwell.domain.search import models, policy, ranking
from inkwell.domain.search.clients import ContentSource
from inkwell.domain.search.strategies import Strategy, first_non_empty
from inkwell.settings import settings

TITLE_LOOKUP_RELEVANCE = 100
POST_TAG_LOOKUP_RELEVANCE = 100
CONTENT_LOOKUP_RELEVANCE = 90
TAG_ROUTE_RELEVANCE = 95
TITLE_SCAN_RELEVANCE = 80
TAG_ROUTE_SCAN_RELEVANCE = 75

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


def _top(hits: list[models.Hit], limit: int) -> list[models.Hit]:
	hits.sort(key=lambda hit: hit.relevance or 0, reverse=True)
	return hits[:limit]


class _Adapter:
	name = "adapter"

	def __init__(
		self,
		source: ContentSource,
		*,
		bulk_page_size: Optional[int] = None,
		clock: Optional[Clock] = None,
	) -> None:
		self._source = source
		self._page_size = bulk_page_size or settings.search_bulk_page_size
		self._clock = clock or _utcnow

	async def _run(self, strategies: list[Strategy[models.Hit]]) -> list[models.Hit]:
		return await first_non_empty(self.name, strategies)


class PostSearchAdapter(_Adapter):
	"""Post lookups by title, content and tag with bulk-scan fallbacks."""

	name = "posts"

	def _fixed(
		self,
		lookup: Callable[[], Awaitable[list[models.PostRecord]]],
		term: str,
		relevance: int,
		limit: int,
	) -> Callable[[], Awaitable[list[models.Hit]]]:
		async def run() -> list[models.Hit]:
			records = [post for post in await lookup() if not post.is_deleted]
			now = self._clock()
			# Equal provisional scores keep the scorer's order among themselves
			records.sort(key=lambda post: ranking.post_relevance(post, term, now=now), reverse=True)
			return [models.Hit(record=post, relevance=relevance) for post in records[:limit]]

		return run

	def _scan(
		self,
		matches: Callable[[models.PostRecord], bool],
		term: str,
		limit: int,
		relevance: Optional[int] = None,
	) -> Callable[[], Awaitable[list[models.Hit]]]:
		async def run() -> list[models.Hit]:
			posts = await self._source.list_posts(limit=self._page_size)
			now = self._clock()
			hits = []
			for post in posts:
				if post.is_deleted or not matches(post):
					continue
				score = ranking.post_relevance(post, term, now=now)
				hits.append(models.Hit(record=post, relevance=relevance if relevance is not None else score))
			if relevance is not None:
				return hits[:limit]
			return _top(hits, limit)

		return run

	async def search(self, term: str, limit: int) -> list[models.Hit]:
		"""Blended post search used by the `posts` and `all` filters."""

		if ranking.is_tag_query(term):
			tag_query = ranking.strip_tag_prefix(term)
			if not tag_query:
				return []
			return await self._run(
				[
					Strategy("tag_lookup", self._fixed(lambda: self._source.posts_by_tag(tag_query), term, POST_TAG_LOOKUP_RELEVANCE, limit)),
					Strategy("bulk_scan", self._scan(lambda post: _has_tag_containing(post.tags, tag_query), term, limit)),
				]
			)
		return await self._run(
			[
				Strategy("title_lookup", self._fixed(lambda: self._source.posts_by_title(term), term, TITLE_LOOKUP_RELEVANCE, limit)),
				Strategy("content_lookup", self._fixed(lambda: self._source.posts_by_content(term), term, CONTENT_LOOKUP_RELEVANCE, limit)),
				Strategy("bulk_scan", self._scan(lambda post: _post_mentions(post, term), term, limit)),
			]
		)

	async def by_title(self, term: str, limit: int) -> list[models.Hit]:
		title_query = term.strip()
		if len(title_query) < policy.MIN_TITLE_QUERY_LEN:
			return []
		return await self._run(
			[
				Strategy("title_lookup", self._fixed(lambda: self._source.posts_by_title(title_query), term, TITLE_LOOKUP_RELEVANCE, limit)),
				Strategy(
					"title_scan",
					self._scan(lambda post: title_query in post.title.lower(), term, limit, relevance=TITLE_SCAN_RELEVANCE),
				),
			]
		)

	async def by_content(self, term: str, limit: int) -> list[models.Hit]:
		return await self._run(
			[Strategy("content_lookup", self._fixed(lambda: self._source.posts_by_content(term), term, CONTENT_LOOKUP_RELEVANCE, limit))]
		)

	async def by_tag(self, term: str, limit: int) -> list[models.Hit]:
		tag_query = ranking.strip_tag_prefix(term.strip())
		if not tag_query:
			return []
		return await self._run(
			[
				Strategy("tag_lookup", self._fixed(lambda: self._source.posts_by_tag(tag_query), term, TAG_ROUTE_RELEVANCE, limit)),
				Strategy(
					"tag_scan",
					self._scan(
						lambda post: _has_tag_containing(post.tags, tag_query),
						term,
						limit,
						relevance=TAG_ROUTE_SCAN_RELEVANCE,
					),
				),
			]
		)


class AuthorSearchAdapter(_Adapter):
	"""Author lookups: exact email or username first, then a substring scan."""

	name = "authors"

	def _single(
		self,
		lookup: Callable[[], Awaitable[Optional[models.AuthorRecord]]],
	) -> Callable[[], Awaitable[list[models.AuthorRecord]]]:
		async def run() -> list[models.AuthorRecord]:
			author = await lookup()
			return [author] if author is not None else []

		return run

	def _scan(self, term: str) -> Callable[[], Awaitable[list[models.AuthorRecord]]]:
		async def run() -> list[models.AuthorRecord]:
			authors = await self._source.list_authors()
			return [
				author
				for author in authors
				if term in author.name.lower()
				or term in (author.email or "").lower()
				or term in (author.about or "").lower()
			]

		return run

	async def search(self, term: str, limit: int) -> list[models.Hit]:
		strategies: list[Strategy[models.AuthorRecord]] = []
		if policy.looks_like_email(term):
			strategies.append(Strategy("email_lookup", self._single(lambda: self._source.author_by_email(term))))
		elif len(term) >= policy.MIN_USERNAME_LEN:
			strategies.append(Strategy("username_lookup", self._single(lambda: self._source.author_by_username(term))))
		strategies.append(Strategy("bulk_scan", self._scan(term)))

		authors = await first_non_empty(self.name, strategies)
		hits = [models.Hit(record=author, relevance=ranking.author_relevance(author, term)) for author in authors]
		return _top(hits, limit)


class TagSearchAdapter(_Adapter):
	"""Aggregates tag usage over a bounded post listing."""

	name = "tags"

	def _aggregate(self, tag_query: str, limit: int) -> Callable[[], Awaitable[list[models.Hit]]]:
		async def run() -> list[models.Hit]:
			posts = await self._source.list_posts(limit=self._page_size)
			counts: dict[str, int] = {}
			for post in posts:
				if post.is_deleted:
					continue
				for tag in post.tags:
					if tag_query in tag.lower():
						counts[tag] = counts.get(tag, 0) + 1
			hits = [
				models.Hit(
					record=models.TagUsage(tag=tag, count=count),
					relevance=ranking.tag_relevance(tag, tag_query, count),
				)
				for tag, count in counts.items()
			]
			return _top(hits, limit)

		return run

	async def search(self, term: str, limit: int) -> list[models.Hit]:
		tag_query = ranking.strip_tag_prefix(term)
		if not tag_query:
			return []
		return await self._run([Strategy("bulk_aggregate", self._aggregate(tag_query, limit))])


def _has_tag_containing(tags: Iterable[str], needle: str) -> bool:
	return any(needle in tag.lower() for tag in tags)


def _post_mentions(post: models.PostRecord, term: str) -> bool:
	return (
		term in post.title.lower()
		or term in post.content.lower()
		or term in (post.author_name or "").lower()
		or _has_tag_containing(post.tags, term)
		or term in (post.genre or "").lower()
	)
