"""Content sources consumed by the search adapters.

The platform's CRUD API owns posts and authors; search only reads them
through the `ContentSource` protocol. `HttpContentSource` talks to the
REST API, `MemoryContentSource` mirrors its lookup semantics in-process
for development and tests.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol
from urllib.parse import quote

import httpx

from inkwell.domain.search import models
from inkwell.settings import settings


class ContentSource(Protocol):
	async def posts_by_title(self, title: str) -> list[models.PostRecord]: ...

	async def posts_by_content(self, text: str) -> list[models.PostRecord]: ...

	async def posts_by_tag(self, tag: str) -> list[models.PostRecord]: ...

	async def author_by_email(self, email: str) -> Optional[models.AuthorRecord]: ...

	async def author_by_username(self, username: str) -> Optional[models.AuthorRecord]: ...

	async def list_posts(self, *, limit: int) -> list[models.PostRecord]: ...

	async def list_authors(self) -> list[models.AuthorRecord]: ...


def _parse_datetime(value: Any) -> Optional[datetime]:
	if isinstance(value, datetime):
		return value
	if not value:
		return None
	text = str(value)
	if text.endswith("Z"):
		text = f"{text[:-1]}+00:00"
	try:
		return datetime.fromisoformat(text)
	except ValueError:
		return None


def _record_id(payload: dict[str, Any]) -> str:
	return str(payload.get("_id") or payload.get("id") or "")


def post_from_payload(payload: dict[str, Any]) -> models.PostRecord:
	author = payload.get("author")
	author_id: Optional[str] = None
	author_name: Optional[str] = None
	if isinstance(author, dict):
		author_id = _record_id(author) or None
		author_name = author.get("name")
	elif author:
		author_id = str(author)
	return models.PostRecord(
		post_id=_record_id(payload),
		title=payload.get("title") or "",
		content=payload.get("content") or "",
		author_id=author_id,
		author_name=author_name,
		tags=[str(tag) for tag in payload.get("tags") or []],
		genre=payload.get("genre"),
		views=int(payload.get("views") or 0),
		created_at=_parse_datetime(payload.get("createdAt") or payload.get("created_at")),
		is_deleted=bool(payload.get("isDeleted", False)),
	)


def author_from_payload(payload: dict[str, Any]) -> models.AuthorRecord:
	return models.AuthorRecord(
		author_id=_record_id(payload),
		name=payload.get("name") or "",
		username=payload.get("username"),
		email=payload.get("email"),
		about=payload.get("about"),
	)


def _unwrap(payload: Any) -> Any:
	"""Strip the `{success, data, message}` envelope when present."""

	if isinstance(payload, dict) and "success" in payload and "data" in payload:
		return payload["data"]
	return payload


def _as_list(data: Any, key: str) -> list[dict[str, Any]]:
	if data is None:
		return []
	if isinstance(data, dict):
		if key in data:
			return list(data[key] or [])
		return [data]
	return list(data)


class HttpContentSource:
	"""Read-only client for the platform REST API."""

	def __init__(
		self,
		*,
		base_url: Optional[str] = None,
		timeout: Optional[float] = None,
		client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self._client = client or httpx.AsyncClient(
			base_url=base_url or settings.content_api_base_url or "",
			timeout=timeout or settings.content_api_timeout_seconds,
		)

	async def aclose(self) -> None:
		await self._client.aclose()

	async def _get(self, path: str, *, params: Optional[dict[str, Any]] = None) -> Any:
		response = await self._client.get(path, params=params)
		if response.status_code == 404:
			return None
		response.raise_for_status()
		return _unwrap(response.json())

	async def _posts(self, path: str) -> list[models.PostRecord]:
		data = await self._get(path)
		return [post_from_payload(item) for item in _as_list(data, "blogs")]

	async def _author(self, path: str) -> Optional[models.AuthorRecord]:
		items = _as_list(await self._get(path), "users")
		return author_from_payload(items[0]) if items else None

	async def posts_by_title(self, title: str) -> list[models.PostRecord]:
		return await self._posts(f"/blogs/search/title/{quote(title, safe='')}")

	async def posts_by_content(self, text: str) -> list[models.PostRecord]:
		return await self._posts(f"/blogs/search/content/{quote(text, safe='')}")

	async def posts_by_tag(self, tag: str) -> list[models.PostRecord]:
		return await self._posts(f"/blogs/search/tags/{quote(tag, safe='')}")

	async def author_by_email(self, email: str) -> Optional[models.AuthorRecord]:
		return await self._author(f"/users/search/email/{quote(email, safe='@')}")

	async def author_by_username(self, username: str) -> Optional[models.AuthorRecord]:
		return await self._author(f"/users/search/username/{quote(username, safe='')}")

	async def list_posts(self, *, limit: int) -> list[models.PostRecord]:
		data = await self._get("/blogs", params={"page": 1, "limit": limit})
		return [post_from_payload(item) for item in _as_list(data, "blogs")][:limit]

	async def list_authors(self) -> list[models.AuthorRecord]:
		data = await self._get("/users/")
		return [author_from_payload(item) for item in _as_list(data, "users")]


class MemoryContentSource:
	"""In-process content source with the same matching rules as the API.

	`calls` counts every lookup by method name so tests can assert on I/O.
	"""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.posts: list[models.PostRecord] = []
		self.authors: list[models.AuthorRecord] = []
		self.calls: Counter[str] = Counter()

	async def reset(self) -> None:
		async with self._lock:
			self.posts = []
			self.authors = []
			self.calls.clear()

	async def seed(
		self,
		*,
		posts: Iterable[models.PostRecord] | None = None,
		authors: Iterable[models.AuthorRecord] | None = None,
	) -> None:
		async with self._lock:
			self.posts = list(posts or [])
			self.authors = list(authors or [])

	def _live_posts(self) -> list[models.PostRecord]:
		return [post for post in self.posts if not post.is_deleted]

	async def posts_by_title(self, title: str) -> list[models.PostRecord]:
		self.calls["posts_by_title"] += 1
		needle = title.strip().lower()
		async with self._lock:
			return [post for post in self._live_posts() if needle in post.title.lower()]

	async def posts_by_content(self, text: str) -> list[models.PostRecord]:
		self.calls["posts_by_content"] += 1
		needle = text.strip().lower()
		async with self._lock:
			return [post for post in self._live_posts() if needle in post.content.lower()]

	async def posts_by_tag(self, tag: str) -> list[models.PostRecord]:
		self.calls["posts_by_tag"] += 1
		wanted = {part.strip().lower() for part in tag.split(",") if part.strip()}
		async with self._lock:
			return [
				post
				for post in self._live_posts()
				if wanted.intersection(existing.lower() for existing in post.tags)
			]

	async def author_by_email(self, email: str) -> Optional[models.AuthorRecord]:
		self.calls["author_by_email"] += 1
		needle = email.strip().lower()
		async with self._lock:
			for author in self.authors:
				if (author.email or "").lower() == needle:
					return author
		return None

	async def author_by_username(self, username: str) -> Optional[models.AuthorRecord]:
		self.calls["author_by_username"] += 1
		needle = username.strip().lower()
		async with self._lock:
			for author in self.authors:
				if (author.username or "").lower() == needle:
					return author
		return None

	async def list_posts(self, *, limit: int) -> list[models.PostRecord]:
		self.calls["list_posts"] += 1
		async with self._lock:
			return self._live_posts()[:limit]

	async def list_authors(self) -> list[models.AuthorRecord]:
		self.calls["list_authors"] += 1
		async with self._lock:
			return list(self.authors)


_MEMORY = MemoryContentSource()


def memory_source() -> MemoryContentSource:
	return _MEMORY


def default_source() -> ContentSource:
	"""HTTP source when an upstream API is configured, else the memory store."""

	if settings.content_api_base_url:
		return HttpContentSource()
	return _MEMORY


async def seed_memory_store(
	*,
	posts: Iterable[models.PostRecord] | None = None,
	authors: Iterable[models.AuthorRecord] | None = None,
) -> None:
	await _MEMORY.seed(posts=posts, authors=authors)


async def reset_memory_state() -> None:
	await _MEMORY.reset()
