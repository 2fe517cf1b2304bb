from datetime import datetime, timezone

import httpx
import pytest

from inkwell.domain.search.cache import ResultCache
from inkwell.domain.search.clients import HttpContentSource, default_source, memory_source
from inkwell.domain.search.schemas import SearchQuery
from inkwell.domain.search.service import SearchService
from inkwell.settings import settings

BLOG = {
	"_id": "b1",
	"title": "Rust ownership",
	"content": "Borrowing rules explained",
	"author": {"_id": "u1", "name": "Ferris"},
	"tags": ["rust", "memory"],
	"genre": "Technology",
	"views": 12,
	"createdAt": "2026-02-01T10:00:00.000Z",
	"isDeleted": False,
}
USER = {"_id": "u1", "name": "Ferris", "username": "ferris", "email": "ferris@example.com"}


def _source(handler) -> HttpContentSource:
	client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://content.test")
	return HttpContentSource(client=client)


@pytest.mark.asyncio
async def test_unwraps_envelope_and_parses_posts():
	seen = []

	def handler(request: httpx.Request) -> httpx.Response:
		seen.append(request.url.raw_path.decode())
		return httpx.Response(200, json={"success": True, "data": [BLOG], "message": "ok"})

	source = _source(handler)
	posts = await source.posts_by_title("rust ownership")

	assert seen == ["/blogs/search/title/rust%20ownership"]
	assert len(posts) == 1
	post = posts[0]
	assert post.post_id == "b1"
	assert post.author_id == "u1"
	assert post.author_name == "Ferris"
	assert post.tags == ["rust", "memory"]
	assert post.created_at == datetime(2026, 2, 1, 10, 0, tzinfo=timezone.utc)
	await source.aclose()


@pytest.mark.asyncio
async def test_not_found_means_no_match():
	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(404, json={"success": False, "data": None, "message": "No blogs found"})

	source = _source(handler)

	assert await source.posts_by_tag("rust") == []
	assert await source.author_by_email("nobody@example.com") is None


@pytest.mark.asyncio
async def test_single_record_and_paginated_payloads():
	def handler(request: httpx.Request) -> httpx.Response:
		if request.url.path.startswith("/users/search/email/"):
			return httpx.Response(200, json={"success": True, "data": USER})
		if request.url.path == "/blogs":
			assert request.url.params["page"] == "1"
			assert request.url.params["limit"] == "50"
			return httpx.Response(200, json={"success": True, "data": {"blogs": [BLOG, BLOG], "total": 2}})
		if request.url.path == "/users/":
			return httpx.Response(200, json=[USER])
		return httpx.Response(404)

	source = _source(handler)

	author = await source.author_by_email("ferris@example.com")
	assert author is not None
	assert author.username == "ferris"
	assert len(await source.list_posts(limit=50)) == 2
	assert [item.author_id for item in await source.list_authors()] == ["u1"]


@pytest.mark.asyncio
async def test_server_errors_raise():
	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(500)

	with pytest.raises(httpx.HTTPStatusError):
		await _source(handler).posts_by_content("rust")


@pytest.mark.asyncio
async def test_service_survives_failing_endpoints():
	def handler(request: httpx.Request) -> httpx.Response:
		if request.url.path == "/blogs":
			return httpx.Response(200, json={"success": True, "data": {"blogs": [BLOG]}})
		if request.url.path.startswith("/blogs/search/"):
			return httpx.Response(503)
		raise httpx.ConnectError("user service unreachable", request=request)

	service = SearchService(_source(handler), ResultCache(ttl_seconds=60))
	results = await service.search(SearchQuery(term="rust", filter="all", limit=10))

	kinds = {item.kind for item in results}
	assert kinds == {"post", "tag"}
	titles = [item.title for item in results if item.kind == "post"]
	assert titles == ["Rust ownership"]


def test_default_source_selection(monkeypatch):
	assert default_source() is memory_source()
	monkeypatch.setattr(settings, "content_api_base_url", "http://content.test")
	assert isinstance(default_source(), HttpContentSource)
