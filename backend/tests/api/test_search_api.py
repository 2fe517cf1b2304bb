from datetime import datetime, timedelta, timezone

import pytest

from inkwell.domain.search import models
from inkwell.domain.search.clients import memory_source, seed_memory_store
from inkwell.settings import settings


async def _seed():
	created = datetime.now(timezone.utc) - timedelta(days=30)
	await seed_memory_store(
		posts=[
			models.PostRecord(post_id="p1", title="React", tags=["reactjs"], created_at=created),
			models.PostRecord(post_id="p2", title="Vue basics", tags=["vue"], created_at=created),
		],
		authors=[models.AuthorRecord(author_id="a1", name="React Fan", email="fan@example.com")],
	)


@pytest.mark.asyncio
async def test_search_endpoint_returns_scored_items(api_client):
	await _seed()

	response = await api_client.get("/search", params={"q": "react", "filter": "all", "limit": 20})

	assert response.status_code == 200
	payload = response.json()
	assert payload["q"] == "react"
	assert payload["filter"] == "all"
	assert payload["items"][0] == {
		"kind": "post",
		"id": "p1",
		"title": "React",
		"content": "",
		"author_id": None,
		"author_name": None,
		"tags": ["reactjs"],
		"genre": None,
		"views": 0,
		"created_at": payload["items"][0]["created_at"],
		"relevance": 100,
	}
	assert {item["kind"] for item in payload["items"]} == {"post", "author", "tag"}
	assert "X-Request-Id" in response.headers


@pytest.mark.asyncio
async def test_none_filter_and_blank_term_do_no_io(api_client):
	await _seed()

	none_filter = await api_client.get("/search", params={"q": "react", "filter": "none"})
	blank = await api_client.get("/search", params={"q": "  "})

	assert none_filter.json()["items"] == []
	assert blank.json()["items"] == []
	assert sum(memory_source().calls.values()) == 0


@pytest.mark.asyncio
async def test_cache_stats_and_clear(api_client):
	await _seed()
	await api_client.get("/search", params={"q": "react", "filter": "title", "limit": 5})
	await api_client.get("/search", params={"q": "vue", "filter": "title", "limit": 5})

	stats = (await api_client.get("/search/cache/stats")).json()
	assert stats["size"] == 2
	assert sorted(stats["keys"]) == ["react|title|5", "vue|title|5"]

	targeted = await api_client.delete("/search/cache", params={"q": "React", "filter": "title", "limit": 5})
	assert targeted.json() == {"cleared": 1}

	cleared = await api_client.delete("/search/cache")
	assert cleared.json() == {"cleared": 1}
	assert (await api_client.get("/search/cache/stats")).json() == {"size": 0, "keys": []}


@pytest.mark.asyncio
async def test_limit_validation_carries_request_id(api_client):
	response = await api_client.get("/search", params={"q": "react", "limit": 0}, headers={"X-Request-Id": "req-42"})

	assert response.status_code == 422
	payload = response.json()
	assert payload["detail"] == "validation_error"
	assert payload["request_id"] == "req-42"


@pytest.mark.asyncio
async def test_limit_bound_follows_configured_maximum(api_client, monkeypatch):
	await _seed()
	monkeypatch.setattr(settings, "search_max_limit", 150)

	accepted = await api_client.get("/search", params={"q": "react", "filter": "title", "limit": 120})
	rejected = await api_client.get("/search", params={"q": "react", "filter": "title", "limit": 151})

	assert accepted.status_code == 200
	assert [item["id"] for item in accepted.json()["items"]] == ["p1"]
	assert rejected.status_code == 422
	assert rejected.json()["errors"][0]["loc"] == ["query", "limit"]


@pytest.mark.asyncio
async def test_feed_recommendation_endpoint(api_client):
	now = datetime.now(timezone.utc)
	body = {
		"viewer": {"favorite_genres": ["Technology"]},
		"top_n": 2,
		"candidates": [
			{"post_id": "old", "created_at": (now - timedelta(days=40)).isoformat(), "views": 500, "genre": "Technology"},
			{"post_id": "new", "created_at": (now - timedelta(days=1)).isoformat(), "views": 50, "genre": "Technology"},
			{"post_id": "gone", "created_at": now.isoformat(), "views": 900, "is_deleted": True},
		],
	}

	response = await api_client.post("/feed/recommended", json=body)

	assert response.status_code == 200
	items = response.json()["items"]
	assert [item["post_id"] for item in items] == ["new", "old"]
	assert items[0]["score"] > items[1]["score"]


@pytest.mark.asyncio
async def test_health_and_metrics(api_client):
	live = await api_client.get("/health/live")
	assert live.status_code == 200
	assert live.json()["status"] == "ok"

	metrics = await api_client.get("/metrics")
	assert metrics.status_code == 200
	assert "inkwell_search_queries_total" in metrics.text
