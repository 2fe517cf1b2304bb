import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from inkwell.domain.search.clients import reset_memory_state
from inkwell.domain.search.service import set_service
from inkwell.main import app
from inkwell.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from inkwell.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest_asyncio.fixture(autouse=True)
async def memory_store():
	await reset_memory_state()
	set_service(None)
	try:
		yield
	finally:
		await reset_memory_state()
		set_service(None)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Pin settings that other tests or a local .env could change."""

	original_backend = settings.search_cache_backend
	original_base_url = settings.content_api_base_url
	settings.search_cache_backend = "memory"
	settings.content_api_base_url = None
	try:
		yield
	finally:
		settings.search_cache_backend = original_backend
		settings.content_api_base_url = original_base_url


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
