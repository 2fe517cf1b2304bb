"""Redis connection for the shared search result cache.

`redis_client` is a proxy so the underlying client can be replaced (fakeredis
in tests) without re-importing modules that captured the proxy.
"""

from __future__ import annotations

import redis.asyncio as redis

from inkwell.settings import settings


class RedisProxy:
	"""Forwards attribute access to the current client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	def __getattr__(self, item):
		return getattr(self._client, item)


# Connections are opened lazily on first command
redis_client: RedisProxy = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)


async def close_redis() -> None:
	await redis_client.client.aclose()
