"""Redis client shared by presence, rate limiting and health checks.

Modules import the `redis_client` proxy once; the client behind it can be
swapped at runtime (fakeredis in tests) without touching those references.
"""

from __future__ import annotations

import redis.asyncio as redis

from devlink.settings import settings


class RedisProxy:
	"""Forwards attribute access to the current Redis client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def __getattr__(self, item):
		return getattr(self._client, item)


def _build_client(url: str) -> redis.Redis:
	return redis.from_url(url, decode_responses=True, health_check_interval=30)


redis_client: RedisProxy = RedisProxy(_build_client(settings.redis_url))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)


async def close_redis() -> None:
	await redis_client.client.aclose()
