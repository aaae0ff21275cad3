"""Presence tables used to route chat notifications.

Presence is a routing optimisation only. It records, per user, the
transport session currently serving them and the peer they are viewing.
Nothing here is a source of truth; an empty table after a restart is valid.
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import WatchError

from devlink.infra.redis import RedisProxy
from devlink.obs import metrics as obs_metrics

_USER_KEY = "chat:presence:{user_id}"


class PresenceTable(Protocol):
	async def on_connect(self, user_id: str, session: str) -> None:
		...

	async def on_join(self, user_id: str, peer_id: str) -> None:
		...

	async def on_leave(self, user_id: str) -> None:
		...

	async def on_disconnect(self, user_id: str, *, session: Optional[str] = None) -> None:
		...

	async def session_of(self, user_id: str) -> Optional[str]:
		...

	async def active_peer_of(self, user_id: str) -> Optional[str]:
		...


class InMemoryPresenceTable:
	"""Dict-backed presence for a single process.

	Each method touches only its own key and never awaits between reading
	and writing, so updates are atomic per key under the event loop.
	"""

	def __init__(self) -> None:
		self._sessions: Dict[str, str] = {}
		self._peers: Dict[str, str] = {}

	async def on_connect(self, user_id: str, session: str) -> None:
		self._sessions[user_id] = session
		self._peers.pop(user_id, None)
		obs_metrics.presence_online(len(self._sessions))

	async def on_join(self, user_id: str, peer_id: str) -> None:
		if user_id in self._sessions:
			self._peers[user_id] = peer_id

	async def on_leave(self, user_id: str) -> None:
		self._peers.pop(user_id, None)

	async def on_disconnect(self, user_id: str, *, session: Optional[str] = None) -> None:
		# A stale session must not evict the one that replaced it.
		if session is not None and self._sessions.get(user_id) not in (None, session):
			return
		self._sessions.pop(user_id, None)
		self._peers.pop(user_id, None)
		obs_metrics.presence_online(len(self._sessions))

	async def session_of(self, user_id: str) -> Optional[str]:
		return self._sessions.get(user_id)

	async def active_peer_of(self, user_id: str) -> Optional[str]:
		return self._peers.get(user_id)


class RedisPresenceTable:
	"""Presence shared by several processes through one Redis hash per user.

	Used together with a Redis-backed Socket.IO client manager so that a
	session id registered by one process can be addressed from another.
	"""

	def __init__(self, redis: Redis | RedisProxy, *, ttl_seconds: int = 86400) -> None:
		self._redis = redis
		self.ttl_seconds = ttl_seconds

	@staticmethod
	def _user_key(user_id: str) -> str:
		return _USER_KEY.format(user_id=user_id)

	async def on_connect(self, user_id: str, session: str) -> None:
		key = self._user_key(user_id)
		async with self._redis.pipeline(transaction=True) as pipe:
			pipe.delete(key)
			pipe.hset(key, mapping={"sid": session})
			pipe.expire(key, self.ttl_seconds)
			await pipe.execute()

	async def on_join(self, user_id: str, peer_id: str) -> None:
		key = self._user_key(user_id)
		async with self._redis.pipeline(transaction=True) as pipe:
			try:
				await pipe.watch(key)
				# A peer is only recorded next to a live session.
				if await pipe.hget(key, "sid") is None:
					await pipe.unwatch()
					return
				pipe.multi()
				pipe.hset(key, "peer", peer_id)
				pipe.expire(key, self.ttl_seconds)
				await pipe.execute()
			except WatchError:
				# Disconnected or reconnected concurrently; the new state wins.
				return

	async def on_leave(self, user_id: str) -> None:
		await self._redis.hdel(self._user_key(user_id), "peer")

	async def on_disconnect(self, user_id: str, *, session: Optional[str] = None) -> None:
		key = self._user_key(user_id)
		if session is None:
			await self._redis.delete(key)
			return
		async with self._redis.pipeline(transaction=True) as pipe:
			try:
				await pipe.watch(key)
				current = await pipe.hget(key, "sid")
				if current is not None and current != session:
					await pipe.unwatch()
					return
				pipe.multi()
				pipe.delete(key)
				await pipe.execute()
			except WatchError:
				# The key changed underneath us, i.e. the user reconnected.
				return

	async def session_of(self, user_id: str) -> Optional[str]:
		return await self._redis.hget(self._user_key(user_id), "sid")

	async def active_peer_of(self, user_id: str) -> Optional[str]:
		return await self._redis.hget(self._user_key(user_id), "peer")
