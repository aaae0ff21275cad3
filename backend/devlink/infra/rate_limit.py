"""Fixed-window rate limiting backed by Redis counters."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from devlink.infra.redis import redis_client


@dataclass(frozen=True, slots=True)
class WindowUsage:
	count: int
	limit: int
	reset_in: int

	@property
	def allowed(self) -> bool:
		return self.count <= self.limit


def _window_key(kind: str, actor_id: str, slot: int, window: int) -> str:
	return f"rl:{kind}:{actor_id}:{window}:{slot}"


async def hit(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> WindowUsage:
	"""Count one attempt in the current window and report the window's usage."""
	now = now if now is not None else time.time()
	window = max(1, int(window_seconds))
	slot = int(now // window)
	key = _window_key(kind, actor_id, slot, window)
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, window)
		count, _ = await pipe.execute()
	reset_in = window - int(now % window)
	return WindowUsage(count=int(count), limit=limit, reset_in=reset_in)


async def allow(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> bool:
	"""Return True when the operation is still within the allowed budget."""
	if limit <= 0:
		return False
	usage = await hit(kind, actor_id, limit=limit, window_seconds=window_seconds, now=now)
	return usage.allowed
