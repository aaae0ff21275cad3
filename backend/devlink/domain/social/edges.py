"""Read access to the connection-request store."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional, Protocol, Tuple

from devlink.domain.social.models import ConnectionEdge, ConnectionStatus
from devlink.infra.postgres import get_pool


class ConnectionEdgeStore(Protocol):
	async def find_accepted(self, user_a: str, user_b: str) -> Optional[ConnectionEdge]:
		...


class InMemoryConnectionEdgeStore:
	"""Edge store keyed by (from, to); the request flow is simulated via put/remove."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._edges: Dict[Tuple[str, str], ConnectionEdge] = {}

	async def put(self, edge: ConnectionEdge) -> ConnectionEdge:
		async with self._lock:
			self._edges[(edge.from_user_id, edge.to_user_id)] = edge
			return edge

	async def remove(self, user_a: str, user_b: str) -> None:
		async with self._lock:
			self._edges.pop((str(user_a), str(user_b)), None)
			self._edges.pop((str(user_b), str(user_a)), None)

	async def find_accepted(self, user_a: str, user_b: str) -> Optional[ConnectionEdge]:
		async with self._lock:
			for key in ((str(user_a), str(user_b)), (str(user_b), str(user_a))):
				edge = self._edges.get(key)
				if edge is not None and edge.status is ConnectionStatus.ACCEPTED:
					return edge
			return None


class PostgresConnectionEdgeStore:
	async def find_accepted(self, user_a: str, user_b: str) -> Optional[ConnectionEdge]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				SELECT from_user_id, to_user_id, status, created_at, updated_at
				FROM connection_requests
				WHERE status = 'accepted'
					AND ((from_user_id = $1 AND to_user_id = $2)
						OR (from_user_id = $2 AND to_user_id = $1))
				LIMIT 1
				""",
				str(user_a),
				str(user_b),
			)
		return ConnectionEdge.from_record(dict(row)) if row else None
