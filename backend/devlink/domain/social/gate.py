"""Authorization check that gates every chat message."""

from __future__ import annotations

from devlink.domain.social.edges import ConnectionEdgeStore


class SocialGraphGate:
	"""Answers whether two users hold an accepted connection.

	The answer is read from the store on every call; edges can be removed
	between two messages, so results are never cached.
	"""

	def __init__(self, edges: ConnectionEdgeStore) -> None:
		self._edges = edges

	async def is_authorized(self, user_a: str, user_b: str) -> bool:
		if not user_a or not user_b or str(user_a) == str(user_b):
			return False
		edge = await self._edges.find_accepted(str(user_a), str(user_b))
		return edge is not None
