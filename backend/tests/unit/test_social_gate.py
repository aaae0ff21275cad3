import pytest

from devlink.domain.social import ConnectionEdge, ConnectionStatus, InMemoryConnectionEdgeStore, SocialGraphGate


@pytest.mark.asyncio
async def test_accepted_edge_authorizes_both_directions():
	edges = InMemoryConnectionEdgeStore()
	gate = SocialGraphGate(edges)
	await edges.put(ConnectionEdge(from_user_id="alice", to_user_id="bob", status=ConnectionStatus.ACCEPTED))

	assert await gate.is_authorized("alice", "bob") is True
	assert await gate.is_authorized("bob", "alice") is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
	"status",
	[ConnectionStatus.INTERESTED, ConnectionStatus.IGNORED, ConnectionStatus.REJECTED],
)
async def test_non_accepted_edges_do_not_authorize(status):
	edges = InMemoryConnectionEdgeStore()
	gate = SocialGraphGate(edges)
	await edges.put(ConnectionEdge(from_user_id="alice", to_user_id="bob", status=status))

	assert await gate.is_authorized("alice", "bob") is False


@pytest.mark.asyncio
async def test_gate_sees_removed_edges_immediately():
	edges = InMemoryConnectionEdgeStore()
	gate = SocialGraphGate(edges)
	await edges.put(ConnectionEdge(from_user_id="alice", to_user_id="bob", status=ConnectionStatus.ACCEPTED))
	assert await gate.is_authorized("alice", "bob") is True

	await edges.remove("bob", "alice")
	assert await gate.is_authorized("alice", "bob") is False


@pytest.mark.asyncio
async def test_gate_rejects_self_and_empty_ids():
	gate = SocialGraphGate(InMemoryConnectionEdgeStore())
	assert await gate.is_authorized("alice", "alice") is False
	assert await gate.is_authorized("", "bob") is False


def test_edge_to_self_is_invalid():
	with pytest.raises(ValueError):
		ConnectionEdge(from_user_id="alice", to_user_id="alice", status=ConnectionStatus.ACCEPTED)
