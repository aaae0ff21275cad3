import asyncio
from unittest.mock import AsyncMock

import pytest

from devlink.domain.chat.channels import derive_channel_id
from devlink.domain.chat.controller import ChatSessionController, ConnectionState
from devlink.domain.chat.exceptions import AuthenticationError, ChatError
from devlink.domain.chat.presence import InMemoryPresenceTable
from devlink.domain.social.models import ConnectionStatus
from devlink.infra import jwt as jwt_helper


def issue_token(user_id, **claims):
	return jwt_helper.encode_access({"sub": user_id, **claims})


def _emits(transport, event):
	return [call for call in transport.emit.await_args_list if call.args[0] == event]


@pytest.fixture
def transport(services):
	mock = AsyncMock()
	services.controller.bind(mock)
	return mock


@pytest.fixture
def controller(services, transport) -> ChatSessionController:
	return services.controller


@pytest.mark.asyncio
async def test_connect_rejects_missing_and_invalid_tokens(controller):
	with pytest.raises(AuthenticationError) as missing:
		await controller.connect("sid-1", None)
	assert missing.value.code == "auth_required"

	with pytest.raises(AuthenticationError) as invalid:
		await controller.connect("sid-1", "not-a-jwt")
	assert invalid.value.code == "invalid_token"
	assert controller.connection("sid-1") is None


@pytest.mark.asyncio
async def test_join_announces_and_always_sends_history(controller, transport, services):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})

	channel = derive_channel_id("alice", "bob")
	transport.enter_room.assert_awaited_once_with("sid-a", channel)
	joined = _emits(transport, "userJoined")
	assert joined[0].args[1] == {"userId": "alice", "firstName": "Alice"}
	assert joined[0].kwargs == {"room": channel, "skip_sid": "sid-a"}
	history = _emits(transport, "chatHistory")
	assert history[0].args[1] == []
	assert history[0].kwargs["room"] == "sid-a"
	assert controller.connection("sid-a").state is ConnectionState.IN_CHANNEL
	assert await services.presence.active_peer_of("alice") == "bob"


@pytest.mark.asyncio
async def test_join_uses_authenticated_name_not_payload(controller, transport):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event(
		"sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob", "firstName": "Mallory"}
	)
	assert _emits(transport, "userJoined")[0].args[1]["firstName"] == "Alice"


@pytest.mark.asyncio
async def test_send_without_accepted_connection_is_refused(controller, transport, services, connect_users):
	await connect_users("alice", "bob", ConnectionStatus.INTERESTED)
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})
	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "hi"})

	errors = _emits(transport, "error")
	assert errors[0].args[1]["code"] == "not_connected"
	assert errors[0].kwargs["room"] == "sid-a"
	assert _emits(transport, "receivedMessage") == []
	assert await services.store.load_history("alice", "bob") == []


@pytest.mark.asyncio
async def test_send_persists_before_broadcast(controller, transport, services, connect_users):
	await connect_users("bob", "alice")
	await controller.connect("sid-a", issue_token("alice"))
	await controller.connect("sid-b", issue_token("bob"))
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})
	await controller.handle_event("sid-b", "joinChat", {"userId": "bob", "targetUserId": "alice"})
	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "hello"})
	await controller.handle_event("sid-b", "sendMessage", {"userId": "bob", "targetUserId": "alice", "text": "hey"})

	received = _emits(transport, "receivedMessage")
	assert [call.kwargs["room"] for call in received] == [derive_channel_id("alice", "bob")] * 2
	history = await services.store.load_history("alice", "bob")
	assert [call.args[1]["id"] for call in received] == [m.message_id for m in history]
	assert received[0].args[1]["senderId"] == {"_id": "alice", "firstName": "Alice"}
	assert received[0].args[1]["text"] == "hello"
	# Both users are viewing each other, so nobody is notified.
	assert _emits(transport, "messageNotification") == []


@pytest.mark.asyncio
async def test_notification_reaches_peer_viewing_elsewhere(controller, transport, connect_users):
	await connect_users("alice", "bob")
	await controller.connect("sid-a", issue_token("alice"))
	await controller.connect("sid-b", issue_token("bob"))
	await controller.handle_event("sid-b", "joinChat", {"userId": "bob", "targetUserId": "carol"})
	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "ping"})

	notifications = _emits(transport, "messageNotification")
	assert len(notifications) == 1
	assert notifications[0].kwargs == {"room": "sid-b"}
	assert notifications[0].args[1]["notification"] is True
	assert notifications[0].args[1]["text"] == "ping"


@pytest.mark.asyncio
async def test_no_notification_for_offline_peer(controller, transport, services, connect_users):
	await connect_users("alice", "bob")
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "later"})

	assert len(_emits(transport, "receivedMessage")) == 1
	assert _emits(transport, "messageNotification") == []
	assert [m.text for m in await services.store.load_history("bob", "alice")] == ["later"]


@pytest.mark.asyncio
async def test_spoofed_identity_is_rejected_without_side_effects(controller, transport, services, connect_users):
	await connect_users("bob", "carol")
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "sendMessage", {"userId": "bob", "targetUserId": "carol", "text": "fake"})
	await controller.handle_event("sid-a", "joinChat", {"userId": "bob", "targetUserId": "carol"})

	codes = [call.args[1]["code"] for call in _emits(transport, "error")]
	assert codes == ["identity_mismatch", "identity_mismatch"]
	assert await services.store.load_history("bob", "carol") == []
	transport.enter_room.assert_not_awaited()


@pytest.mark.asyncio
async def test_self_chat_is_rejected(controller, transport):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "alice"})
	assert _emits(transport, "error")[0].args[1]["code"] == "self_chat"


@pytest.mark.asyncio
async def test_malformed_payload_reports_error(controller, transport):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": ""})
	assert _emits(transport, "error")[0].args[1]["code"] == "invalid_payload"


@pytest.mark.asyncio
async def test_persistence_failure_is_reported_and_not_broadcast(controller, transport, services, connect_users):
	await connect_users("alice", "bob")
	services.records.append = AsyncMock(side_effect=ConnectionError("db down"))
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "lost"})

	error = _emits(transport, "error")[0].args[1]
	assert error == {"code": "send_failed", "message": "Failed to send message"}
	assert _emits(transport, "receivedMessage") == []


@pytest.mark.asyncio
async def test_throttled_sender_is_rate_limited(services, transport, connect_users):
	await connect_users("alice", "bob")
	controller = ChatSessionController(
		verifier=services.verifier,
		gate=services.gate,
		store=services.store,
		presence=services.presence,
		throttle=AsyncMock(return_value=False),
	)
	controller.bind(transport)
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "spam"})

	assert _emits(transport, "error")[0].args[1]["code"] == "rate_limited"
	assert await services.store.load_history("alice", "bob") == []


@pytest.mark.asyncio
async def test_switching_peer_leaves_previous_channel(controller, transport):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "carol"})

	transport.leave_room.assert_awaited_once_with("sid-a", derive_channel_id("alice", "bob"))
	assert controller.connection("sid-a").channel_id == derive_channel_id("alice", "carol")


@pytest.mark.asyncio
async def test_leave_chat(controller, transport, services):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "leaveChat", {"userId": "alice", "targetUserId": "bob"})
	assert _emits(transport, "error")[0].args[1]["code"] == "not_in_chat"

	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})
	await controller.handle_event("sid-a", "leaveChat", {"userId": "alice", "targetUserId": "bob"})

	transport.leave_room.assert_awaited_once_with("sid-a", derive_channel_id("alice", "bob"))
	assert controller.connection("sid-a").state is ConnectionState.AUTHENTICATED
	assert await services.presence.active_peer_of("alice") is None
	assert await services.presence.session_of("alice") == "sid-a"


@pytest.mark.asyncio
async def test_disconnect_clears_presence_and_is_idempotent(controller, transport, services):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})
	await controller.disconnect("sid-a")
	await controller.disconnect("sid-a")

	assert controller.connection("sid-a") is None
	assert await services.presence.session_of("alice") is None

	await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "x"})
	assert _emits(transport, "error")[-1].args[1]["code"] == "auth_required"


@pytest.mark.asyncio
async def test_reconnect_survives_stale_disconnect(controller, services):
	await controller.connect("sid-old", issue_token("alice"))
	await controller.connect("sid-new", issue_token("alice"))
	await controller.disconnect("sid-old")
	assert await services.presence.session_of("alice") == "sid-new"


@pytest.mark.asyncio
async def test_federated_users_chat_with_provider_ids(controller, transport, services, connect_users):
	await connect_users("github_77", "bob")
	token = issue_token("github_77", provider="github", provider_id="77", first_name="Octo")
	await controller.connect("sid-g", token)
	await controller.handle_event("sid-g", "sendMessage", {"userId": "github_77", "targetUserId": "bob", "text": "hi"})

	received = _emits(transport, "receivedMessage")[0].args[1]
	assert received["senderId"] == {"_id": "github_77", "firstName": "Octo"}
	history = await services.store.load_history("bob", "github_77")
	assert history[0].sender.first_name == "Octo"


@pytest.mark.asyncio
async def test_message_text_is_stored_and_broadcast_verbatim(controller, transport, services, connect_users):
	await connect_users("alice", "bob")
	await controller.connect("sid-a", issue_token("alice"))
	for text in ("    def f():\n", "   "):
		await controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": text})

	assert _emits(transport, "error") == []
	assert [call.args[1]["text"] for call in _emits(transport, "receivedMessage")] == ["    def f():\n", "   "]
	history = await services.store.load_history("alice", "bob")
	assert [m.text for m in history] == ["    def f():\n", "   "]


@pytest.mark.asyncio
async def test_spoofed_leave_keeps_channel(controller, transport, services):
	await controller.connect("sid-a", issue_token("alice"))
	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})
	await controller.handle_event("sid-a", "leaveChat", {"userId": "bob", "targetUserId": "alice"})

	assert _emits(transport, "error")[0].args[1]["code"] == "identity_mismatch"
	transport.leave_room.assert_not_awaited()
	assert await services.presence.active_peer_of("alice") == "bob"
	connection = controller.connection("sid-a")
	assert connection.state is ConnectionState.IN_CHANNEL
	assert connection.channel_id == derive_channel_id("alice", "bob")


@pytest.mark.asyncio
async def test_disconnect_cleans_up_during_failing_send(controller, transport, services, connect_users):
	await connect_users("alice", "bob")
	entered = asyncio.Event()
	release = asyncio.Event()

	async def _slow_failing_append(*args, **kwargs):
		entered.set()
		await release.wait()
		raise ConnectionError("db went away")

	services.records.append = _slow_failing_append
	await controller.connect("sid-a", issue_token("alice"))
	send = asyncio.create_task(
		controller.handle_event("sid-a", "sendMessage", {"userId": "alice", "targetUserId": "bob", "text": "hi"})
	)
	await asyncio.wait_for(entered.wait(), timeout=1)

	await controller.disconnect("sid-a")
	assert await services.presence.session_of("alice") is None
	assert controller.connection("sid-a") is None

	release.set()
	await asyncio.wait_for(send, timeout=1)

	assert _emits(transport, "error") == []
	assert _emits(transport, "receivedMessage") == []


@pytest.mark.asyncio
async def test_connect_leaves_no_state_when_presence_fails(services, transport):
	presence = InMemoryPresenceTable()
	presence.on_connect = AsyncMock(side_effect=ConnectionError("redis down"))
	controller = ChatSessionController(
		verifier=services.verifier,
		gate=services.gate,
		store=services.store,
		presence=presence,
	)
	controller.bind(transport)

	with pytest.raises(ChatError) as exc:
		await controller.connect("sid-a", issue_token("alice"))
	assert exc.value.code == "presence_unavailable"
	assert controller.connection("sid-a") is None

	await controller.handle_event("sid-a", "joinChat", {"userId": "alice", "targetUserId": "bob"})
	assert _emits(transport, "error")[0].args[1]["code"] == "auth_required"
	transport.enter_room.assert_not_awaited()
