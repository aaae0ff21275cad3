"""Protocol state machine driving each chat connection.

A connection is created only after a successful handshake (Authenticated),
moves in and out of a channel (InChannel) as the client switches peers, and
ends on disconnect. Every actionable event re-checks that the identity it
names is the identity bound at handshake time.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

from devlink.domain.chat import schemas
from devlink.domain.chat.channels import derive_channel_id
from devlink.domain.chat.exceptions import (
	AuthenticationError,
	AuthorizationError,
	ChatError,
	PersistenceFailure,
	RateLimited,
	ValidationError,
	authentication_error,
	identity_mismatch,
	presence_unavailable,
)
from devlink.domain.chat.presence import PresenceTable
from devlink.domain.chat.schemas import JoinChat, LeaveChat, SendMessage
from devlink.domain.chat.store import MessageStore
from devlink.domain.identity.models import UserIdentity, same_user
from devlink.domain.identity.verifier import InvalidToken, TokenVerifier
from devlink.domain.social.gate import SocialGraphGate
from devlink.obs import logging as obs_logging
from devlink.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

SendThrottle = Callable[[str], Awaitable[bool]]


class ChatTransport(Protocol):
	"""The slice of a Socket.IO namespace the controller drives."""

	async def emit(self, event: str, data: Any = None, *, room: Optional[str] = None, skip_sid: Optional[str] = None) -> None:
		...

	async def enter_room(self, sid: str, room: str) -> None:
		...

	async def leave_room(self, sid: str, room: str) -> None:
		...


class ConnectionState(str, Enum):
	AUTHENTICATED = "authenticated"
	IN_CHANNEL = "in_channel"
	CLOSED = "closed"


@dataclass(slots=True)
class ChatConnection:
	sid: str
	identity: UserIdentity
	state: ConnectionState = ConnectionState.AUTHENTICATED
	peer_id: Optional[str] = None
	channel_id: Optional[str] = None
	lock: asyncio.Lock = field(default_factory=asyncio.Lock)

	@property
	def user_id(self) -> str:
		return self.identity.id

	@property
	def closed(self) -> bool:
		return self.state is ConnectionState.CLOSED


class ChatSessionController:
	def __init__(
		self,
		*,
		verifier: TokenVerifier,
		gate: SocialGraphGate,
		store: MessageStore,
		presence: PresenceTable,
		throttle: Optional[SendThrottle] = None,
	) -> None:
		self._verifier = verifier
		self._gate = gate
		self._store = store
		self._presence = presence
		self._throttle = throttle
		self._transport: Optional[ChatTransport] = None
		self._connections: Dict[str, ChatConnection] = {}

	def bind(self, transport: ChatTransport) -> None:
		self._transport = transport

	@property
	def transport(self) -> ChatTransport:
		if self._transport is None:
			raise RuntimeError("chat controller has no transport bound")
		return self._transport

	def connection(self, sid: str) -> Optional[ChatConnection]:
		return self._connections.get(sid)

	async def connect(self, sid: str, token: Optional[str]) -> ChatConnection:
		"""Authenticate and register a new transport session.

		Raises AuthenticationError for bad credentials and ChatError when presence
		cannot be recorded; no connection state exists unless this returns.
		"""
		try:
			identity = await self._verifier.verify(token)
		except InvalidToken as exc:
			obs_metrics.inc_handshake_reject(exc.reason)
			raise authentication_error(exc.reason) from None
		try:
			await self._presence.on_connect(identity.id, sid)
		except Exception:
			logger.error("presence registration failed", exc_info=True, extra={"sid": sid})
			obs_metrics.inc_handshake_reject("presence_unavailable")
			raise presence_unavailable() from None
		connection = ChatConnection(sid=sid, identity=identity)
		self._connections[sid] = connection
		logger.info("chat connect", extra={"sid": sid, "user_id": identity.id})
		return connection

	async def disconnect(self, sid: str) -> None:
		"""Tear down a session. Safe to call for unknown or already closed sids."""
		connection = self._connections.pop(sid, None)
		if connection is None:
			return
		# Not serialised behind the connection lock: cleanup must not wait on
		# an in-flight event.
		connection.state = ConnectionState.CLOSED
		await self._presence.on_disconnect(connection.user_id, session=sid)
		logger.info("chat disconnect", extra={"sid": sid, "user_id": connection.user_id})

	async def handle_event(self, sid: str, name: str, payload: Any) -> None:
		"""Validate and dispatch one client event, reporting failures to the sender."""
		connection = self._connections.get(sid)
		tokens = obs_logging.bind_context(
			sid=sid,
			event=name,
			user_id=connection.user_id if connection else None,
		)
		try:
			if connection is None:
				raise AuthenticationError()
			event = schemas.parse_client_event(name, payload)
			async with connection.lock:
				if connection.closed:
					return
				if isinstance(event, JoinChat):
					await self._join(connection, event)
				elif isinstance(event, SendMessage):
					await self._send(connection, event)
				else:
					await self._leave(connection, event)
		except ChatError as exc:
			logger.info("chat event rejected", extra={"code": exc.code})
			await self._emit_error(sid, connection, exc)
		except Exception:
			logger.exception("chat event failed")
			await self._emit_error(sid, connection, ChatError())
		finally:
			obs_logging.reset_context(tokens)

	def _assert_self(self, connection: ChatConnection, user_id: str) -> None:
		if not same_user(connection.identity, user_id):
			raise identity_mismatch()

	async def _join(self, connection: ChatConnection, event: JoinChat) -> None:
		self._assert_self(connection, event.user_id)
		peer_id = event.target_user_id
		if peer_id == connection.user_id:
			raise ValidationError("self_chat", "You cannot chat with yourself")
		channel_id = derive_channel_id(connection.user_id, peer_id)
		if connection.channel_id and connection.channel_id != channel_id:
			await self.transport.leave_room(connection.sid, connection.channel_id)
		await self.transport.enter_room(connection.sid, channel_id)
		await self._presence.on_join(connection.user_id, peer_id)
		connection.peer_id = peer_id
		connection.channel_id = channel_id
		connection.state = ConnectionState.IN_CHANNEL
		logger.info("chat join", extra={"peer_id": peer_id})

		joined = schemas.UserJoinedPayload(user_id=connection.user_id, first_name=connection.identity.display_name)
		await self.transport.emit(schemas.USER_JOINED, joined.to_wire(), room=channel_id, skip_sid=connection.sid)

		try:
			history = await self._store.load_history(connection.user_id, peer_id)
		except PersistenceFailure:
			obs_metrics.inc_chat_history("failed")
			raise
		obs_metrics.inc_chat_history("ok")
		await self.transport.emit(schemas.CHAT_HISTORY, schemas.history_to_wire(history), room=connection.sid)

	async def _send(self, connection: ChatConnection, event: SendMessage) -> None:
		try:
			self._assert_self(connection, event.user_id)
			peer_id = event.target_user_id
			if peer_id == connection.user_id:
				raise ValidationError("self_chat", "You cannot chat with yourself")
			if self._throttle is not None and not await self._throttle(connection.user_id):
				raise RateLimited()
			try:
				authorized = await self._gate.is_authorized(connection.user_id, peer_id)
			except Exception:
				logger.error("connection lookup failed", exc_info=True)
				raise PersistenceFailure() from None
			if not authorized:
				raise AuthorizationError()
			message = await self._store.append_message(
				connection.user_id,
				peer_id,
				connection.user_id,
				event.text,
				sender_name=connection.identity.display_name,
			)
		except AuthorizationError:
			obs_metrics.inc_chat_send("unauthorized")
			raise
		except PersistenceFailure:
			obs_metrics.inc_chat_send("failed")
			raise
		except RateLimited:
			obs_metrics.inc_chat_send("rate_limited")
			raise
		except ValidationError:
			obs_metrics.inc_chat_send("invalid")
			raise
		obs_metrics.inc_chat_send("ok")

		payload = schemas.MessagePayload.from_model(message)
		channel_id = derive_channel_id(connection.user_id, peer_id)
		await self.transport.emit(schemas.RECEIVED_MESSAGE, payload.to_wire(), room=channel_id)

		peer_session = await self._presence.session_of(peer_id)
		if peer_session is None:
			return
		if await self._presence.active_peer_of(peer_id) == connection.user_id:
			return
		await self.transport.emit(schemas.MESSAGE_NOTIFICATION, payload.to_notification(), room=peer_session)
		obs_metrics.inc_chat_notification()

	async def _leave(self, connection: ChatConnection, event: LeaveChat) -> None:
		self._assert_self(connection, event.user_id)
		if connection.state is not ConnectionState.IN_CHANNEL or connection.peer_id != event.target_user_id:
			raise ValidationError("not_in_chat", "You are not in this chat")
		await self.transport.leave_room(connection.sid, connection.channel_id)
		await self._presence.on_leave(connection.user_id)
		connection.peer_id = None
		connection.channel_id = None
		connection.state = ConnectionState.AUTHENTICATED
		logger.info("chat leave", extra={"peer_id": event.target_user_id})

	async def _emit_error(self, sid: str, connection: Optional[ChatConnection], error: ChatError) -> None:
		if connection is not None and connection.closed:
			return
		await self.transport.emit(schemas.ERROR, error.to_payload(), room=sid)
