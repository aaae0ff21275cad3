"""Socket.IO namespace for one-to-one chat."""

from __future__ import annotations

import logging
from typing import Optional

import socketio
from socketio.exceptions import ConnectionRefusedError

from devlink.domain.chat import schemas
from devlink.domain.chat.controller import ChatSessionController
from devlink.domain.chat.exceptions import ChatError
from devlink.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

CHAT_NAMESPACE = "/chat"


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


def handshake_token(environ: dict, auth: Optional[dict]) -> Optional[str]:
	"""Pull the bearer credential from the Socket.IO auth payload or headers."""
	scope = environ.get("asgi.scope", environ)
	auth_payload = auth if isinstance(auth, dict) else {}
	token = auth_payload.get("token")
	if token:
		return str(token)
	auth_header = _header(scope, "authorization")
	if auth_header and auth_header.lower().startswith("bearer "):
		return auth_header.split(" ", 1)[1].strip()
	return None


class ChatNamespace(socketio.AsyncNamespace):
	"""Adapts Socket.IO callbacks onto the chat session controller."""

	def __init__(self, controller: ChatSessionController, namespace: str = CHAT_NAMESPACE) -> None:
		super().__init__(namespace)
		self.controller = controller
		controller.bind(self)

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		token = handshake_token(environ, auth)
		try:
			await self.controller.connect(sid, token)
		except ChatError as exc:
			logger.info("chat handshake refused", extra={"sid": sid, "code": exc.code})
			raise ConnectionRefusedError(exc.message, {"code": exc.code}) from None
		obs_metrics.socket_connected(self.namespace)

	async def on_disconnect(self, sid: str, reason: Optional[str] = None) -> None:
		if self.controller.connection(sid) is None:
			return
		obs_metrics.socket_disconnected(self.namespace)
		await self.controller.disconnect(sid)

	async def on_joinChat(self, sid: str, payload: dict | None = None) -> None:
		obs_metrics.socket_event(self.namespace, schemas.JOIN_CHAT)
		await self.controller.handle_event(sid, schemas.JOIN_CHAT, payload)

	async def on_sendMessage(self, sid: str, payload: dict | None = None) -> None:
		obs_metrics.socket_event(self.namespace, schemas.SEND_MESSAGE)
		await self.controller.handle_event(sid, schemas.SEND_MESSAGE, payload)

	async def on_leaveChat(self, sid: str, payload: dict | None = None) -> None:
		obs_metrics.socket_event(self.namespace, schemas.LEAVE_CHAT)
		await self.controller.handle_event(sid, schemas.LEAVE_CHAT, payload)
