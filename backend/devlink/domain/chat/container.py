"""Wiring for the chat subsystem.

Everything is built once per process by `build_services` and handed to the
Socket.IO namespace and HTTP routes explicitly; nothing here is read as
ambient state by the protocol logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from devlink.domain.chat.controller import ChatSessionController, SendThrottle
from devlink.domain.chat.presence import InMemoryPresenceTable, PresenceTable, RedisPresenceTable
from devlink.domain.chat.store import (
	ChatRecordRepository,
	InMemoryChatRecordRepository,
	MessageStore,
	PostgresChatRecordRepository,
)
from devlink.domain.identity.accounts import (
	AccountRepository,
	InMemoryAccountRepository,
	PostgresAccountRepository,
)
from devlink.domain.identity.verifier import TokenVerifier
from devlink.domain.social.edges import (
	ConnectionEdgeStore,
	InMemoryConnectionEdgeStore,
	PostgresConnectionEdgeStore,
)
from devlink.domain.social.gate import SocialGraphGate
from devlink.infra import rate_limit
from devlink.infra.redis import redis_client
from devlink.settings import settings


@dataclass(slots=True)
class ChatServices:
	accounts: AccountRepository
	edges: ConnectionEdgeStore
	records: ChatRecordRepository
	presence: PresenceTable
	verifier: TokenVerifier
	gate: SocialGraphGate
	store: MessageStore
	controller: ChatSessionController


async def _send_throttle(user_id: str) -> bool:
	return await rate_limit.allow(
		"chat_send",
		user_id,
		limit=settings.chat_send_rate_limit,
		window_seconds=settings.chat_send_rate_window_seconds,
	)


def build_presence(backend: Optional[str] = None) -> PresenceTable:
	backend = backend or settings.chat_presence_backend
	if backend == "redis":
		return RedisPresenceTable(redis_client, ttl_seconds=settings.chat_presence_ttl_seconds)
	if backend == "memory":
		return InMemoryPresenceTable()
	raise ValueError(f"unknown presence backend: {backend}")


def build_services(
	*,
	storage: Optional[str] = None,
	presence: Optional[PresenceTable] = None,
	throttle: Optional[SendThrottle] = _send_throttle,
) -> ChatServices:
	storage = storage or settings.chat_storage_backend
	accounts: AccountRepository
	edges: ConnectionEdgeStore
	records: ChatRecordRepository
	if storage == "postgres":
		accounts = PostgresAccountRepository()
		edges = PostgresConnectionEdgeStore()
		records = PostgresChatRecordRepository()
	elif storage == "memory":
		accounts = InMemoryAccountRepository()
		edges = InMemoryConnectionEdgeStore()
		records = InMemoryChatRecordRepository()
	else:
		raise ValueError(f"unknown storage backend: {storage}")
	presence_table = presence if presence is not None else build_presence()
	verifier = TokenVerifier(accounts)
	gate = SocialGraphGate(edges)
	store = MessageStore(records, accounts)
	controller = ChatSessionController(
		verifier=verifier,
		gate=gate,
		store=store,
		presence=presence_table,
		throttle=throttle,
	)
	return ChatServices(
		accounts=accounts,
		edges=edges,
		records=records,
		presence=presence_table,
		verifier=verifier,
		gate=gate,
		store=store,
		controller=controller,
	)
