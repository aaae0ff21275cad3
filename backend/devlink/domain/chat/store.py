"""Ordered message history per unordered participant pair."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

import ulid

from devlink.domain.chat.exceptions import PersistenceFailure, history_unavailable
from devlink.domain.chat.models import ChatMessage, ParticipantPair, StoredMessage
from devlink.domain.identity.accounts import AccountRepository
from devlink.domain.identity.models import DEFAULT_DISPLAY_NAME
from devlink.infra.postgres import get_pool

logger = logging.getLogger(__name__)


class ChatRecordRepository(Protocol):
	async def append(
		self,
		pair: ParticipantPair,
		sender_id: str,
		sender_name: str | None,
		text: str,
		created_at: datetime,
	) -> StoredMessage:
		...

	async def list_messages(self, pair: ParticipantPair) -> List[StoredMessage]:
		...


class InMemoryChatRecordRepository:
	"""Process-local chat records, used by tests and the `memory` storage backend."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._records: Dict[ParticipantPair, List[StoredMessage]] = {}

	async def append(
		self,
		pair: ParticipantPair,
		sender_id: str,
		sender_name: str | None,
		text: str,
		created_at: datetime,
	) -> StoredMessage:
		async with self._lock:
			messages = self._records.setdefault(pair, [])
			seq = messages[-1].seq + 1 if messages else 1
			message = StoredMessage(
				message_id=str(ulid.new()),
				seq=seq,
				sender_id=sender_id,
				sender_name=sender_name,
				text=text,
				created_at=created_at,
				updated_at=created_at,
			)
			messages.append(message)
			return message

	async def list_messages(self, pair: ParticipantPair) -> List[StoredMessage]:
		async with self._lock:
			return list(self._records.get(pair, []))


class PostgresChatRecordRepository:
	"""Chat records backed by asyncpg.

	`chat_records.last_seq` is bumped by the upsert that locates the record,
	so concurrent appends to one pair serialise on that row and get
	strictly increasing sequence numbers.
	"""

	async def append(
		self,
		pair: ParticipantPair,
		sender_id: str,
		sender_name: str | None,
		text: str,
		created_at: datetime,
	) -> StoredMessage:
		pool = await get_pool()
		message_id = str(ulid.new())
		async with pool.acquire() as conn:
			async with conn.transaction():
				record = await conn.fetchrow(
					"""
					INSERT INTO chat_records (user_a, user_b, last_seq, created_at, updated_at)
					VALUES ($1, $2, 1, $3, $3)
					ON CONFLICT (user_a, user_b)
					DO UPDATE SET last_seq = chat_records.last_seq + 1, updated_at = EXCLUDED.updated_at
					RETURNING id, last_seq
					""",
					pair.user_a,
					pair.user_b,
					created_at,
				)
				await conn.execute(
					"""
					INSERT INTO chat_messages (
						record_id,
						seq,
						message_id,
						sender_id,
						sender_name,
						body,
						created_at,
						updated_at
					) VALUES ($1,$2,$3,$4,$5,$6,$7,$7)
					""",
					record["id"],
					record["last_seq"],
					message_id,
					sender_id,
					sender_name,
					text,
					created_at,
				)
		return StoredMessage(
			message_id=message_id,
			seq=int(record["last_seq"]),
			sender_id=sender_id,
			sender_name=sender_name,
			text=text,
			created_at=created_at,
			updated_at=created_at,
		)

	async def list_messages(self, pair: ParticipantPair) -> List[StoredMessage]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT m.seq, m.message_id, m.sender_id, m.sender_name, m.body, m.created_at, m.updated_at
				FROM chat_messages m
				JOIN chat_records r ON r.id = m.record_id
				WHERE r.user_a = $1 AND r.user_b = $2
				ORDER BY m.seq ASC
				""",
				pair.user_a,
				pair.user_b,
			)
		return [StoredMessage.from_record(row) for row in rows]


class MessageStore:
	"""Appends and replays messages, resolving senders for display.

	Records are located by participant pair, never by transport channel id.
	Any repository failure is raised as PersistenceFailure so callers never
	mistake an unsaved message for a delivered one.
	"""

	def __init__(self, records: ChatRecordRepository, accounts: AccountRepository) -> None:
		self._records = records
		self._accounts = accounts

	async def append_message(
		self,
		user_a: str,
		user_b: str,
		sender_id: str,
		text: str,
		*,
		sender_name: Optional[str] = None,
		now: Optional[datetime] = None,
	) -> ChatMessage:
		pair = ParticipantPair.of(user_a, user_b)
		if sender_id not in pair:
			raise ValueError("sender is not a participant")
		created_at = now or datetime.now(timezone.utc)
		try:
			stored = await self._records.append(pair, sender_id, sender_name, text, created_at)
		except Exception:
			logger.error("chat append failed", exc_info=True, extra={"pair": pair.participants()})
			raise PersistenceFailure() from None
		return stored.with_sender(sender_name or DEFAULT_DISPLAY_NAME)

	async def load_history(self, user_a: str, user_b: str) -> List[ChatMessage]:
		pair = ParticipantPair.of(user_a, user_b)
		try:
			stored = await self._records.list_messages(pair)
			accounts = await self._accounts.find_many({message.sender_id for message in stored})
		except Exception:
			logger.error("chat history load failed", exc_info=True, extra={"pair": pair.participants()})
			raise history_unavailable() from None
		history: List[ChatMessage] = []
		for message in stored:
			account = accounts.get(message.sender_id)
			first_name = (account.first_name if account else None) or message.sender_name or DEFAULT_DISPLAY_NAME
			history.append(message.with_sender(first_name))
		return history
