"""Domain models for persisted one-to-one chats."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Tuple


@dataclass(frozen=True, slots=True)
class ParticipantPair:
	"""Canonical, order-independent key of a ChatRecord."""

	user_a: str
	user_b: str

	@classmethod
	def of(cls, user_one: str, user_two: str) -> "ParticipantPair":
		if str(user_one) == str(user_two):
			raise ValueError("a chat needs two distinct participants")
		ordered = tuple(sorted((str(user_one), str(user_two))))
		return cls(user_a=ordered[0], user_b=ordered[1])

	def participants(self) -> Tuple[str, str]:
		return (self.user_a, self.user_b)

	def __contains__(self, user_id: object) -> bool:
		return user_id in (self.user_a, self.user_b)


@dataclass(frozen=True, slots=True)
class SenderRef:
	id: str
	first_name: str


@dataclass(frozen=True, slots=True)
class ChatMessage:
	"""An appended message; never edited in place."""

	message_id: str
	seq: int
	sender: SenderRef
	text: str
	created_at: datetime
	updated_at: datetime

	@property
	def sender_id(self) -> str:
		return self.sender.id


@dataclass(frozen=True, slots=True)
class StoredMessage:
	"""Row shape kept by repositories; sender_name is the name at send time."""

	message_id: str
	seq: int
	sender_id: str
	sender_name: str | None
	text: str
	created_at: datetime
	updated_at: datetime

	@classmethod
	def from_record(cls, record) -> "StoredMessage":
		return cls(
			message_id=str(record["message_id"]),
			seq=int(record["seq"]),
			sender_id=str(record["sender_id"]),
			sender_name=record["sender_name"],
			text=record["body"],
			created_at=record["created_at"],
			updated_at=record["updated_at"],
		)

	def with_sender(self, first_name: str) -> ChatMessage:
		return ChatMessage(
			message_id=self.message_id,
			seq=self.seq,
			sender=SenderRef(id=self.sender_id, first_name=first_name),
			text=self.text,
			created_at=self.created_at,
			updated_at=self.updated_at,
		)
