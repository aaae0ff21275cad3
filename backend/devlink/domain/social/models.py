"""Domain models for connection requests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ConnectionStatus(str, Enum):
	"""Connection request states written by the request-management flow."""

	IGNORED = "ignored"
	INTERESTED = "interested"
	ACCEPTED = "accepted"
	REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class ConnectionEdge:
	"""A directional connection request between two users."""

	from_user_id: str
	to_user_id: str
	status: ConnectionStatus
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	def __post_init__(self) -> None:
		if str(self.from_user_id) == str(self.to_user_id):
			raise ValueError("connection request to self")

	@classmethod
	def from_record(cls, record: dict) -> "ConnectionEdge":
		return cls(
			from_user_id=str(record["from_user_id"]),
			to_user_id=str(record["to_user_id"]),
			status=ConnectionStatus(record["status"]),
			created_at=record.get("created_at"),
			updated_at=record.get("updated_at"),
		)
