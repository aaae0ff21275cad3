"""Pydantic schemas for the chat socket protocol.

Client events are validated into one tagged variant per event name before
they reach the session controller. Server payloads keep the camelCase field
names clients already consume.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from devlink.domain.chat.exceptions import ValidationError
from devlink.domain.chat.models import ChatMessage
from devlink.settings import settings

JOIN_CHAT = "joinChat"
SEND_MESSAGE = "sendMessage"
LEAVE_CHAT = "leaveChat"

CHAT_HISTORY = "chatHistory"
USER_JOINED = "userJoined"
RECEIVED_MESSAGE = "receivedMessage"
MESSAGE_NOTIFICATION = "messageNotification"
ERROR = "error"


# Identifiers are trimmed; message text is kept exactly as sent.
UserId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _ChatEvent(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	user_id: UserId = Field(..., alias="userId")
	target_user_id: UserId = Field(..., alias="targetUserId")


class JoinChat(_ChatEvent):
	event: Literal["joinChat"] = JOIN_CHAT
	first_name: Optional[str] = Field(default=None, alias="firstName")


class SendMessage(_ChatEvent):
	event: Literal["sendMessage"] = SEND_MESSAGE
	text: str = Field(..., min_length=1)
	first_name: Optional[str] = Field(default=None, alias="firstName")

	@field_validator("text")
	@classmethod
	def _bounded_text(cls, value: str) -> str:
		if len(value) > settings.chat_max_message_length:
			raise ValueError("text too long")
		return value


class LeaveChat(_ChatEvent):
	event: Literal["leaveChat"] = LEAVE_CHAT


ClientEvent = Annotated[Union[JoinChat, SendMessage, LeaveChat], Field(discriminator="event")]

_CLIENT_EVENT = TypeAdapter(ClientEvent)

CLIENT_EVENTS = (JOIN_CHAT, SEND_MESSAGE, LEAVE_CHAT)


def parse_client_event(name: str, payload: Any) -> JoinChat | SendMessage | LeaveChat:
	"""Validate a raw event payload into its typed variant or raise ValidationError."""
	if name not in CLIENT_EVENTS or not isinstance(payload, dict):
		raise ValidationError()
	try:
		return _CLIENT_EVENT.validate_python({**payload, "event": name})
	except PydanticValidationError:
		raise ValidationError() from None


class SenderPayload(BaseModel):
	id: str = Field(..., serialization_alias="_id")
	first_name: str = Field(..., serialization_alias="firstName")


class MessagePayload(BaseModel):
	sender: SenderPayload = Field(..., serialization_alias="senderId")
	text: str
	id: str
	seq: int
	created_at: datetime = Field(..., serialization_alias="createdAt")
	updated_at: datetime = Field(..., serialization_alias="updatedAt")

	@classmethod
	def from_model(cls, message: ChatMessage) -> "MessagePayload":
		return cls(
			sender=SenderPayload(id=message.sender.id, first_name=message.sender.first_name),
			text=message.text,
			id=message.message_id,
			seq=message.seq,
			created_at=message.created_at,
			updated_at=message.updated_at,
		)

	def to_wire(self) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True)

	def to_notification(self) -> dict[str, Any]:
		return {**self.to_wire(), "notification": True}


class UserJoinedPayload(BaseModel):
	user_id: str = Field(..., serialization_alias="userId")
	first_name: str = Field(..., serialization_alias="firstName")

	def to_wire(self) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True)


class HistoryResponse(BaseModel):
	"""HTTP rendition of a conversation's history."""

	model_config = ConfigDict(populate_by_name=True)

	target_user_id: str = Field(..., serialization_alias="targetUserId")
	messages: List[dict[str, Any]]


def history_to_wire(messages: List[ChatMessage]) -> List[dict[str, Any]]:
	return [MessagePayload.from_model(message).to_wire() for message in messages]
