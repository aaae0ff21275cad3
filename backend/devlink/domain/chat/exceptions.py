"""Client-visible chat failures.

Every failure is reported to the offending connection as an `error` event
carrying a stable `code` and a human readable `message`.
"""

from __future__ import annotations


class ChatError(Exception):
	"""Base class for chat protocol errors."""

	code: str = "internal_error"
	message: str = "Something went wrong"

	def __init__(self, code: str | None = None, message: str | None = None) -> None:
		if code:
			self.code = code
		if message:
			self.message = message
		super().__init__(self.code)

	def to_payload(self) -> dict[str, str]:
		return {"code": self.code, "message": self.message}


class AuthenticationError(ChatError):
	code = "auth_required"
	message = "Authentication required, please log in again"


class AuthorizationError(ChatError):
	code = "not_connected"
	message = "You are not connected with this user"


class PersistenceFailure(ChatError):
	code = "send_failed"
	message = "Failed to send message"


class ValidationError(ChatError):
	code = "invalid_payload"
	message = "Invalid chat payload"


class RateLimited(ChatError):
	code = "rate_limited"
	message = "You are sending messages too quickly"


_AUTH_MESSAGES = {
	"missing_token": ("auth_required", AuthenticationError.message),
	"invalid_token": ("invalid_token", "Session expired or invalid, please log in again"),
	"user_not_found": ("user_not_found", "Account not found, please log in again"),
}


def authentication_error(reason: str) -> AuthenticationError:
	code, message = _AUTH_MESSAGES.get(reason, _AUTH_MESSAGES["invalid_token"])
	return AuthenticationError(code, message)


def identity_mismatch() -> AuthorizationError:
	return AuthorizationError("identity_mismatch", "Unauthorized action for this chat")


def history_unavailable() -> PersistenceFailure:
	return PersistenceFailure("history_unavailable", "Failed to load chat history")


def presence_unavailable() -> ChatError:
	return ChatError("presence_unavailable", "Chat is temporarily unavailable, please retry")
