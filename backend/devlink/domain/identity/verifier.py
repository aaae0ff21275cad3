"""Bearer credential verification for sockets and HTTP."""

from __future__ import annotations

import logging

from jwt import InvalidTokenError

from devlink.domain.identity.accounts import AccountRepository
from devlink.domain.identity.models import FederatedIdentity, LocalIdentity, UserIdentity
from devlink.infra import jwt as jwt_helper

logger = logging.getLogger(__name__)


class InvalidToken(Exception):
	"""Raised when a credential is missing, malformed, expired or unknown."""

	reason: str = "invalid_token"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class TokenVerifier:
	"""Resolve an access token to a UserIdentity.

	Local accounts carry only `sub` and are looked up through the account
	repository. Federated identities carry `provider`, `provider_id` and their
	display fields, which are trusted once the signature has been verified.
	"""

	def __init__(self, accounts: AccountRepository) -> None:
		self._accounts = accounts

	async def verify(self, token: str | None) -> UserIdentity:
		token = (token or "").strip()
		if not token:
			raise InvalidToken("missing_token")
		try:
			claims = jwt_helper.decode_access(token)
		except InvalidTokenError as exc:
			logger.info("token rejected", extra={"reason": type(exc).__name__})
			raise InvalidToken("invalid_token") from None

		provider = str(claims.get("provider") or "").strip()
		if provider:
			provider_id = str(claims.get("provider_id") or "").strip()
			if not provider_id:
				raise InvalidToken("invalid_token")
			last_name = claims.get("last_name")
			return FederatedIdentity(
				provider=provider,
				provider_user_id=provider_id,
				first_name=str(claims.get("first_name") or ""),
				last_name=str(last_name) if last_name else None,
			)

		account = await self._accounts.find_by_identity(str(claims["sub"]))
		if account is None:
			raise InvalidToken("user_not_found")
		return LocalIdentity.from_account(account)
