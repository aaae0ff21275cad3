"""Authentication helpers for FastAPI endpoints.

HTTP routes accept the same access token as the Socket.IO handshake, either
as a Bearer header or as the `token` cookie set by the web client.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from devlink.domain.identity.models import UserIdentity
from devlink.domain.identity.verifier import InvalidToken, TokenVerifier

_bearer_scheme = HTTPBearer(auto_error=False)

TOKEN_COOKIE = "token"


def _verifier(request: Request) -> TokenVerifier:
	return request.app.state.chat.verifier


async def get_current_identity(
	request: Request,
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> UserIdentity:
	"""Resolve the authenticated user or fail with 401."""
	token: Optional[str] = None
	if credentials and credentials.scheme.lower() == "bearer":
		token = credentials.credentials
	else:
		token = request.cookies.get(TOKEN_COOKIE)
	try:
		return await _verifier(request).verify(token)
	except InvalidToken as exc:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.reason) from None
