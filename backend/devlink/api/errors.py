"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from devlink.api.request_id import get_request_id
from devlink.domain.chat.exceptions import AuthorizationError, ChatError, PersistenceFailure


def _chat_status(exc: ChatError) -> int:
	if isinstance(exc, AuthorizationError):
		return 403
	if isinstance(exc, PersistenceFailure):
		return 503
	return 400


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		rid = get_request_id(request)
		payload = {"detail": exc.detail, "request_id": rid}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		rid = get_request_id(request)
		payload = {"detail": "validation_error", "errors": exc.errors(), "request_id": rid}
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(ChatError)
	async def chat_exc_handler(request: Request, exc: ChatError):  # type: ignore[override]
		rid = get_request_id(request)
		payload = {"detail": exc.code, "message": exc.message, "request_id": rid}
		return JSONResponse(status_code=_chat_status(exc), content=payload)
