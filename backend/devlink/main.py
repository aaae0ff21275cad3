"""FastAPI + Socket.IO application entrypoint.

Run with `uvicorn devlink.main:socket_app`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from devlink.api import chat, ops
from devlink.api.errors import install_error_handlers
from devlink.domain.chat.container import ChatServices, build_services
from devlink.domain.chat.sockets import ChatNamespace
from devlink.infra import postgres
from devlink.infra.redis import close_redis
from devlink.infra.schema import ensure_schema
from devlink.obs import init as obs_init
from devlink.settings import settings

logger = logging.getLogger(__name__)

_DEV_ORIGINS = [
	"http://localhost:3000",
	"http://127.0.0.1:3000",
	"http://localhost:5173",
	"http://127.0.0.1:5173",
]


def _allowed_origins() -> list[str]:
	allow_origins = list(settings.cors_allow_origins)
	if not allow_origins:
		allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else []
	# Starlette disallows wildcard '*' with allow_credentials=True.
	if "*" in allow_origins:
		allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else [o for o in allow_origins if o != "*"]
	return allow_origins


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.chat_storage_backend == "postgres":
		pool = await postgres.init_pool()
		await ensure_schema(pool)
	logger.info(
		"devlink realtime started",
		extra={"storage": settings.chat_storage_backend, "presence": settings.chat_presence_backend},
	)
	try:
		yield
	finally:
		await postgres.close_pool()
		await close_redis()


def create_sio(allow_origins: list[str]) -> socketio.AsyncServer:
	client_manager = None
	if settings.chat_presence_backend == "redis":
		# Lets any process address a session id registered by another.
		client_manager = socketio.AsyncRedisManager(settings.redis_url)
	return socketio.AsyncServer(
		async_mode="asgi",
		cors_allowed_origins=allow_origins,
		ping_interval=settings.socket_ping_interval_seconds,
		ping_timeout=settings.socket_ping_timeout_seconds,
		client_manager=client_manager,
	)


def create_app(services: Optional[ChatServices] = None) -> tuple[FastAPI, socketio.AsyncServer]:
	services = services or build_services()
	allow_origins = _allowed_origins()

	app = FastAPI(title="DevLink Realtime", lifespan=lifespan)
	app.state.chat = services
	install_error_handlers(app)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=allow_origins,
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.include_router(chat.router, tags=["chat"])
	app.include_router(ops.router, tags=["ops"])

	sio = create_sio(allow_origins)
	sio.register_namespace(ChatNamespace(services.controller))
	obs_init(app)
	return app, sio


app, sio = create_app()
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
