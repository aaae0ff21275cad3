import os
import sys
from pathlib import Path

# Settings are read at import time.
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-enough-entropy-0123456789")
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("CHAT_STORAGE_BACKEND", "memory")
os.environ.setdefault("CHAT_PRESENCE_BACKEND", "memory")
os.environ.setdefault("OBS_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from devlink.domain.chat.container import build_services
from devlink.domain.chat.presence import InMemoryPresenceTable
from devlink.domain.identity.models import Account
from devlink.domain.social.models import ConnectionEdge, ConnectionStatus
from devlink.infra import jwt as jwt_helper
from devlink.infra import postgres


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from devlink.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture
def services():
	chat = build_services(storage="memory", presence=InMemoryPresenceTable(), throttle=None)
	chat.accounts.add(Account(id="alice", first_name="Alice", last_name="Liddell"))
	chat.accounts.add(Account(id="bob", first_name="Bob"))
	chat.accounts.add(Account(id="carol", first_name="Carol"))
	return chat


@pytest.fixture
def connect_users(services):
	async def _connect(user_a: str, user_b: str, status: ConnectionStatus = ConnectionStatus.ACCEPTED):
		await services.edges.put(ConnectionEdge(from_user_id=user_a, to_user_id=user_b, status=status))

	return _connect


def issue_token(user_id: str, **claims) -> str:
	return jwt_helper.encode_access({"sub": user_id, **claims})


@pytest.fixture
def token_for():
	return issue_token


@pytest_asyncio.fixture
async def api_client(services):
	from devlink.main import create_app

	app, _ = create_app(services)
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
