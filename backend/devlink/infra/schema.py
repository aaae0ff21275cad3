"""Tables the realtime chat core reads and writes.

`users` and `connection_requests` are owned by the account and request
services; they are declared here only so a fresh database can boot the
chat service on its own.
"""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
	id TEXT PRIMARY KEY,
	first_name TEXT NOT NULL,
	last_name TEXT,
	created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS connection_requests (
	from_user_id TEXT NOT NULL,
	to_user_id TEXT NOT NULL,
	status TEXT NOT NULL CHECK (status IN ('ignored', 'interested', 'accepted', 'rejected')),
	created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
	updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
	PRIMARY KEY (from_user_id, to_user_id),
	CHECK (from_user_id <> to_user_id)
);
CREATE INDEX IF NOT EXISTS idx_connection_requests_to ON connection_requests(to_user_id, from_user_id);

CREATE TABLE IF NOT EXISTS chat_records (
	id BIGSERIAL PRIMARY KEY,
	user_a TEXT NOT NULL,
	user_b TEXT NOT NULL,
	last_seq BIGINT NOT NULL DEFAULT 0,
	created_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL,
	UNIQUE (user_a, user_b),
	CHECK (user_a < user_b)
);

CREATE TABLE IF NOT EXISTS chat_messages (
	record_id BIGINT NOT NULL REFERENCES chat_records(id) ON DELETE CASCADE,
	seq BIGINT NOT NULL,
	message_id TEXT NOT NULL UNIQUE,
	sender_id TEXT NOT NULL,
	sender_name TEXT,
	body TEXT NOT NULL,
	created_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL,
	PRIMARY KEY (record_id, seq)
);
"""


async def ensure_schema(pool: asyncpg.pool.Pool) -> None:
	async with pool.acquire() as conn:
		await conn.execute(SCHEMA_SQL)
	logger.info("chat schema ensured")
