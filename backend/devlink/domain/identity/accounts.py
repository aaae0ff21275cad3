"""Account lookup used to resolve local identities and sender names."""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol

from devlink.domain.identity.models import Account
from devlink.infra.postgres import get_pool


class AccountRepository(Protocol):
	async def find_by_identity(self, user_id: str) -> Optional[Account]:
		...

	async def find_many(self, user_ids: Iterable[str]) -> Dict[str, Account]:
		...


class InMemoryAccountRepository:
	def __init__(self, accounts: Iterable[Account] = ()) -> None:
		self._accounts: Dict[str, Account] = {account.id: account for account in accounts}

	def add(self, account: Account) -> Account:
		self._accounts[account.id] = account
		return account

	async def find_by_identity(self, user_id: str) -> Optional[Account]:
		return self._accounts.get(str(user_id))

	async def find_many(self, user_ids: Iterable[str]) -> Dict[str, Account]:
		return {uid: self._accounts[uid] for uid in {str(u) for u in user_ids} if uid in self._accounts}


class PostgresAccountRepository:
	"""Reads the `users` table maintained by the account service."""

	async def find_by_identity(self, user_id: str) -> Optional[Account]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"SELECT id, first_name, last_name FROM users WHERE id = $1",
				str(user_id),
			)
		return Account.from_record(row) if row else None

	async def find_many(self, user_ids: Iterable[str]) -> Dict[str, Account]:
		unique_ids = list({str(uid) for uid in user_ids})
		if not unique_ids:
			return {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT id, first_name, last_name FROM users WHERE id = ANY($1::text[])",
				unique_ids,
			)
		accounts = [Account.from_record(row) for row in rows]
		return {account.id: account for account in accounts}
