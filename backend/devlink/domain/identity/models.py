"""Identity models shared by the realtime chat core.

A user is either a locally persisted account or a federated identity that
was authenticated by an external provider and is not stored locally. Both
variants expose the same contract (`id`, `first_name`, `display_name`) and
compare only by `id`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

DEFAULT_DISPLAY_NAME = "User"


@dataclass(frozen=True, slots=True)
class Account:
	"""A locally persisted user account (the subset chat needs)."""

	id: str
	first_name: str
	last_name: Optional[str] = None

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Account":
		last_name = record.get("last_name")
		return cls(
			id=str(record["id"]),
			first_name=str(record.get("first_name") or ""),
			last_name=str(last_name) if last_name else None,
		)


@dataclass(frozen=True, slots=True)
class LocalIdentity:
	account_id: str
	first_name: str
	last_name: Optional[str] = None

	@classmethod
	def from_account(cls, account: Account) -> "LocalIdentity":
		return cls(account_id=account.id, first_name=account.first_name, last_name=account.last_name)

	@property
	def id(self) -> str:
		return self.account_id

	@property
	def display_name(self) -> str:
		return self.first_name or DEFAULT_DISPLAY_NAME


@dataclass(frozen=True, slots=True)
class FederatedIdentity:
	provider: str
	provider_user_id: str
	first_name: str
	last_name: Optional[str] = None

	@property
	def id(self) -> str:
		return f"{self.provider}_{self.provider_user_id}"

	@property
	def display_name(self) -> str:
		return self.first_name or DEFAULT_DISPLAY_NAME


UserIdentity = Union[LocalIdentity, FederatedIdentity]


def same_user(identity: UserIdentity, user_id: str) -> bool:
	return identity.id == str(user_id)
