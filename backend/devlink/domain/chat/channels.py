"""Channel identifiers for one-to-one conversations."""

from __future__ import annotations

import hashlib

# Joins the sorted pair; never valid inside a user identifier.
CHANNEL_SEPARATOR = "-$%^&*#@!~"


def derive_channel_id(user_a: str, user_b: str) -> str:
	"""Return the transport channel id shared by two users.

	The id is the SHA-256 hex digest of the lexicographically sorted pair,
	so the argument order never matters and every process derives the same
	value for the same pair.
	"""
	if not user_a or not user_b:
		raise ValueError("channel participants must be non-empty")
	joined = CHANNEL_SEPARATOR.join(sorted((str(user_a), str(user_b))))
	return hashlib.sha256(joined.encode("utf-8")).hexdigest()
