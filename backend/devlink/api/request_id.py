"""Request id lookup for handlers that add it to error payloads."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from devlink.obs import logging as obs_logging


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
	"""Return the id bound by the observability middleware, else a default."""
	if request is not None:
		rid = getattr(request.state, "request_id", None)
		if rid:
			return str(rid)
	rid = obs_logging._REQUEST_ID.get()
	return rid or default
