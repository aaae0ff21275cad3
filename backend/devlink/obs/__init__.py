"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from devlink.obs import logging as obs_logging
from devlink.obs import middleware
from devlink.settings import settings

_logging_configured = False


def init(app: FastAPI) -> None:
	global _logging_configured
	if not settings.obs_enabled:
		return
	if not _logging_configured:
		obs_logging.configure_logging()
		_logging_configured = True
	if getattr(app.state, "obs_installed", False):
		return
	middleware.install(app)
	app.state.obs_installed = True


__all__ = ["init"]
