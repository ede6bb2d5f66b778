#!/usr/bin/env python3
#
# nexuspoint/utils/deps.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI dependency helpers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Generator

from fastapi import Request

from ..db.sqlite_runtime import close_connection, connect
from .cancel import CancelToken

# Seconds between client disconnect checks
_DISCONNECT_POLL = 0.25


def get_conn(request: Request) -> Generator:
	"""Yield a per-request SQLite connection."""
	conn = connect(request.app.state.db_path)
	try:
		yield conn
	finally:
		close_connection(conn)


def get_config(request: Request):
	"""Get the application configuration from app state."""
	return request.app.state.cfg


def get_coordinator(request: Request):
	"""The process-wide PeerCoordinator created at startup."""
	return request.app.state.coordinator


async def get_cancel_token(request: Request) -> AsyncGenerator[CancelToken, None]:
	"""Yield a CancelToken that fires when the client disconnects."""
	token = CancelToken()

	async def _watch() -> None:
		while not token.cancelled:
			if await request.is_disconnected():
				token.cancel()
				return
			await asyncio.sleep(_DISCONNECT_POLL)

	watcher = asyncio.create_task(_watch())
	try:
		yield token
	finally:
		watcher.cancel()
