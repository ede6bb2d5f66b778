#!/usr/bin/env python3
#
# nexuspoint/api/server_config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard server interface settings (admin only)."""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from ..models.server import ServerConfigPublic, ServerConfigUpdate
from ..utils.cancel import CancelToken
from ..utils.deps import get_cancel_token, get_conn, get_coordinator
from ..wireguard.server import get_server_view, update_server
from .auth import get_current_user

router = APIRouter(tags=["wireguard"])

__all__ = ["router"]


@router.get("", response_model=ServerConfigPublic)
async def get_server_config(
	request: Request,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	coord = get_coordinator(request)
	return await run_in_threadpool(get_server_view, coord, conn, current_user)


@router.put("", response_model=ServerConfigPublic)
async def put_server_config(
	request: Request,
	payload: ServerConfigUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	"""Update the server interface; every config file is rewritten and applied."""
	coord = get_coordinator(request)
	return await run_in_threadpool(update_server, coord, conn, current_user, payload, cancel)
