#!/usr/bin/env python3
#
# nexuspoint/api/configs.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Self-service WireGuard config routes (the caller's own devices)."""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from ..models.peers import PeerList, PeerPublic, PeerUpdate
from ..utils.cancel import CancelToken
from ..utils.deps import get_cancel_token, get_conn, get_coordinator
from ..utils.rate_limit import RATE_LIMIT_DOWNLOAD, limiter
from .auth import get_current_user
from .downloads import config_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["wireguard"])

__all__ = ["router"]


@router.get("", response_model=PeerList)
async def list_my_configs(
	request: Request,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	coord = get_coordinator(request)
	rows = await run_in_threadpool(coord.list_mine, conn, current_user)
	return PeerList(total=len(rows), items=[PeerPublic.from_row(r) for r in rows])


@router.get("/{peer_id}/download")
@limiter.limit(RATE_LIMIT_DOWNLOAD)
async def download_config(
	request: Request,
	peer_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	coord = get_coordinator(request)
	peer, text = await run_in_threadpool(coord.download, conn, current_user, peer_id)
	_log.info("CONFIG_DOWNLOADED peer_id=%s device=%s by=%s", peer_id, peer["device_name"], current_user["username"])
	return config_response(peer, text)


@router.post("/{peer_id}/rotate", response_model=PeerPublic)
async def rotate_config(
	request: Request,
	peer_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	"""Issue a new keypair for a device; the old key stops working immediately."""
	coord = get_coordinator(request)
	row = await run_in_threadpool(coord.rotate, conn, current_user, peer_id, cancel)
	return PeerPublic.from_row(row)


@router.put("/{peer_id}", response_model=PeerPublic)
async def update_config(
	request: Request,
	peer_id: str,
	payload: PeerUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	row = await run_in_threadpool(
		lambda: coord.update_peer(conn, current_user, peer_id, payload, cancel, surface="self")
	)
	return PeerPublic.from_row(row)


@router.post("/{peer_id}/revoke", response_model=PeerPublic)
async def revoke_config(
	request: Request,
	peer_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	"""Disable a device and release its address. Revoking twice is a no-op."""
	coord = get_coordinator(request)
	row = await run_in_threadpool(coord.revoke, conn, current_user, peer_id, cancel)
	return PeerPublic.from_row(row)
