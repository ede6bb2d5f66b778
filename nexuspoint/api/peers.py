#!/usr/bin/env python3
#
# nexuspoint/api/peers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard peer management API routes (admin surface)."""

from __future__ import annotations

import logging
import sqlite3
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from starlette.concurrency import run_in_threadpool

from ..models.peers import (
	PeerBatchCreate,
	PeerBatchUpdate,
	PeerCreate,
	PeerList,
	PeerPublic,
	PeerUpdate,
)
from ..models.pools import BatchDelete, BatchDeleteResult
from ..utils.cancel import CancelToken
from ..utils.deps import get_cancel_token, get_conn, get_coordinator
from ..utils.rate_limit import RATE_LIMIT_DOWNLOAD, limiter
from .auth import get_current_user
from .downloads import config_response, qrcode_response

_log = logging.getLogger(__name__)

router = APIRouter(tags=["wireguard"])

__all__ = ["router"]


def _peer_list(rows) -> PeerList:
	return PeerList(total=len(rows), items=[PeerPublic.from_row(r) for r in rows])


@router.get("", response_model=PeerList)
async def list_peers(
	request: Request,
	username: Optional[str] = Query(None, max_length=32),
	ip_pool_id: Optional[str] = Query(None, max_length=32),
	status: Optional[Literal["active", "disabled"]] = Query(None),
	device_name: Optional[str] = Query(None, max_length=64),
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""List peers. Admins see everyone's; other users only their own."""
	coord = get_coordinator(request)
	rows = await run_in_threadpool(
		lambda: coord.list_peers(
			conn,
			current_user,
			username=username,
			ip_pool_id=ip_pool_id,
			status=status,
			device_name=device_name,
		)
	)
	return _peer_list(rows)


@router.post("", response_model=PeerPublic, status_code=201)
async def create_peer(
	request: Request,
	payload: PeerCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	"""Create a peer: reserve an address, issue keys, write files, apply."""
	coord = get_coordinator(request)
	row = await run_in_threadpool(coord.create_peer, conn, current_user, payload, cancel)
	return PeerPublic.from_row(row)


# ---------------------------------------------------------------------------
# Batch (declared before /{peer_id} so "batch" is not taken for an id)
# ---------------------------------------------------------------------------

@router.post("/batch", response_model=PeerList, status_code=201)
async def create_peers(
	request: Request,
	payload: PeerBatchCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	"""Create several peers in one transaction; any failing item aborts all."""
	coord = get_coordinator(request)
	rows = await run_in_threadpool(coord.create_peers, conn, current_user, payload.items, cancel)
	return _peer_list(rows)


@router.put("/batch", response_model=PeerList)
async def update_peers(
	request: Request,
	payload: PeerBatchUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	rows = await run_in_threadpool(coord.update_peers, conn, current_user, payload.items, cancel)
	return _peer_list(rows)


@router.delete("/batch", response_model=BatchDeleteResult)
async def delete_peers(
	request: Request,
	payload: BatchDelete,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	deleted = await run_in_threadpool(coord.delete_peers, conn, current_user, payload.ids, cancel)
	return BatchDeleteResult(deleted=deleted)


# ---------------------------------------------------------------------------
# Single peer
# ---------------------------------------------------------------------------

@router.get("/{peer_id}", response_model=PeerPublic)
async def get_peer(
	request: Request,
	peer_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	coord = get_coordinator(request)
	row = await run_in_threadpool(coord.get_peer, conn, current_user, peer_id)
	return PeerPublic.from_row(row)


@router.put("/{peer_id}", response_model=PeerPublic)
async def update_peer(
	request: Request,
	peer_id: str,
	payload: PeerUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	row = await run_in_threadpool(coord.update_peer, conn, current_user, peer_id, payload, cancel)
	return PeerPublic.from_row(row)


@router.delete("/{peer_id}", status_code=204)
async def delete_peer(
	request: Request,
	peer_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	await run_in_threadpool(coord.delete_peer, conn, current_user, peer_id, cancel)
	return Response(status_code=204)


@router.get("/{peer_id}/config")
@limiter.limit(RATE_LIMIT_DOWNLOAD)
async def get_peer_config(
	request: Request,
	peer_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""Download the client .conf of a peer (same bytes as written to disk)."""
	coord = get_coordinator(request)
	peer, text = await run_in_threadpool(coord.download, conn, current_user, peer_id)
	_log.info("CONFIG_DOWNLOADED peer_id=%s device=%s by=%s", peer_id, peer["device_name"], current_user["username"])
	return config_response(peer, text)


@router.get("/{peer_id}/qrcode")
@limiter.limit(RATE_LIMIT_DOWNLOAD)
async def get_peer_qrcode(
	request: Request,
	peer_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	coord = get_coordinator(request)
	peer, text = await run_in_threadpool(coord.download, conn, current_user, peer_id)
	response = await run_in_threadpool(qrcode_response, peer, text)
	_log.info("QR_CODE_DISPLAYED peer_id=%s device=%s by=%s", peer_id, peer["device_name"], current_user["username"])
	return response
