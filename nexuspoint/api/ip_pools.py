#!/usr/bin/env python3
#
# nexuspoint/api/ip_pools.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""IP pool API routes (admin only)."""

from __future__ import annotations

import sqlite3
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from starlette.concurrency import run_in_threadpool

from ..models.pools import (
	AvailableIPs,
	BatchDelete,
	BatchDeleteResult,
	PoolBatchCreate,
	PoolBatchUpdate,
	PoolCreate,
	PoolList,
	PoolPublic,
	PoolUpdate,
)
from ..utils.cancel import CancelToken
from ..utils.deps import get_cancel_token, get_conn, get_coordinator
from ..wireguard import pools
from .auth import get_current_user

router = APIRouter(tags=["ip-pools"])

__all__ = ["router"]


def _pool_list(rows) -> PoolList:
	return PoolList(total=len(rows), items=[PoolPublic.from_row(r) for r in rows])


@router.get("", response_model=PoolList)
async def list_pools(
	status: Optional[Literal["active", "disabled"]] = Query(None),
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	rows = await run_in_threadpool(pools.list_pools, conn, current_user, status)
	return _pool_list(rows)


@router.post("", response_model=PoolPublic, status_code=201)
async def create_pool(
	request: Request,
	payload: PoolCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	row = await run_in_threadpool(pools.create_pool, coord, conn, current_user, payload, cancel)
	return PoolPublic.from_row(row)


# ---------------------------------------------------------------------------
# Batch (declared before /{pool_id} so "batch" is not taken for an id)
# ---------------------------------------------------------------------------

@router.post("/batch", response_model=PoolList, status_code=201)
async def create_pools(
	request: Request,
	payload: PoolBatchCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	rows = await run_in_threadpool(pools.create_pools, coord, conn, current_user, payload.items, cancel)
	return _pool_list(rows)


@router.put("/batch", response_model=PoolList)
async def update_pools(
	request: Request,
	payload: PoolBatchUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	rows = await run_in_threadpool(pools.update_pools, coord, conn, current_user, payload.items, cancel)
	return _pool_list(rows)


@router.delete("/batch", response_model=BatchDeleteResult)
async def delete_pools(
	request: Request,
	payload: BatchDelete,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	deleted = await run_in_threadpool(pools.delete_pools, coord, conn, current_user, payload.ids, cancel)
	return BatchDeleteResult(deleted=deleted)


# ---------------------------------------------------------------------------
# Single pool
# ---------------------------------------------------------------------------

@router.get("/{pool_id}", response_model=PoolPublic)
async def get_pool(
	pool_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	row = await run_in_threadpool(pools.get_pool, conn, current_user, pool_id)
	return PoolPublic.from_row(row)


@router.put("/{pool_id}", response_model=PoolPublic)
async def update_pool(
	request: Request,
	pool_id: str,
	payload: PoolUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	"""Update a pool. Changing routes, DNS or endpoint rewrites its peers' client files."""
	coord = get_coordinator(request)
	row = await run_in_threadpool(pools.update_pool, coord, conn, current_user, pool_id, payload, cancel)
	return PoolPublic.from_row(row)


@router.delete("/{pool_id}", status_code=204)
async def delete_pool(
	request: Request,
	pool_id: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
	cancel: CancelToken = Depends(get_cancel_token),
):
	coord = get_coordinator(request)
	await run_in_threadpool(pools.delete_pool, coord, conn, current_user, pool_id, cancel)
	return Response(status_code=204)


@router.get("/{pool_id}/available-ips", response_model=AvailableIPs)
async def available_ips(
	request: Request,
	pool_id: str,
	limit: int = Query(10, ge=1, le=256),
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""Lowest free addresses of a pool (server tunnel IP and reservations excluded)."""
	coord = get_coordinator(request)
	pool, free = await run_in_threadpool(coord.available_ips, conn, current_user, pool_id, limit)
	return AvailableIPs(ip_pool_id=str(pool["id"]), cidr=pool["cidr"], items=[str(ip) for ip in free])
