#!/usr/bin/env python3
#
# nexuspoint/wireguard/pools.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""IP pool management.

Pool mutations run under the coordinator's server lock because they change
what the allocator may hand out and what client files resolve to. A pool's
CIDR is frozen while any address is held from it, and a pool referenced by
any peer cannot be deleted.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Sequence

from ..db.sqlite_peers import list_peers
from ..db.sqlite_pools import (
	count_pool_allocations,
	count_pool_peers,
	delete_pool as delete_pool_row,
	get_pool as get_pool_row,
	insert_pool,
	list_pools as list_pool_rows,
	update_pool as update_pool_row,
)
from ..db.sqlite_runtime import transaction
from ..errors import Code, ConflictError, NotFoundError
from ..models.pools import PoolCreate, PoolUpdate
from ..utils import authz
from ..utils.cancel import CancelToken
from .allocator import host_range, pool_network
from .coordinator import PeerCoordinator, check_batch

__all__ = [
	"normalize_cidr",
	"get_pool",
	"list_pools",
	"create_pool",
	"update_pool",
	"delete_pool",
	"create_pools",
	"update_pools",
	"delete_pools",
]

_log = logging.getLogger(__name__)


def normalize_cidr(cidr: str) -> str:
	"""Canonical ``a.b.c.d/n`` form; rejects IPv6 and prefixes without hosts."""
	network = pool_network(cidr)
	host_range(network)
	return str(network)


def _load(conn: sqlite3.Connection, pool_id: str) -> sqlite3.Row:
	pool = get_pool_row(conn, pool_id)
	if pool is None:
		raise NotFoundError(code=Code.IP_POOL_NOT_FOUND)
	return pool


def get_pool(conn: sqlite3.Connection, actor: sqlite3.Row, pool_id: str) -> sqlite3.Row:
	authz.enforce(actor, "ip_pool", authz.IP_POOL_READ)
	return _load(conn, pool_id)


def list_pools(conn: sqlite3.Connection, actor: sqlite3.Row, status: str | None = None) -> list[sqlite3.Row]:
	authz.enforce(actor, "ip_pool", authz.IP_POOL_LIST)
	return list_pool_rows(conn, status)


def _insert(conn: sqlite3.Connection, req: PoolCreate) -> str:
	return insert_pool(
		conn,
		name=req.name,
		cidr=normalize_cidr(req.cidr),
		routes=req.routes,
		dns=req.dns,
		endpoint=req.endpoint,
		description=req.description,
		status=req.status,
	)


def _update(coord: PeerCoordinator, conn: sqlite3.Connection, pool_id: str, patch: PoolUpdate) -> bool:
	"""Apply a pool patch; returns True when peers' client files need rewriting."""
	pool = _load(conn, pool_id)
	fields = {
		k: v
		for k, v in patch.model_dump(exclude_unset=True, exclude={"id"}).items()
		if v is not None
	}
	if "cidr" in fields:
		fields["cidr"] = normalize_cidr(fields["cidr"])
		if fields["cidr"] != pool["cidr"] and count_pool_allocations(conn, pool_id) > 0:
			raise ConflictError("CIDR cannot change while addresses are allocated", code=Code.IP_POOL_IN_USE)
	update_pool_row(conn, pool_id, **fields)
	if "endpoint" in fields:
		coord.check_endpoints(conn, ip_pool_id=pool_id)
	return bool({"routes", "dns", "endpoint"} & fields.keys())


def _delete(conn: sqlite3.Connection, pool_id: str) -> None:
	_load(conn, pool_id)
	if count_pool_peers(conn, pool_id) > 0:
		raise ConflictError(code=Code.IP_POOL_IN_USE)
	delete_pool_row(conn, pool_id)


def _rewrite_clients(coord: PeerCoordinator, conn: sqlite3.Connection, pool_ids: Sequence[str]) -> None:
	peer_ids = [p["id"] for pool_id in pool_ids for p in list_peers(conn, ip_pool_id=pool_id)]
	if peer_ids:
		coord.publish(conn, peer_ids=peer_ids, server_changed=False)


def create_pool(
	coord: PeerCoordinator,
	conn: sqlite3.Connection,
	actor: sqlite3.Row,
	req: PoolCreate,
	cancel: CancelToken | None = None,
) -> sqlite3.Row:
	authz.enforce(actor, "ip_pool", authz.IP_POOL_CREATE)
	with coord.locked(cancel):
		with transaction(conn, immediate=True):
			pool_id = _insert(conn, req)
	pool = _load(conn, pool_id)
	_log.info("POOL_CREATED id=%s name=%s cidr=%s by=%s", pool_id, pool["name"], pool["cidr"], actor["username"])
	return pool


def update_pool(
	coord: PeerCoordinator,
	conn: sqlite3.Connection,
	actor: sqlite3.Row,
	pool_id: str,
	patch: PoolUpdate,
	cancel: CancelToken | None = None,
) -> sqlite3.Row:
	authz.enforce(actor, "ip_pool", authz.IP_POOL_UPDATE)
	with coord.locked(cancel):
		with transaction(conn, immediate=True):
			rewrite = _update(coord, conn, pool_id, patch)
		if rewrite:
			_rewrite_clients(coord, conn, [pool_id])
	_log.info("POOL_UPDATED id=%s by=%s", pool_id, actor["username"])
	return _load(conn, pool_id)


def delete_pool(
	coord: PeerCoordinator,
	conn: sqlite3.Connection,
	actor: sqlite3.Row,
	pool_id: str,
	cancel: CancelToken | None = None,
) -> None:
	authz.enforce(actor, "ip_pool", authz.IP_POOL_DELETE)
	with coord.locked(cancel):
		with transaction(conn, immediate=True):
			_delete(conn, pool_id)
	_log.info("POOL_DELETED id=%s by=%s", pool_id, actor["username"])


def create_pools(
	coord: PeerCoordinator,
	conn: sqlite3.Connection,
	actor: sqlite3.Row,
	items: Sequence[PoolCreate],
	cancel: CancelToken | None = None,
) -> list[sqlite3.Row]:
	check_batch(items)
	authz.enforce(actor, "ip_pool", authz.IP_POOL_CREATE)
	with coord.locked(cancel):
		with transaction(conn, immediate=True):
			ids = [_insert(conn, item) for item in items]
	_log.info("POOL_BATCH_CREATED count=%d by=%s", len(ids), actor["username"])
	return [_load(conn, pool_id) for pool_id in ids]


def update_pools(
	coord: PeerCoordinator,
	conn: sqlite3.Connection,
	actor: sqlite3.Row,
	items: Sequence[Any],
	cancel: CancelToken | None = None,
) -> list[sqlite3.Row]:
	"""Batch update; each item is a PoolUpdate carrying an ``id``."""
	check_batch(items)
	authz.enforce(actor, "ip_pool", authz.IP_POOL_UPDATE)
	with coord.locked(cancel):
		with transaction(conn, immediate=True):
			rewrite = [item.id for item in items if _update(coord, conn, item.id, item)]
		if rewrite:
			_rewrite_clients(coord, conn, list(dict.fromkeys(rewrite)))
	_log.info("POOL_BATCH_UPDATED count=%d by=%s", len(items), actor["username"])
	return [_load(conn, pool_id) for pool_id in dict.fromkeys(item.id for item in items)]


def delete_pools(
	coord: PeerCoordinator,
	conn: sqlite3.Connection,
	actor: sqlite3.Row,
	pool_ids: Sequence[str],
	cancel: CancelToken | None = None,
) -> int:
	check_batch(pool_ids)
	authz.enforce(actor, "ip_pool", authz.IP_POOL_DELETE)
	unique_ids = list(dict.fromkeys(str(p) for p in pool_ids))
	with coord.locked(cancel):
		with transaction(conn, immediate=True):
			for pool_id in unique_ids:
				_delete(conn, pool_id)
	_log.info("POOL_BATCH_DELETED count=%d by=%s", len(unique_ids), actor["username"])
	return len(unique_ids)
