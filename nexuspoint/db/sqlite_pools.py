#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_pools.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""IP pool persistence."""

from __future__ import annotations

import sqlite3
from typing import Optional

from ..errors import Code, ConflictError
from ..utils.snowflake import new_id
from ..utils.time import utcnow
from .sqlite_runtime import UNSET, integrity_column, transaction

_UPDATABLE = ("name", "cidr", "routes", "dns", "endpoint", "description", "status")


def _raise_conflict(exc: sqlite3.IntegrityError) -> None:
	column = integrity_column(exc)
	if column == "ip_pools.cidr":
		raise ConflictError(code=Code.IP_POOL_ALREADY_EXISTS) from exc
	if column == "ip_pools.name":
		raise ConflictError(code=Code.IP_POOL_NAME_EXISTS) from exc
	raise exc


def get_pool(conn: sqlite3.Connection, pool_id: str) -> Optional[sqlite3.Row]:
	cur = conn.execute("SELECT * FROM ip_pools WHERE id = ?", (str(pool_id),))
	return cur.fetchone()


def list_pools(conn: sqlite3.Connection, status: str | None = None) -> list[sqlite3.Row]:
	"""List pools in creation order (optionally filtered by status)."""
	if status:
		cur = conn.execute(
			"SELECT * FROM ip_pools WHERE status = ? ORDER BY created_at, id", (status,)
		)
	else:
		cur = conn.execute("SELECT * FROM ip_pools ORDER BY created_at, id")
	return cur.fetchall()


def first_active_pool(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
	"""Default pool for peers created without an explicit pool."""
	cur = conn.execute(
		"SELECT * FROM ip_pools WHERE status = 'active' ORDER BY created_at, id LIMIT 1"
	)
	return cur.fetchone()


def count_pool_peers(conn: sqlite3.Connection, pool_id: str) -> int:
	"""Number of peers (any status) that reference the pool."""
	cur = conn.execute("SELECT COUNT(*) FROM wg_peers WHERE ip_pool_id = ?", (str(pool_id),))
	return cur.fetchone()[0]


def count_pool_allocations(conn: sqlite3.Connection, pool_id: str) -> int:
	"""Number of addresses currently held from the pool."""
	cur = conn.execute("SELECT COUNT(*) FROM ip_allocations WHERE ip_pool_id = ?", (str(pool_id),))
	return cur.fetchone()[0]


def insert_pool(
	conn: sqlite3.Connection,
	*,
	name: str,
	cidr: str,
	routes: str = "",
	dns: str = "",
	endpoint: str = "",
	description: str = "",
	status: str = "active",
) -> str:
	"""Insert a pool and return its ID.

	Raises:
		ConflictError: name or CIDR already used by another pool.
	"""
	now = utcnow()
	pool_id = new_id()
	try:
		with transaction(conn):
			conn.execute(
				"""
				INSERT INTO ip_pools (
					id, name, cidr, routes, dns, endpoint, description, status, created_at, updated_at
				)
				VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
				""",
				(pool_id, name, cidr, routes, dns, endpoint, description, status, now, now),
			)
	except sqlite3.IntegrityError as exc:
		_raise_conflict(exc)
	return pool_id


def update_pool(conn: sqlite3.Connection, pool_id: str, **fields: object) -> bool:
	"""Update the given pool columns; values equal to UNSET are skipped."""
	updates = []
	params: list = []
	for column in _UPDATABLE:
		value = fields.get(column, UNSET)
		if value is UNSET:
			continue
		updates.append(f"{column} = ?")
		params.append(value)
	if not updates:
		return True
	updates.append("updated_at = ?")
	params.append(utcnow())
	params.append(str(pool_id))
	try:
		with transaction(conn):
			cur = conn.execute(f"UPDATE ip_pools SET {', '.join(updates)} WHERE id = ?", params)
	except sqlite3.IntegrityError as exc:
		_raise_conflict(exc)
	return cur.rowcount > 0


def delete_pool(conn: sqlite3.Connection, pool_id: str) -> bool:
	with transaction(conn):
		cur = conn.execute("DELETE FROM ip_pools WHERE id = ?", (str(pool_id),))
		return cur.rowcount > 0
