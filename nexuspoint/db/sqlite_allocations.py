#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_allocations.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""IP reservation rows: ``(pool, ip_int) -> peer``."""

from __future__ import annotations

import sqlite3

from ..utils.time import utcnow
from .sqlite_runtime import transaction


def taken_ip_ints(conn: sqlite3.Connection, low: int, high: int) -> set[int]:
	"""All addresses in ``[low, high]`` held by a reservation or any peer row.

	Peer rows are checked as well as reservations so that overlapping pools
	cannot hand out the same address twice.
	"""
	cur = conn.execute(
		"""
		SELECT ip_int FROM ip_allocations WHERE ip_int BETWEEN ? AND ?
		UNION
		SELECT client_ip_int FROM wg_peers
		WHERE client_ip_int IS NOT NULL AND client_ip_int BETWEEN ? AND ?
		""",
		(low, high, low, high),
	)
	return {row[0] for row in cur.fetchall()}


def is_ip_taken(conn: sqlite3.Connection, ip_int: int, *, ignore_peer_id: str | None = None) -> bool:
	"""True if any reservation or peer (other than ``ignore_peer_id``) holds the address."""
	ignore = str(ignore_peer_id) if ignore_peer_id is not None else ""
	cur = conn.execute(
		"""
		SELECT 1 FROM ip_allocations WHERE ip_int = ? AND peer_id != ?
		UNION ALL
		SELECT 1 FROM wg_peers WHERE client_ip_int = ? AND id != ?
		LIMIT 1
		""",
		(ip_int, ignore, ip_int, ignore),
	)
	return cur.fetchone() is not None


def insert_allocation(
	conn: sqlite3.Connection,
	*,
	pool_id: str,
	peer_id: str,
	ip_address: str,
	ip_int: int,
) -> None:
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO ip_allocations (ip_pool_id, peer_id, ip_address, ip_int, created_at)
			VALUES (?, ?, ?, ?, ?)
			""",
			(str(pool_id), str(peer_id), ip_address, ip_int, utcnow()),
		)


def delete_allocation(conn: sqlite3.Connection, pool_id: str, ip_int: int) -> int:
	"""Remove the reservation for ``(pool, ip)``. Idempotent; returns rows removed."""
	with transaction(conn):
		cur = conn.execute(
			"DELETE FROM ip_allocations WHERE ip_pool_id = ? AND ip_int = ?",
			(str(pool_id), ip_int),
		)
		return cur.rowcount
