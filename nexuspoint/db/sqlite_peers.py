#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_peers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard peer read operations."""

from __future__ import annotations

import sqlite3
from typing import Optional

# Every listing joins the owner so responses and rendered comments can show it.
_SELECT = """
	SELECT p.*, u.username AS username
	FROM wg_peers p
	JOIN users u ON u.id = p.user_id
"""


def get_peer_by_id(conn: sqlite3.Connection, peer_id: str) -> Optional[sqlite3.Row]:
	cur = conn.execute(f"{_SELECT} WHERE p.id = ?", (str(peer_id),))
	return cur.fetchone()


def list_peers(
	conn: sqlite3.Connection,
	*,
	user_id: str | None = None,
	ip_pool_id: str | None = None,
	status: str | None = None,
	device_name: str | None = None,
) -> list[sqlite3.Row]:
	"""List peers matching all given filters, newest first."""
	clauses = []
	params: list = []
	if user_id is not None:
		clauses.append("p.user_id = ?")
		params.append(str(user_id))
	if ip_pool_id is not None:
		clauses.append("p.ip_pool_id = ?")
		params.append(str(ip_pool_id))
	if status is not None:
		clauses.append("p.status = ?")
		params.append(status)
	if device_name:
		clauses.append("p.device_name LIKE ?")
		params.append(f"%{device_name}%")
	where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
	cur = conn.execute(f"{_SELECT} {where} ORDER BY p.created_at DESC, p.id DESC", params)
	return cur.fetchall()


def list_active_peers_by_ip(conn: sqlite3.Connection) -> list[sqlite3.Row]:
	"""Active peers holding an address, in ascending integer IP order."""
	cur = conn.execute(
		f"""
		{_SELECT}
		WHERE p.status = 'active' AND p.client_ip_int IS NOT NULL
		ORDER BY p.client_ip_int, p.id
		"""
	)
	return cur.fetchall()


def count_user_peers(conn: sqlite3.Connection, user_id: str) -> int:
	cur = conn.execute("SELECT COUNT(*) FROM wg_peers WHERE user_id = ?", (str(user_id),))
	return cur.fetchone()[0]
