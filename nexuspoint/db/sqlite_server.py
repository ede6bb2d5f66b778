#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_server.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Server interface singleton row."""

from __future__ import annotations

import sqlite3
from typing import Optional

from ..utils.time import utcnow
from .sqlite_runtime import UNSET, transaction

_UPDATABLE = ("address", "listen_port", "private_key", "mtu", "post_up", "post_down", "public_ip", "dns")


def get_server_config(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
	return conn.execute("SELECT * FROM server_config WHERE id = 1").fetchone()


def insert_server_config(
	conn: sqlite3.Connection,
	*,
	address: str,
	listen_port: int,
	private_key: str,
	mtu: int = 0,
	post_up: str = "",
	post_down: str = "",
	public_ip: str = "",
	dns: str = "",
) -> bool:
	"""Create the singleton row if missing. Returns False if it already existed."""
	with transaction(conn, immediate=True):
		cur = conn.execute(
			"""
			INSERT OR IGNORE INTO server_config (
				id, address, listen_port, private_key, mtu, post_up, post_down, public_ip, dns, updated_at
			)
			VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?, ?)
			""",
			(address, listen_port, private_key, mtu, post_up, post_down, public_ip, dns, utcnow()),
		)
		return cur.rowcount > 0


def update_server_config(conn: sqlite3.Connection, **fields: object) -> None:
	updates = []
	params: list = []
	for column in _UPDATABLE:
		value = fields.get(column, UNSET)
		if value is UNSET:
			continue
		updates.append(f"{column} = ?")
		params.append(value)
	if not updates:
		return
	updates.append("updated_at = ?")
	params.append(utcnow())
	with transaction(conn):
		conn.execute(f"UPDATE server_config SET {', '.join(updates)} WHERE id = 1", params)
