#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_peers_mutations.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Peer mutation (create/update/delete) helpers.

These run inside the coordinator's transaction; ``transaction()`` nests as a
no-op so a batch commits or rolls back as one unit.
"""

from __future__ import annotations

import sqlite3

from ..errors import Code, ConflictError, IPAllocationError
from ..utils.snowflake import new_id
from ..utils.time import utcnow
from .sqlite_runtime import UNSET, integrity_column, transaction

_UPDATABLE = (
	"user_id",
	"device_name",
	"client_private_key",
	"client_public_key",
	"client_ip",
	"client_ip_int",
	"allowed_ips",
	"dns",
	"endpoint",
	"persistent_keepalive",
	"status",
	"ip_pool_id",
)


def _raise_conflict(exc: sqlite3.IntegrityError) -> None:
	column = integrity_column(exc)
	if column == "wg_peers.client_public_key":
		raise ConflictError(code=Code.WG_PEER_ALREADY_EXISTS) from exc
	if column == "wg_peers.user_id":  # composite (user_id, device_name)
		raise ConflictError(code=Code.WG_DEVICE_NAME_EXISTS) from exc
	if column in ("wg_peers.client_ip", "ip_allocations.ip_pool_id", "ip_allocations.peer_id"):
		raise IPAllocationError(code=Code.IP_ALREADY_IN_USE) from exc
	raise exc


def insert_peer(
	conn: sqlite3.Connection,
	*,
	user_id: str,
	device_name: str,
	client_private_key: str,
	client_public_key: str,
	client_ip: str,
	client_ip_int: int,
	ip_pool_id: str,
	allowed_ips: str = "",
	dns: str = "",
	endpoint: str = "",
	persistent_keepalive: int = 0,
	status: str = "active",
	peer_id: str | None = None,
) -> str:
	"""Insert a peer row and return its ID.

	``client_private_key`` must already be vault-encrypted.
	"""
	now = utcnow()
	peer_id = peer_id or new_id()
	try:
		with transaction(conn):
			conn.execute(
				"""
				INSERT INTO wg_peers (
					id, user_id, device_name, client_private_key, client_public_key,
					client_ip, client_ip_int, allowed_ips, dns, endpoint,
					persistent_keepalive, status, ip_pool_id, created_at, updated_at
				)
				VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
				""",
				(
					peer_id,
					str(user_id),
					device_name,
					client_private_key,
					client_public_key,
					client_ip,
					client_ip_int,
					allowed_ips,
					dns,
					endpoint,
					persistent_keepalive,
					status,
					str(ip_pool_id),
					now,
					now,
				),
			)
	except sqlite3.IntegrityError as exc:
		_raise_conflict(exc)
	return peer_id


def update_peer(conn: sqlite3.Connection, peer_id: str, **fields: object) -> bool:
	"""Update the given peer columns; values equal to UNSET are skipped.

	Returns True if the peer was found (or nothing was requested).
	"""
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
	params.append(str(peer_id))
	try:
		with transaction(conn):
			cur = conn.execute(f"UPDATE wg_peers SET {', '.join(updates)} WHERE id = ?", params)
	except sqlite3.IntegrityError as exc:
		_raise_conflict(exc)
	return cur.rowcount > 0


def delete_peer(conn: sqlite3.Connection, peer_id: str) -> bool:
	"""Delete a peer; its reservation goes with it (ON DELETE CASCADE)."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM wg_peers WHERE id = ?", (str(peer_id),))
		return cur.rowcount > 0
