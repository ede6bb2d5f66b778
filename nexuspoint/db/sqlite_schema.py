#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_schema.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite schema initialization and bootstrap routines."""

from __future__ import annotations

import logging
import sqlite3

from ..utils.crypto import hash_password, new_salt
from ..utils.snowflake import new_id
from ..utils.time import utcnow
from .sqlite_runtime import transaction

_log = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin"  # Should be changed on first login


# ─────────────────────────────────────────────────────────────────────────────
# Schema Initialization
# ─────────────────────────────────────────────────────────────────────────────


def init_schema(conn: sqlite3.Connection) -> None:
	"""Create the required database schema (idempotent)."""
	with transaction(conn):
		# Users
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS users (
				id TEXT PRIMARY KEY,
				username TEXT NOT NULL UNIQUE,
				nickname TEXT NOT NULL DEFAULT '',
				avatar TEXT NOT NULL DEFAULT '',
				email TEXT NOT NULL UNIQUE,
				password_salt TEXT NOT NULL,
				password_hash TEXT NOT NULL,
				role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
				status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'inactive', 'deleted')),
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_users_status ON users(status)")

		# IP pools
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS ip_pools (
				id TEXT PRIMARY KEY,
				name TEXT NOT NULL UNIQUE,
				cidr TEXT NOT NULL UNIQUE,
				routes TEXT NOT NULL DEFAULT '',
				dns TEXT NOT NULL DEFAULT '',
				endpoint TEXT NOT NULL DEFAULT '',
				description TEXT NOT NULL DEFAULT '',
				status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'disabled')),
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL
			)
			"""
		)

		# WireGuard peers. client_ip is NULL while a peer is disabled.
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS wg_peers (
				id TEXT PRIMARY KEY,
				user_id TEXT NOT NULL REFERENCES users(id),
				device_name TEXT NOT NULL,
				client_private_key TEXT NOT NULL,
				client_public_key TEXT NOT NULL UNIQUE,
				client_ip TEXT,
				client_ip_int INTEGER,
				allowed_ips TEXT NOT NULL DEFAULT '',
				dns TEXT NOT NULL DEFAULT '',
				endpoint TEXT NOT NULL DEFAULT '',
				persistent_keepalive INTEGER NOT NULL DEFAULT 0,
				status TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'disabled')),
				ip_pool_id TEXT NOT NULL REFERENCES ip_pools(id),
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL,
				UNIQUE (user_id, device_name)
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_wg_peers_user_id ON wg_peers(user_id)")
		conn.execute("CREATE INDEX IF NOT EXISTS idx_wg_peers_pool_id ON wg_peers(ip_pool_id)")
		conn.execute(
			"""
			CREATE UNIQUE INDEX IF NOT EXISTS idx_wg_peers_client_ip_unique
			ON wg_peers(client_ip)
			WHERE client_ip IS NOT NULL
			"""
		)

		# Address reservations; written before the peer row inside one transaction,
		# hence the deferred foreign key
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS ip_allocations (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				ip_pool_id TEXT NOT NULL REFERENCES ip_pools(id),
				peer_id TEXT NOT NULL UNIQUE
					REFERENCES wg_peers(id) ON DELETE CASCADE DEFERRABLE INITIALLY DEFERRED,
				ip_address TEXT NOT NULL,
				ip_int INTEGER NOT NULL,
				created_at timestamp NOT NULL,
				UNIQUE (ip_pool_id, ip_int)
			)
			"""
		)

		# Server interface (singleton)
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS server_config (
				id INTEGER PRIMARY KEY CHECK (id = 1),
				address TEXT NOT NULL,
				listen_port INTEGER NOT NULL,
				private_key TEXT NOT NULL,
				mtu INTEGER NOT NULL DEFAULT 0,
				post_up TEXT NOT NULL DEFAULT '',
				post_down TEXT NOT NULL DEFAULT '',
				public_ip TEXT NOT NULL DEFAULT '',
				dns TEXT NOT NULL DEFAULT '',
				updated_at timestamp NOT NULL
			)
			"""
		)


def ensure_default_admin(conn: sqlite3.Connection) -> None:
	"""Create a default admin user if no users exist."""
	now = utcnow()
	try:
		conn.execute("BEGIN IMMEDIATE")
		count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
		if count == 0:
			salt = new_salt()
			conn.execute(
				"""
				INSERT INTO users (
					id, username, nickname, email, password_salt, password_hash,
					role, status, created_at, updated_at
				)
				VALUES (?, ?, ?, ?, ?, ?, 'admin', 'active', ?, ?)
				""",
				(
					new_id(),
					DEFAULT_ADMIN_USERNAME,
					"Administrator",
					"admin@localhost",
					salt,
					hash_password(DEFAULT_ADMIN_PASSWORD, salt),
					now,
					now,
				),
			)
			_log.warning("Created default admin user (username: admin, password: admin) - CHANGE THIS!")
		conn.commit()
	except sqlite3.IntegrityError:
		conn.rollback()  # another worker beat us
	except Exception:
		conn.rollback()
		raise
