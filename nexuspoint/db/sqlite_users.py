#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_users.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""User CRUD and profile-related operations."""

from __future__ import annotations

import sqlite3
from typing import Optional

from ..errors import Code, ConflictError
from ..utils.crypto import hash_password, new_salt
from ..utils.snowflake import new_id
from ..utils.time import utcnow
from .sqlite_runtime import UNSET, integrity_column, transaction


def _raise_conflict(exc: sqlite3.IntegrityError) -> None:
	column = integrity_column(exc)
	if column == "users.email":
		raise ConflictError(code=Code.EMAIL_ALREADY_EXISTS) from exc
	if column == "users.username":
		raise ConflictError(code=Code.USER_ALREADY_EXISTS) from exc
	raise exc


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_user_by_username(conn: sqlite3.Connection, username: str) -> sqlite3.Row | None:
	"""Get a user by username (case-insensitive).

	create_user normalizes usernames to lowercase, so a plain equality
	check keeps the UNIQUE index usable.
	"""
	cur = conn.execute("SELECT * FROM users WHERE username = ?", (username.strip().lower(),))
	return cur.fetchone()


def get_user_by_id(conn: sqlite3.Connection, user_id: str) -> Optional[sqlite3.Row]:
	cur = conn.execute("SELECT * FROM users WHERE id = ?", (str(user_id),))
	return cur.fetchone()


def list_users(
	conn: sqlite3.Connection,
	*,
	status: str | None = None,
	include_deleted: bool = False,
) -> list[sqlite3.Row]:
	"""List users ordered by username. Deleted accounts are hidden unless asked for."""
	clauses = []
	params: list = []
	if status:
		clauses.append("status = ?")
		params.append(status)
	elif not include_deleted:
		clauses.append("status != 'deleted'")
	where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
	cur = conn.execute(f"SELECT * FROM users {where} ORDER BY username", params)
	return cur.fetchall()


def count_active_admins(conn: sqlite3.Connection) -> int:
	cur = conn.execute("SELECT COUNT(*) FROM users WHERE role = 'admin' AND status = 'active'")
	return cur.fetchone()[0]


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def create_user(
	conn: sqlite3.Connection,
	*,
	username: str,
	email: str,
	password: str,
	nickname: str = "",
	avatar: str = "",
	role: str = "user",
	status: str = "active",
) -> str:
	"""Create a new user and return the user ID.

	Raises:
		ConflictError: username or email already taken.
	"""
	now = utcnow()
	user_id = new_id()
	salt = new_salt()
	try:
		with transaction(conn):
			conn.execute(
				"""
				INSERT INTO users (
					id, username, nickname, avatar, email, password_salt, password_hash,
					role, status, created_at, updated_at
				)
				VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
				""",
				(
					user_id,
					username.strip().lower(),
					nickname,
					avatar,
					email.strip().lower(),
					salt,
					hash_password(password, salt),
					role,
					status,
					now,
					now,
				),
			)
	except sqlite3.IntegrityError as exc:
		_raise_conflict(exc)
	return user_id


def update_user(
	conn: sqlite3.Connection,
	user_id: str,
	*,
	username: str | object = UNSET,
	nickname: str | object = UNSET,
	avatar: str | object = UNSET,
	email: str | object = UNSET,
	role: str | object = UNSET,
	status: str | object = UNSET,
	password: str | object = UNSET,
) -> bool:
	"""Update a user. Returns True if a row was changed or nothing was requested.

	Raises:
		ConflictError: new username or email already taken.
	"""
	updates = []
	params: list = []

	if username is not UNSET:
		updates.append("username = ?")
		params.append(str(username).strip().lower())
	if nickname is not UNSET:
		updates.append("nickname = ?")
		params.append(nickname)
	if avatar is not UNSET:
		updates.append("avatar = ?")
		params.append(avatar)
	if email is not UNSET:
		updates.append("email = ?")
		params.append(str(email).strip().lower())
	if role is not UNSET:
		updates.append("role = ?")
		params.append(role)
	if status is not UNSET:
		updates.append("status = ?")
		params.append(status)
	if password is not UNSET:
		salt = new_salt()
		updates.append("password_salt = ?")
		params.append(salt)
		updates.append("password_hash = ?")
		params.append(hash_password(str(password), salt))

	if not updates:
		return True

	updates.append("updated_at = ?")
	params.append(utcnow())
	params.append(str(user_id))
	try:
		with transaction(conn, immediate=True):
			cur = conn.execute(f"UPDATE users SET {', '.join(updates)} WHERE id = ?", params)
	except sqlite3.IntegrityError as exc:
		_raise_conflict(exc)
	return cur.rowcount > 0


def delete_user(conn: sqlite3.Connection, user_id: str) -> bool:
	"""Hard-delete a user. Returns True if user was found and deleted."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM users WHERE id = ?", (str(user_id),))
		return cur.rowcount > 0
