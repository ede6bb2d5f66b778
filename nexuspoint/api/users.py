#!/usr/bin/env python3
#
# nexuspoint/api/users.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""User management API routes."""

from __future__ import annotations

import logging
import sqlite3
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from ..db.sqlite_peers import count_user_peers
from ..db.sqlite_users import (
	count_active_admins,
	create_user as db_create_user,
	delete_user as db_delete_user,
	get_user_by_id,
	get_user_by_username,
	list_users as db_list_users,
	update_user as db_update_user,
)
from ..errors import AuthenticationError, Code, ConflictError, InvalidInputError, NotFoundError, PermissionDeniedError
from ..models.users import (
	SENSITIVE_USER_FIELDS,
	PasswordChangeRequest,
	UserCreate,
	UserList,
	UserPublic,
	UserUpdate,
)
from ..utils import authz
from ..utils.crypto import verify_password
from ..utils.deps import get_config, get_conn, get_coordinator
from ..utils.rate_limit import RATE_LIMIT_REGISTER, limiter
from .auth import get_current_user, get_current_user_optional

_log = logging.getLogger(__name__)

router = APIRouter(tags=["users"])


def _target(conn: sqlite3.Connection, actor: sqlite3.Row, username: str, action: str) -> sqlite3.Row:
	"""Authorize ``action`` on ``username`` and return its row.

	Another user's name is checked against the ``any`` scope before the
	lookup, so a denied caller cannot probe which accounts exist.
	"""
	if username.strip().lower() == actor["username"]:
		authz.enforce(actor, "user", action, actor["id"])
		return actor
	authz.enforce(actor, "user", action)
	user = get_user_by_username(conn, username)
	if user is None:
		raise NotFoundError(code=Code.USER_NOT_FOUND)
	return user


def _is_active_admin(row: sqlite3.Row) -> bool:
	return row["role"] == authz.ROLE_ADMIN and row["status"] == "active"


def _guard_last_admin(conn: sqlite3.Connection, target: sqlite3.Row, role: str | None, status: str | None) -> None:
	"""Refuse to demote, deactivate or delete the only active admin."""
	if not _is_active_admin(target):
		return
	stays_admin = (role or target["role"]) == authz.ROLE_ADMIN and (status or target["status"]) == "active"
	if not stays_admin and count_active_admins(conn) <= 1:
		raise InvalidInputError(code=Code.LAST_ADMIN)


# ---------------------------------------------------------------------------
# Create / list
# ---------------------------------------------------------------------------

@router.post("", response_model=UserPublic, status_code=201)
@limiter.limit(RATE_LIMIT_REGISTER)
def create_user(
	request: Request,
	payload: UserCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: Optional[sqlite3.Row] = Depends(get_current_user_optional),
):
	"""Register (anonymous) or create a user (admin).

	Self-registration always yields an active ``user``; role and status in the
	payload are only honoured for admins.
	"""
	if current_user is None:
		if not get_config(request).allow_registration:
			raise PermissionDeniedError(code=Code.REGISTRATION_DISABLED)
		role, status = authz.ROLE_USER, "active"
		created_by = "self-registration"
	else:
		authz.enforce(current_user, "user", authz.USER_CREATE)
		role, status = payload.role, payload.status
		created_by = current_user["username"]

	user_id = db_create_user(
		conn,
		username=payload.username,
		email=payload.email,
		password=payload.password,
		nickname=payload.nickname,
		avatar=payload.avatar,
		role=role,
		status=status,
	)
	user = get_user_by_id(conn, user_id)
	_log.info("USER_CREATED id=%s username=%s role=%s by=%s", user_id, user["username"], role, created_by)
	return UserPublic.from_row(user)


@router.get("", response_model=UserList)
def list_users(
	status: Optional[Literal["active", "inactive", "deleted"]] = Query(None),
	include_deleted: bool = Query(False),
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""List users (admin only)."""
	authz.enforce(current_user, "user", authz.USER_LIST)
	rows = db_list_users(conn, status=status, include_deleted=include_deleted)
	return UserList(total=len(rows), items=[UserPublic.from_row(r) for r in rows])


@router.get("/me", response_model=UserPublic)
def get_me(current_user: sqlite3.Row = Depends(get_current_user)):
	authz.enforce(current_user, "user", authz.USER_READ, current_user["id"])
	return UserPublic.from_row(current_user)


# ---------------------------------------------------------------------------
# Single user
# ---------------------------------------------------------------------------

@router.get("/{username}", response_model=UserPublic)
def get_user(
	username: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""Get a user by name. Users can view their own profile, admins anyone."""
	return UserPublic.from_row(_target(conn, current_user, username, authz.USER_READ))


@router.put("/{username}", response_model=UserPublic)
def update_user(
	request: Request,
	username: str,
	payload: UserUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""Partially update a user.

	Nickname, avatar and email are basic fields any user may change on their
	own account. Username, role, status and password are sensitive and need
	the admin rights.
	"""
	fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
	target = _target(conn, current_user, username, authz.USER_UPDATE_BASIC)
	if SENSITIVE_USER_FIELDS & fields.keys():
		authz.enforce(current_user, "user", authz.USER_UPDATE_SENSITIVE, target["id"])
	if not fields:
		return UserPublic.from_row(target)

	_guard_last_admin(conn, target, fields.get("role"), fields.get("status"))
	db_update_user(conn, target["id"], **fields)

	coord = get_coordinator(request)
	if fields.get("status", "active") != "active" and target["status"] == "active":
		coord.disable_user_peers(conn, target["id"])
	if fields.get("username", target["username"]) != target["username"]:
		coord.rename_owner(conn, target["id"], target["username"])

	_log.info(
		"USER_UPDATED id=%s username=%s fields=%s by=%s",
		target["id"], target["username"], ",".join(sorted(fields)), current_user["username"],
	)
	return UserPublic.from_row(get_user_by_id(conn, target["id"]))


@router.delete("/{username}", status_code=204)
def delete_user(
	request: Request,
	username: str,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""Delete a user.

	Deleting your own account is a soft delete (status ``deleted``, peers
	revoked). Admins deleting someone else remove the row for good, which is
	refused while that user still owns peers.
	"""
	if username.strip().lower() == current_user["username"]:
		target = _target(conn, current_user, username, authz.USER_SOFT_DELETE)
		_guard_last_admin(conn, target, None, "deleted")
		db_update_user(conn, target["id"], status="deleted")
		get_coordinator(request).disable_user_peers(conn, target["id"])
		_log.info("USER_DELETED id=%s username=%s mode=soft", target["id"], target["username"])
		return Response(status_code=204)

	target = _target(conn, current_user, username, authz.USER_HARD_DELETE)
	if count_user_peers(conn, target["id"]) > 0:
		raise ConflictError(code=Code.USER_HAS_PEERS)
	_guard_last_admin(conn, target, None, "deleted")
	db_delete_user(conn, target["id"])
	_log.info(
		"USER_DELETED id=%s username=%s mode=hard by=%s",
		target["id"], target["username"], current_user["username"],
	)
	return Response(status_code=204)


@router.post("/{username}/password", status_code=204)
def change_password(
	username: str,
	payload: PasswordChangeRequest,
	conn: sqlite3.Connection = Depends(get_conn),
	current_user: sqlite3.Row = Depends(get_current_user),
):
	"""Change a password. Your own requires the current one; admins may reset others."""
	target = _target(conn, current_user, username, authz.USER_CHANGE_PASSWORD)
	if target["id"] == current_user["id"]:
		if not payload.old_password or not verify_password(
			payload.old_password, target["password_salt"], target["password_hash"]
		):
			raise AuthenticationError("Current password is incorrect", code=Code.PASSWORD_INCORRECT)
	db_update_user(conn, target["id"], password=payload.new_password)
	_log.info("PASSWORD_CHANGED username=%s by=%s", target["username"], current_user["username"])
	return Response(status_code=204)
