#!/usr/bin/env python3
#
# nexuspoint/api/auth.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Authentication API routes and dependencies."""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPBearer

from ..db.sqlite_users import get_user_by_id, get_user_by_username
from ..errors import AuthenticationError, Code, PermissionDeniedError
from ..models.users import LoginRequest, TokenResponse
from ..utils.crypto import (
	DUMMY_PASSWORD_SALT,
	decode_token,
	dummy_password_hash,
	issue_token,
	strip_bearer,
	verify_password,
)
from ..utils.deps import get_config, get_conn
from ..utils.rate_limit import RATE_LIMIT_AUTH, limiter

_log = logging.getLogger(__name__)

# Documents the scheme in OpenAPI; the header itself is parsed by hand so that
# repeated "Bearer " prefixes are tolerated.
_security = HTTPBearer(auto_error=False)

router = APIRouter(tags=["auth"])


def _client_ip(request: Request) -> str:
	return request.client.host if request.client else "unknown"


# ---------------------------------------------------------------------------
# Authentication Dependencies
# ---------------------------------------------------------------------------

def _user_from_header(request: Request, conn: sqlite3.Connection, secret: str) -> sqlite3.Row:
	raw = request.headers.get("Authorization")
	if raw is None or not raw.strip():
		raise AuthenticationError(code=Code.MISSING_HEADER)
	token = strip_bearer(raw)
	if not token or " " in token:
		raise AuthenticationError(code=Code.INVALID_AUTH_HEADER)
	try:
		claims = decode_token(token, secret)
	except jwt.ExpiredSignatureError as exc:
		raise AuthenticationError(code=Code.TOKEN_EXPIRED) from exc
	except jwt.InvalidTokenError as exc:
		raise AuthenticationError(code=Code.TOKEN_INVALID) from exc

	user = get_user_by_id(conn, str(claims.get("sub", "")))
	if user is None:
		raise AuthenticationError(code=Code.TOKEN_INVALID)
	if user["status"] != "active":
		raise PermissionDeniedError(code=Code.USER_NOT_ACTIVE)
	return user


def get_current_user(
	request: Request,
	conn: sqlite3.Connection = Depends(get_conn),
	_credentials=Depends(_security),
) -> sqlite3.Row:
	"""FastAPI dependency that enforces authentication."""
	return _user_from_header(request, conn, get_config(request).jwt_secret)


def get_current_user_optional(
	request: Request,
	conn: sqlite3.Connection = Depends(get_conn),
	_credentials=Depends(_security),
) -> Optional[sqlite3.Row]:
	"""Authenticated user, or None when no Authorization header was sent.

	A header that is present but invalid still fails; it never silently
	downgrades the request to anonymous.
	"""
	if not request.headers.get("Authorization"):
		return None
	return _user_from_header(request, conn, get_config(request).jwt_secret)


# ---------------------------------------------------------------------------
# Auth Endpoints
# ---------------------------------------------------------------------------

@router.post("/login", response_model=TokenResponse)
@limiter.limit(RATE_LIMIT_AUTH)
def login(
	request: Request,
	payload: LoginRequest,
	conn: sqlite3.Connection = Depends(get_conn),
):
	"""Authenticate a user and return a bearer token."""
	cfg = get_config(request)
	client_ip = _client_ip(request)

	user = get_user_by_username(conn, payload.username)

	# Always verify a hash so unknown users cost the same time as wrong passwords
	if user is not None:
		password_valid = verify_password(payload.password, user["password_salt"], user["password_hash"])
	else:
		verify_password(payload.password, DUMMY_PASSWORD_SALT, dummy_password_hash())
		password_valid = False

	if user is None or not password_valid:
		_log.info("LOGIN_FAILED ip=%s username=%s", client_ip, payload.username)
		raise AuthenticationError("Invalid username or password", code=Code.PASSWORD_INCORRECT)

	if user["status"] != "active":
		_log.info("LOGIN_INACTIVE ip=%s username=%s", client_ip, payload.username)
		raise PermissionDeniedError(code=Code.USER_NOT_ACTIVE)

	token, expires_at = issue_token(str(user["id"]), cfg.jwt_secret, cfg.jwt_expire_minutes)
	_log.info("LOGIN_SUCCESS ip=%s username=%s", client_ip, payload.username)
	return TokenResponse(token=token, expires_at=expires_at)
