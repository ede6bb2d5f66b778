#!/usr/bin/env python3
#
# nexuspoint/utils/crypto.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Cryptographic helpers for password hashing and bearer tokens."""

from __future__ import annotations

import hashlib
import hmac
import os
import re
from datetime import datetime, timedelta, timezone

import jwt

# OWASP recommended minimum for PBKDF2-SHA256
PBKDF2_ITERATIONS = 600_000

JWT_ALGORITHM = "HS256"

# Dummy salt for timing attack prevention when username doesn't exist
DUMMY_PASSWORD_SALT = "00" * 16

_BEARER_PREFIX_RE = re.compile(r"^(?:\s*bearer\s+)+", re.IGNORECASE)


def dummy_password_hash() -> str:
	"""Hash with the current iteration count, used when the username is unknown."""
	return f"pbkdf2:sha256:{PBKDF2_ITERATIONS}${'00' * 32}"


def new_salt() -> str:
	"""Return a fresh random 16-byte salt as hex."""
	return os.urandom(16).hex()


def hash_password(password: str, salt: str) -> str:
	"""Hash a password using PBKDF2-SHA256 with the given hex salt.

	Returns:
		Format: 'pbkdf2:sha256:iterations$hash'
	"""
	iterations = PBKDF2_ITERATIONS
	dk = hashlib.pbkdf2_hmac(
		"sha256",
		password.encode("utf-8"),
		bytes.fromhex(salt),
		iterations,
	)
	return f"pbkdf2:sha256:{iterations}${dk.hex()}"


def verify_password(password: str, salt: str, password_hash: str) -> bool:
	"""Verify a password against a stored salt + hash.

	Uses constant-time comparison to prevent timing attacks.
	"""
	try:
		method, stored_hex = password_hash.split("$", 1)
		method_parts = method.split(":")
		if len(method_parts) != 3 or method_parts[0] != "pbkdf2":
			return False

		algorithm = method_parts[1]
		iterations = int(method_parts[2])
		stored_hash = bytes.fromhex(stored_hex)

		dk = hashlib.pbkdf2_hmac(
			algorithm,
			password.encode("utf-8"),
			bytes.fromhex(salt),
			iterations,
		)
		return hmac.compare_digest(dk, stored_hash)

	except (ValueError, IndexError, TypeError):
		return False


def strip_bearer(value: str | None) -> str:
	"""Strip any number of leading ``Bearer `` prefixes (case-insensitive)."""
	if not value:
		return ""
	return _BEARER_PREFIX_RE.sub("", value).strip()


def issue_token(user_id: str, secret: str, expire_minutes: int) -> tuple[str, datetime]:
	"""Create a signed HS256 JWT for a user.

	Returns:
		Tuple of (token, expires_at)
	"""
	now = datetime.now(timezone.utc)
	expires_at = now + timedelta(minutes=expire_minutes)
	payload = {
		"sub": user_id,
		"iat": int(now.timestamp()),
		"exp": int(expires_at.timestamp()),
	}
	return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM), expires_at


def decode_token(token: str, secret: str) -> dict:
	"""Decode and verify a JWT.

	Raises:
		jwt.ExpiredSignatureError: token expired
		jwt.InvalidTokenError: any other signature or format problem
	"""
	return jwt.decode(
		token,
		secret,
		algorithms=[JWT_ALGORITHM],
		options={"require": ["sub", "exp"]},
	)
