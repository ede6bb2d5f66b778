#!/usr/bin/env python3
#
# nexuspoint/utils/vault.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Sealing of WireGuard private keys before they reach the database.

Peer keys and the server key are stored as ``vault:1:<salt_hex>:<token>``:
a Fernet token under a key derived (PBKDF2-SHA256) from NEXUSPOINT_SECRET_KEY
and a per-value random salt. Keys read from an imported server file may still
be plain base64 until the next write; ``unseal`` passes those through.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from ..errors import InternalError

__all__ = ["KDF_ITERATIONS", "KeyVault", "is_sealed"]

_log = logging.getLogger(__name__)

_PREFIX = "vault:1:"
_SALT_BYTES = 16

KDF_ITERATIONS = 480_000


@lru_cache(maxsize=1024)
def _fernet(secret: str, salt: bytes, iterations: int) -> Fernet:
	raw = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations=iterations)
	return Fernet(base64.urlsafe_b64encode(raw))


def is_sealed(value: str | None) -> bool:
	return bool(value) and value.startswith(_PREFIX)


class KeyVault:
	"""Seals and unseals private keys with the application secret."""

	def __init__(self, secret: str) -> None:
		if not secret:
			raise ValueError("NEXUSPOINT_SECRET_KEY is not set")
		self._secret = secret

	def seal(self, private_key: str) -> str:
		salt = os.urandom(_SALT_BYTES)
		token = _fernet(self._secret, salt, KDF_ITERATIONS).encrypt(private_key.encode("ascii"))
		return f"{_PREFIX}{salt.hex()}:{token.decode('ascii')}"

	def unseal(self, stored: str, owner: str) -> str:
		"""Return the plain key; ``owner`` names the row in error logs.

		Raises:
			InternalError: token damaged or sealed under another secret.
		"""
		if not is_sealed(stored):
			return stored
		salt_hex, _, token = stored[len(_PREFIX):].partition(":")
		try:
			salt = bytes.fromhex(salt_hex)
			if len(salt) != _SALT_BYTES:
				raise ValueError("bad salt length")
			plain = _fernet(self._secret, salt, KDF_ITERATIONS).decrypt(token.encode("ascii"))
		except (InvalidToken, ValueError) as exc:
			_log.error("VAULT_UNSEAL_FAILED owner=%s", owner)
			raise InternalError(f"Cannot decrypt private key of {owner}, wrong NEXUSPOINT_SECRET_KEY?") from exc
		return plain.decode("ascii")
