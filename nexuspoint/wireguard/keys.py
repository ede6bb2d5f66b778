#!/usr/bin/env python3
#
# nexuspoint/wireguard/keys.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard key engine (Curve25519).

Keys are handled in-process with ``cryptography``; no ``wg`` binary is needed
to generate or derive them. All keys are canonical base64 (44 chars, padded).
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from ..errors import Code, KeyMaterialError

__all__ = [
	"KEY_LENGTH",
	"clamp",
	"generate_keypair",
	"derive_public",
	"validate_private",
]

_log = logging.getLogger(__name__)

KEY_LENGTH = 32


def clamp(raw: bytes) -> bytes:
	"""Apply the Curve25519 scalar clamp to 32 raw bytes."""
	b = bytearray(raw)
	b[0] &= 248
	b[31] &= 127
	b[31] |= 64
	return bytes(b)


def _public_from_raw(raw: bytes) -> str:
	pub = X25519PrivateKey.from_private_bytes(raw).public_key()
	return base64.b64encode(pub.public_bytes(Encoding.Raw, PublicFormat.Raw)).decode("ascii")


def _decode(key: str) -> bytes:
	if not isinstance(key, str):
		raise KeyMaterialError(code=Code.WG_PRIVATE_KEY_INVALID)
	try:
		raw = base64.b64decode(key.strip(), validate=True)
	except (binascii.Error, ValueError) as exc:
		raise KeyMaterialError(code=Code.WG_PRIVATE_KEY_INVALID) from exc
	if len(raw) != KEY_LENGTH:
		raise KeyMaterialError(code=Code.WG_PRIVATE_KEY_INVALID)
	return raw


def generate_keypair() -> tuple[str, str]:
	"""Return a fresh ``(private, public)`` pair as base64 strings."""
	try:
		raw = clamp(os.urandom(KEY_LENGTH))
		return base64.b64encode(raw).decode("ascii"), _public_from_raw(raw)
	except (OSError, ValueError) as exc:
		_log.error("WG_KEY_GENERATION_FAILED error=%s", exc)
		raise KeyMaterialError(code=Code.WG_KEY_GENERATION_FAILED) from exc


def derive_public(private_key: str) -> str:
	"""Derive the public key for a base64 private key.

	Raises:
		KeyMaterialError: not base64 or not 32 bytes (WG_PRIVATE_KEY_INVALID).
	"""
	raw = _decode(private_key)
	try:
		return _public_from_raw(raw)
	except ValueError as exc:
		raise KeyMaterialError(code=Code.WG_PRIVATE_KEY_INVALID) from exc


def validate_private(private_key: str) -> None:
	"""Raise KeyMaterialError unless ``private_key`` is a usable private key."""
	derive_public(private_key)
