#!/usr/bin/env python3
#
# nexuspoint/errors.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Error codes and the application exception hierarchy.

Every error that reaches a client carries a stable numeric code. The code
decides the HTTP status (see ``_REGISTRY``), the exception class only tells
the caller which kind of failure happened:

	100xxx  generic / transport
	110xxx  users
	120xxx  WireGuard peers, pools and server config
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class Code(IntEnum):
	"""Numeric error codes exposed in the error envelope."""

	# ---- generic ----
	UNKNOWN = 100001
	BIND = 100002
	VALIDATION = 100003
	TOKEN_INVALID = 100004
	TOKEN_EXPIRED = 100005
	MISSING_HEADER = 100006
	INVALID_AUTH_HEADER = 100007
	PASSWORD_INCORRECT = 100008
	PERMISSION_DENIED = 100009
	NOT_FOUND = 100010
	DATABASE = 100011
	REQUEST_CANCELLED = 100012
	TOO_MANY_REQUESTS = 100013
	METHOD_NOT_ALLOWED = 100014

	# ---- users ----
	USER_ALREADY_EXISTS = 110001
	EMAIL_ALREADY_EXISTS = 110002
	USER_NOT_FOUND = 110003
	USER_NOT_ACTIVE = 110004
	USER_HAS_PEERS = 110005
	REGISTRATION_DISABLED = 110006
	LAST_ADMIN = 110007

	# ---- WireGuard: peers / files / kernel ----
	WG_PEER_NOT_FOUND = 120001
	WG_WRITE_SERVER_CONFIG_FAILED = 120002
	WG_APPLY_FAILED = 120003

	# ---- WireGuard: address validation ----
	IP_NOT_IPV4 = 120005
	IP_OUT_OF_RANGE = 120006
	IP_IS_NETWORK_ADDRESS = 120007
	IP_IS_BROADCAST_ADDRESS = 120008
	IP_IS_SERVER_IP = 120009
	IP_ALREADY_IN_USE = 120010

	# ---- WireGuard: configuration ----
	WG_SERVER_CONFIG_NOT_INITIALIZED = 120011
	WG_SERVER_ADDRESS_INVALID = 120012
	WG_PREFIX_TOO_SMALL = 120013
	WG_ENDPOINT_REQUIRED = 120014
	IP_POOL_EXHAUSTED = 120015

	# ---- WireGuard: keys ----
	WG_PRIVATE_KEY_INVALID = 120020
	WG_KEY_GENERATION_FAILED = 120021

	# ---- WireGuard: data ----
	WG_CONFIG_WRITE_FAILED = 120030
	WG_PEER_ALREADY_EXISTS = 120031
	WG_DEVICE_NAME_EXISTS = 120032
	WG_BATCH_TOO_LARGE = 120033
	WG_PEER_DISABLED = 120034

	# ---- IP pools ----
	IP_POOL_NOT_FOUND = 120050
	IP_POOL_ALREADY_EXISTS = 120051
	IP_POOL_INVALID_CIDR = 120052
	IP_POOL_IN_USE = 120053
	IP_POOL_DISABLED = 120054
	IP_POOL_NAME_EXISTS = 120055


_REGISTRY: dict[Code, tuple[int, str]] = {
	Code.UNKNOWN: (500, "Internal server error"),
	Code.BIND: (400, "Request body could not be parsed"),
	Code.VALIDATION: (400, "Validation failed"),
	Code.TOKEN_INVALID: (401, "Token invalid"),
	Code.TOKEN_EXPIRED: (401, "Token expired"),
	Code.MISSING_HEADER: (401, "The Authorization header was empty"),
	Code.INVALID_AUTH_HEADER: (401, "Invalid authorization header"),
	Code.PASSWORD_INCORRECT: (401, "Password was incorrect"),
	Code.PERMISSION_DENIED: (403, "Permission denied"),
	Code.NOT_FOUND: (404, "Not found"),
	Code.DATABASE: (500, "Database error"),
	Code.REQUEST_CANCELLED: (400, "Request cancelled"),
	Code.TOO_MANY_REQUESTS: (429, "Too many requests"),
	Code.METHOD_NOT_ALLOWED: (405, "Method not allowed"),
	Code.USER_ALREADY_EXISTS: (400, "User already exists"),
	Code.EMAIL_ALREADY_EXISTS: (400, "Email already exists"),
	Code.USER_NOT_FOUND: (404, "User not found"),
	Code.USER_NOT_ACTIVE: (403, "User account is not active"),
	Code.USER_HAS_PEERS: (400, "User still owns WireGuard peers"),
	Code.REGISTRATION_DISABLED: (403, "Public registration is disabled"),
	Code.LAST_ADMIN: (400, "Cannot remove the last active admin"),
	Code.WG_PEER_NOT_FOUND: (404, "WireGuard peer not found"),
	Code.WG_WRITE_SERVER_CONFIG_FAILED: (500, "Failed to write WireGuard server configuration"),
	Code.WG_APPLY_FAILED: (500, "Failed to apply WireGuard configuration"),
	Code.IP_NOT_IPV4: (400, "IP address is not IPv4"),
	Code.IP_OUT_OF_RANGE: (400, "IP address is out of allocation prefix range"),
	Code.IP_IS_NETWORK_ADDRESS: (400, "IP address is a network address"),
	Code.IP_IS_BROADCAST_ADDRESS: (400, "IP address is a broadcast address"),
	Code.IP_IS_SERVER_IP: (400, "IP address is the server IP"),
	Code.IP_ALREADY_IN_USE: (400, "IP address is already in use"),
	Code.WG_SERVER_CONFIG_NOT_INITIALIZED: (500, "WireGuard server configuration is not initialized"),
	Code.WG_SERVER_ADDRESS_INVALID: (400, "Invalid server interface address"),
	Code.WG_PREFIX_TOO_SMALL: (400, "Prefix is too small to allocate client IP"),
	Code.WG_ENDPOINT_REQUIRED: (400, "WireGuard endpoint is required"),
	Code.IP_POOL_EXHAUSTED: (400, "No free address left in IP pool"),
	Code.WG_PRIVATE_KEY_INVALID: (400, "Invalid WireGuard private key"),
	Code.WG_KEY_GENERATION_FAILED: (500, "Failed to generate WireGuard key"),
	Code.WG_CONFIG_WRITE_FAILED: (500, "Failed to write WireGuard configuration file"),
	Code.WG_PEER_ALREADY_EXISTS: (400, "Peer with this public key already exists"),
	Code.WG_DEVICE_NAME_EXISTS: (400, "Device name already used by this user"),
	Code.WG_BATCH_TOO_LARGE: (400, "Batch size exceeds maximum"),
	Code.WG_PEER_DISABLED: (400, "WireGuard peer is disabled"),
	Code.IP_POOL_NOT_FOUND: (404, "IP pool not found"),
	Code.IP_POOL_ALREADY_EXISTS: (400, "IP pool with the same CIDR already exists"),
	Code.IP_POOL_INVALID_CIDR: (400, "Invalid CIDR format for IP pool"),
	Code.IP_POOL_IN_USE: (400, "IP pool is in use"),
	Code.IP_POOL_DISABLED: (400, "IP pool is disabled"),
	Code.IP_POOL_NAME_EXISTS: (400, "IP pool with the same name already exists"),
}


def http_status(code: Code) -> int:
	"""Return the HTTP status registered for a code (500 if unknown)."""
	return _REGISTRY.get(code, (500, ""))[0]


def default_message(code: Code) -> str:
	return _REGISTRY.get(code, (500, "Internal server error"))[1]


class AppError(Exception):
	"""Base class for all errors surfaced through the API envelope."""

	default_code: Code = Code.UNKNOWN

	def __init__(
		self,
		message: str | None = None,
		*,
		code: Code | None = None,
		details: dict[str, str] | None = None,
	) -> None:
		self.code = code if code is not None else self.default_code
		self.message = message or default_message(self.code)
		self.details = details
		super().__init__(self.message)

	@property
	def status_code(self) -> int:
		return http_status(self.code)

	def to_dict(self) -> dict[str, Any]:
		body: dict[str, Any] = {"code": int(self.code), "message": self.message}
		if self.details:
			body["details"] = self.details
		return body


class InvalidInputError(AppError):
	"""Request shape or field constraint violated."""

	default_code = Code.VALIDATION


class AuthenticationError(AppError):
	"""Missing, malformed, or expired credentials."""

	default_code = Code.TOKEN_INVALID


class PermissionDeniedError(AppError):
	"""Policy denied the action."""

	default_code = Code.PERMISSION_DENIED


class NotFoundError(AppError):
	default_code = Code.NOT_FOUND


class ConflictError(AppError):
	"""Uniqueness violation (username, email, key, IP, CIDR)."""

	default_code = Code.USER_ALREADY_EXISTS


class IPAllocationError(AppError):
	"""Address rejected by the allocator or pool exhausted."""

	default_code = Code.IP_POOL_EXHAUSTED


class KeyMaterialError(AppError):
	default_code = Code.WG_PRIVATE_KEY_INVALID


class FileSystemError(AppError):
	default_code = Code.WG_CONFIG_WRITE_FAILED


class ApplyError(AppError):
	"""The kernel interface could not be reloaded."""

	default_code = Code.WG_APPLY_FAILED


class InternalError(AppError):
	default_code = Code.UNKNOWN


class CancelledError(AppError):
	"""Request was cancelled before the server lock was taken."""

	default_code = Code.REQUEST_CANCELLED


__all__ = [
	"Code",
	"http_status",
	"default_message",
	"AppError",
	"InvalidInputError",
	"AuthenticationError",
	"PermissionDeniedError",
	"NotFoundError",
	"ConflictError",
	"IPAllocationError",
	"KeyMaterialError",
	"FileSystemError",
	"ApplyError",
	"InternalError",
	"CancelledError",
]
