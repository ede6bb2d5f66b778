#!/usr/bin/env python3
#
# nexuspoint/models/peers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard peer-related Pydantic models."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from . import _validators


class PeerCreate(BaseModel):
	"""Peer creation payload.

	Keys are generated server-side unless ``private_key`` is supplied; the
	address is the lowest free one of the pool unless ``client_ip`` is given.
	"""
	username: Optional[str] = Field(None, min_length=3, max_length=32)
	device_name: str = Field(..., min_length=1, max_length=64)
	ip_pool_id: Optional[str] = Field(None, max_length=32)
	client_ip: Optional[str] = Field(None, max_length=18)
	private_key: Optional[str] = Field(None, max_length=64)
	allowed_ips: Optional[str] = Field(None, max_length=512)
	dns: Optional[str] = Field(None, max_length=255)
	endpoint: Optional[str] = Field(None, max_length=255)
	persistent_keepalive: Optional[int] = Field(None, ge=0, le=65535)

	@field_validator("username")
	@classmethod
	def normalize_username(cls, v: Optional[str]) -> Optional[str]:
		return v.strip().lower() if v is not None else v

	@field_validator("device_name", "client_ip", "private_key", "dns")
	@classmethod
	def single_line(cls, v: Optional[str]) -> Optional[str]:
		return _validators.single_line(v)

	@field_validator("allowed_ips")
	@classmethod
	def validate_allowed_ips(cls, v: Optional[str]) -> Optional[str]:
		return _validators.cidr_list(v)

	@field_validator("endpoint")
	@classmethod
	def validate_endpoint(cls, v: Optional[str]) -> Optional[str]:
		return _validators.endpoint(v)


class PeerUpdate(BaseModel):
	"""Peer update payload.

	``private_key``, ``username`` (owner) and ``status`` are sensitive and
	need admin rights.
	"""
	username: Optional[str] = Field(None, min_length=3, max_length=32)
	device_name: Optional[str] = Field(None, min_length=1, max_length=64)
	ip_pool_id: Optional[str] = Field(None, max_length=32)
	client_ip: Optional[str] = Field(None, max_length=18)
	private_key: Optional[str] = Field(None, max_length=64)
	allowed_ips: Optional[str] = Field(None, max_length=512)
	dns: Optional[str] = Field(None, max_length=255)
	endpoint: Optional[str] = Field(None, max_length=255)
	persistent_keepalive: Optional[int] = Field(None, ge=0, le=65535)
	status: Optional[Literal["active", "disabled"]] = None

	@field_validator("username")
	@classmethod
	def normalize_username(cls, v: Optional[str]) -> Optional[str]:
		return v.strip().lower() if v is not None else v

	@field_validator("device_name", "client_ip", "private_key", "dns")
	@classmethod
	def single_line(cls, v: Optional[str]) -> Optional[str]:
		return _validators.single_line(v)

	@field_validator("allowed_ips")
	@classmethod
	def validate_allowed_ips(cls, v: Optional[str]) -> Optional[str]:
		return _validators.cidr_list(v)

	@field_validator("endpoint")
	@classmethod
	def validate_endpoint(cls, v: Optional[str]) -> Optional[str]:
		return _validators.endpoint(v)


SENSITIVE_PEER_FIELDS = frozenset({"private_key", "username", "status"})


class PeerBatchUpdateItem(PeerUpdate):
	id: str = Field(..., min_length=1, max_length=32)


class PeerBatchCreate(BaseModel):
	items: list[PeerCreate] = Field(..., min_length=1)


class PeerBatchUpdate(BaseModel):
	items: list[PeerBatchUpdateItem] = Field(..., min_length=1)


class PeerPublic(BaseModel):
	"""Public peer representation (the private key never leaves the server)."""
	id: str
	user_id: str
	username: str
	device_name: str
	client_public_key: str
	client_ip: Optional[str] = None
	allowed_ips: str = ""
	dns: str = ""
	endpoint: str = ""
	persistent_keepalive: int = 0
	status: Literal["active", "disabled"]
	ip_pool_id: str
	created_at: datetime
	updated_at: datetime

	@classmethod
	def from_row(cls, row: sqlite3.Row) -> "PeerPublic":
		return cls(
			id=str(row["id"]),
			user_id=str(row["user_id"]),
			username=row["username"],
			device_name=row["device_name"],
			client_public_key=row["client_public_key"],
			client_ip=row["client_ip"],
			allowed_ips=row["allowed_ips"] or "",
			dns=row["dns"] or "",
			endpoint=row["endpoint"] or "",
			persistent_keepalive=row["persistent_keepalive"] or 0,
			status=row["status"],
			ip_pool_id=str(row["ip_pool_id"]),
			created_at=row["created_at"],
			updated_at=row["updated_at"],
		)


class PeerList(BaseModel):
	total: int
	items: list[PeerPublic]
