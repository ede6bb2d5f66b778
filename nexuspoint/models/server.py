#!/usr/bin/env python3
#
# nexuspoint/models/server.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Server interface Pydantic models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from . import _validators


class ServerConfigPublic(BaseModel):
	"""Server interface as shown to admins; the private key is never exposed."""
	address: str
	listen_port: int
	public_key: str
	mtu: int = 0
	post_up: str = ""
	post_down: str = ""
	public_ip: str = ""
	dns: str = ""
	endpoint: str = ""
	updated_at: datetime


class ServerConfigUpdate(BaseModel):
	address: Optional[str] = Field(None, min_length=9, max_length=64)
	listen_port: Optional[int] = Field(None, ge=1, le=65535)
	private_key: Optional[str] = Field(None, max_length=64)
	mtu: Optional[int] = Field(None, ge=0, le=9000)
	post_up: Optional[str] = Field(None, max_length=2048)
	post_down: Optional[str] = Field(None, max_length=2048)
	public_ip: Optional[str] = Field(None, max_length=255)
	dns: Optional[str] = Field(None, max_length=255)

	@field_validator("address", "private_key", "post_up", "post_down", "public_ip", "dns")
	@classmethod
	def single_line(cls, v: Optional[str]) -> Optional[str]:
		return _validators.single_line(v)
