#!/usr/bin/env python3
#
# nexuspoint/models/pools.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""IP pool Pydantic models."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from . import _validators


class PoolCreate(BaseModel):
	"""IP pool creation payload."""
	name: str = Field(..., min_length=1, max_length=64)
	cidr: str = Field(..., min_length=1, max_length=18)
	routes: str = Field("", max_length=512)
	dns: str = Field("", max_length=255)
	endpoint: str = Field("", max_length=255)
	description: str = Field("", max_length=512)
	status: Literal["active", "disabled"] = "active"

	@field_validator("name", "cidr", "dns", "description")
	@classmethod
	def single_line(cls, v: str) -> str:
		return _validators.single_line(v)

	@field_validator("routes")
	@classmethod
	def validate_routes(cls, v: str) -> str:
		return _validators.cidr_list(v)

	@field_validator("endpoint")
	@classmethod
	def validate_endpoint(cls, v: str) -> str:
		return _validators.endpoint(v)


class PoolUpdate(BaseModel):
	"""IP pool update payload; CIDR changes only while no address is held."""
	name: Optional[str] = Field(None, min_length=1, max_length=64)
	cidr: Optional[str] = Field(None, min_length=1, max_length=18)
	routes: Optional[str] = Field(None, max_length=512)
	dns: Optional[str] = Field(None, max_length=255)
	endpoint: Optional[str] = Field(None, max_length=255)
	description: Optional[str] = Field(None, max_length=512)
	status: Optional[Literal["active", "disabled"]] = None

	@field_validator("name", "cidr", "dns", "description")
	@classmethod
	def single_line(cls, v: Optional[str]) -> Optional[str]:
		return _validators.single_line(v)

	@field_validator("routes")
	@classmethod
	def validate_routes(cls, v: Optional[str]) -> Optional[str]:
		return _validators.cidr_list(v)

	@field_validator("endpoint")
	@classmethod
	def validate_endpoint(cls, v: Optional[str]) -> Optional[str]:
		return _validators.endpoint(v)


class PoolBatchUpdateItem(PoolUpdate):
	id: str = Field(..., min_length=1, max_length=32)


class PoolBatchCreate(BaseModel):
	items: list[PoolCreate] = Field(..., min_length=1)


class PoolBatchUpdate(BaseModel):
	items: list[PoolBatchUpdateItem] = Field(..., min_length=1)


class BatchDelete(BaseModel):
	ids: list[str] = Field(..., min_length=1)


class PoolPublic(BaseModel):
	id: str
	name: str
	cidr: str
	routes: str = ""
	dns: str = ""
	endpoint: str = ""
	description: str = ""
	status: Literal["active", "disabled"]
	created_at: datetime
	updated_at: datetime

	@classmethod
	def from_row(cls, row: sqlite3.Row) -> "PoolPublic":
		return cls(
			id=str(row["id"]),
			name=row["name"],
			cidr=row["cidr"],
			routes=row["routes"] or "",
			dns=row["dns"] or "",
			endpoint=row["endpoint"] or "",
			description=row["description"] or "",
			status=row["status"],
			created_at=row["created_at"],
			updated_at=row["updated_at"],
		)


class PoolList(BaseModel):
	total: int
	items: list[PoolPublic]


class AvailableIPs(BaseModel):
	ip_pool_id: str
	cidr: str
	items: list[str]


class BatchDeleteResult(BaseModel):
	deleted: int
