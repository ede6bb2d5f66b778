#!/usr/bin/env python3
#
# nexuspoint/models/users.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""User-related Pydantic models."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import _validators


class LoginRequest(BaseModel):
	"""Login request payload."""
	username: str = Field(..., min_length=1, max_length=64)
	password: str = Field(..., min_length=1, max_length=256)

	@field_validator("username")
	@classmethod
	def normalize_username(cls, v: str) -> str:
		"""Normalize username for consistent lookups."""
		return v.strip().lower()


class TokenResponse(BaseModel):
	"""Authentication token response."""
	token: str
	expires_at: datetime
	token_type: Literal["Bearer"] = "Bearer"


class UserCreate(BaseModel):
	"""User creation payload.

	``role`` and ``status`` are honoured for admins only; public registration
	always creates an active ``user``.
	"""
	username: str = Field(..., min_length=3, max_length=32)
	email: str = Field(..., min_length=3, max_length=254)
	password: str = Field(..., min_length=8, max_length=64)
	nickname: str = Field("", max_length=64)
	avatar: str = Field("", max_length=512)
	role: Literal["user", "admin"] = "user"
	status: Literal["active", "inactive"] = "active"

	@field_validator("username")
	@classmethod
	def validate_username(cls, v: str) -> str:
		return _validators.username(v)

	@field_validator("email")
	@classmethod
	def validate_email(cls, v: str) -> str:
		return _validators.email(v)

	@field_validator("nickname", "avatar")
	@classmethod
	def single_line(cls, v: str) -> str:
		return _validators.single_line(v)


class UserUpdate(BaseModel):
	"""User update payload.

	``nickname``, ``avatar`` and ``email`` are basic fields a user may change on
	their own account; the rest need admin rights.
	"""
	username: Optional[str] = Field(None, min_length=3, max_length=32)
	email: Optional[str] = Field(None, min_length=3, max_length=254)
	nickname: Optional[str] = Field(None, max_length=64)
	avatar: Optional[str] = Field(None, max_length=512)
	role: Optional[Literal["user", "admin"]] = None
	status: Optional[Literal["active", "inactive", "deleted"]] = None
	password: Optional[str] = Field(None, min_length=8, max_length=64)

	@field_validator("username")
	@classmethod
	def validate_username(cls, v: Optional[str]) -> Optional[str]:
		if v is None:
			return v
		return _validators.username(v)

	@field_validator("email")
	@classmethod
	def validate_email(cls, v: Optional[str]) -> Optional[str]:
		if v is None:
			return v
		return _validators.email(v)

	@field_validator("nickname", "avatar")
	@classmethod
	def single_line(cls, v: Optional[str]) -> Optional[str]:
		return _validators.single_line(v)


SENSITIVE_USER_FIELDS = frozenset({"username", "role", "status", "password"})


class UserPublic(BaseModel):
	"""Public user representation (without password)."""
	id: str
	username: str
	nickname: str = ""
	avatar: str = ""
	email: str
	role: Literal["user", "admin"]
	status: Literal["active", "inactive", "deleted"]
	created_at: datetime
	updated_at: datetime

	@classmethod
	def from_row(cls, row: sqlite3.Row) -> "UserPublic":
		return cls(
			id=str(row["id"]),
			username=row["username"],
			nickname=row["nickname"] or "",
			avatar=row["avatar"] or "",
			email=row["email"],
			role=row["role"],
			status=row["status"],
			created_at=row["created_at"],
			updated_at=row["updated_at"],
		)


class UserList(BaseModel):
	total: int
	items: list[UserPublic]


class PasswordChangeRequest(BaseModel):
	"""Password change request payload (``oldPassword``/``newPassword`` accepted)."""
	model_config = ConfigDict(populate_by_name=True)

	old_password: Optional[str] = Field(None, alias="oldPassword", min_length=1, max_length=64)
	new_password: str = Field(..., alias="newPassword", min_length=8, max_length=64)

	@model_validator(mode="after")
	def validate_passwords_differ(self) -> "PasswordChangeRequest":
		"""Ensure new password is different from current (when current is provided)."""
		if self.old_password and self.old_password == self.new_password:
			raise ValueError("New password must be different from current password")
		return self
