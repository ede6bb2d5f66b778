#!/usr/bin/env python3
#
# nexuspoint/models/_validators.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Field validators shared by the request models."""

from __future__ import annotations

import ipaddress
import re
from typing import Optional

# Username: 3-32 chars, starts/ends with alphanumeric, allows _ . or - in middle
_USERNAME_RE = re.compile(r"^[a-z0-9](?:[a-z0-9_.-]{1,30}[a-z0-9])$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")
# host:port or [v6]:port
_ENDPOINT_RE = re.compile(r"^(?:\[[0-9A-Fa-f:.]+\]|[A-Za-z0-9.-]+):(\d{1,5})$")


def single_line(v: Optional[str]) -> Optional[str]:
	"""Prevent newline injection in WireGuard config."""
	if v is None:
		return v
	if "\n" in v or "\r" in v:
		raise ValueError("Value must not contain line breaks")
	return v.strip()


def username(v: str) -> str:
	v_lower = v.strip().lower()
	if not _USERNAME_RE.match(v_lower):
		raise ValueError(
			"Username must be 3-32 chars of a-z, 0-9, _ . or - "
			"(starting and ending with a letter or digit)"
		)
	return v_lower


def email(v: str) -> str:
	v = v.strip()
	if not _EMAIL_RE.match(v):
		raise ValueError("Invalid email address")
	return v.lower()


def cidr_list(v: Optional[str]) -> Optional[str]:
	"""Comma separated CIDRs, normalized to ``a, b`` form."""
	v = single_line(v)
	if not v:
		return v
	parts = []
	for item in v.split(","):
		item = item.strip()
		if not item:
			continue
		try:
			ipaddress.ip_network(item, strict=False)
		except ValueError as exc:
			raise ValueError(f"Invalid CIDR: {item!r}") from exc
		parts.append(item)
	return ", ".join(parts)


def endpoint(v: Optional[str]) -> Optional[str]:
	v = single_line(v)
	if not v:
		return v
	m = _ENDPOINT_RE.match(v)
	if not m or not 1 <= int(m.group(1)) <= 65535:
		raise ValueError("Endpoint must be host:port")
	return v
