#!/usr/bin/env python3
#
# nexuspoint/api/downloads.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Client config download responses (plain .conf and QR code)."""

from __future__ import annotations

import io
import re
import sqlite3

import qrcode
from fastapi import Response

_UNSAFE_FILENAME_RE = re.compile(r"[^\w.-]")


def _safe_name(peer: sqlite3.Row) -> str:
	# Sanitize filename to prevent header injection and path traversal
	name = _UNSAFE_FILENAME_RE.sub("_", peer["device_name"] or "").lstrip(".")
	return name or "wg0"


def config_response(peer: sqlite3.Row, config_text: str) -> Response:
	return Response(
		content=config_text,
		media_type="text/plain",
		headers={"Content-Disposition": f'attachment; filename="{_safe_name(peer)}.conf"'},
	)


def qrcode_response(peer: sqlite3.Row, config_text: str) -> Response:
	"""Render the client config as a PNG QR code for mobile WireGuard apps."""
	qr = qrcode.QRCode(version=1, box_size=10, border=4)
	qr.add_data(config_text)
	qr.make(fit=True)
	img = qr.make_image(fill_color="black", back_color="white")

	buffer = io.BytesIO()
	img.save(buffer, format="PNG")
	return Response(
		content=buffer.getvalue(),
		media_type="image/png",
		headers={"Content-Disposition": f'inline; filename="{_safe_name(peer)}.png"'},
	)
