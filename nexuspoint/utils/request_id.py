#!/usr/bin/env python3
#
# nexuspoint/utils/request_id.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Request ID middleware for tracing; the id is echoed as ``reference`` in errors."""

from __future__ import annotations

import re
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Client-supplied ids end up in logs; keep them short and printable
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def request_id_of(request: Request) -> str | None:
	return getattr(request.state, "request_id", None)


class RequestIDMiddleware(BaseHTTPMiddleware):
	"""Add a unique request ID to each request for tracing/debugging."""

	async def dispatch(self, request: Request, call_next: Callable) -> Response:
		request_id = request.headers.get("X-Request-ID", "")
		if not _REQUEST_ID_RE.fullmatch(request_id):
			request_id = str(uuid.uuid4())

		request.state.request_id = request_id

		response = await call_next(request)

		response.headers["X-Request-ID"] = request_id

		return response
