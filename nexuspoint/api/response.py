#!/usr/bin/env python3
#
# nexuspoint/api/response.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Common API response helpers.

Successful calls return their payload as-is. Failures always use the error
envelope::

	{"code": 100003, "message": "...", "reference": "<request id>",
	 "details": {"field": "validation.<tag>|k=v"}}
"""

from __future__ import annotations

from typing import Any, Iterable

from fastapi import Request
from fastapi.responses import JSONResponse

from ..errors import AppError, Code, default_message, http_status
from ..utils.request_id import request_id_of

# HTTP status -> code used when a bare HTTPException reaches the client
_STATUS_CODES = {
	400: Code.BIND,
	401: Code.TOKEN_INVALID,
	403: Code.PERMISSION_DENIED,
	404: Code.NOT_FOUND,
	405: Code.METHOD_NOT_ALLOWED,
	429: Code.TOO_MANY_REQUESTS,
}


def error_body(
	request: Request | None,
	code: Code,
	message: str | None = None,
	details: dict[str, str] | None = None,
) -> dict[str, Any]:
	body: dict[str, Any] = {"code": int(code), "message": message or default_message(code)}
	reference = request_id_of(request) if request is not None else None
	if reference:
		body["reference"] = reference
	if details:
		body["details"] = details
	return body


def error_response(
	request: Request | None,
	code: Code,
	message: str | None = None,
	details: dict[str, str] | None = None,
	status_code: int | None = None,
	headers: dict[str, str] | None = None,
) -> JSONResponse:
	return JSONResponse(
		status_code=status_code or http_status(code),
		content=error_body(request, code, message, details),
		headers=headers,
	)


def app_error_response(request: Request, exc: AppError) -> JSONResponse:
	return error_response(request, exc.code, exc.message, exc.details)


def code_for_status(status_code: int) -> Code:
	if status_code >= 500:
		return Code.UNKNOWN
	return _STATUS_CODES.get(status_code, Code.VALIDATION)


def _validation_token(error: dict[str, Any]) -> str:
	"""Map one pydantic error to ``validation.<tag>[|k=v]``."""
	kind = error.get("type", "")
	ctx = error.get("ctx") or {}
	if kind == "missing":
		return "validation.required"
	if kind in ("string_too_short", "too_short"):
		return f"validation.min|min={ctx.get('min_length', '')}"
	if kind in ("string_too_long", "too_long"):
		return f"validation.max|max={ctx.get('max_length', '')}"
	if kind == "greater_than_equal":
		return f"validation.gte|gte={ctx.get('ge', '')}"
	if kind == "less_than_equal":
		return f"validation.lte|lte={ctx.get('le', '')}"
	if kind == "literal_error":
		expected = str(ctx.get("expected", "")).replace("'", "").replace(" or ", " ").replace(",", "")
		return f"validation.oneof|oneof={expected}"
	if kind in ("int_parsing", "int_type"):
		return "validation.number"
	if kind == "json_invalid":
		return "validation.json"
	return "validation.invalid"


def validation_details(errors: Iterable[dict[str, Any]]) -> dict[str, str]:
	"""Field -> token for every request validation error (first one per field wins)."""
	details: dict[str, str] = {}
	for error in errors:
		loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
		field = ".".join(loc) or "body"
		details.setdefault(field, _validation_token(error))
	return details
