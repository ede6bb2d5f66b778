#!/usr/bin/env python3
#
# nexuspoint/main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI application factory and startup lifecycle wiring."""

from __future__ import annotations

import logging
import sqlite3
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import auth as auth_api
from .api import configs as configs_api
from .api import ip_pools as ip_pools_api
from .api import peers as peers_api
from .api import server_config as server_config_api
from .api import users as users_api
from .api.response import app_error_response, code_for_status, error_response, validation_details
from .db.sqlite_runtime import close_all_connections, close_connection, connect
from .db.sqlite_schema import ensure_default_admin, init_schema
from .errors import AppError, Code
from .utils.config import Config, load_config
from .utils.network import detect_public_ip
from .utils.rate_limit import limiter
from .utils.request_id import RequestIDMiddleware
from .wireguard import Applier, PeerCoordinator
from .wireguard.server import bootstrap_server_config

_log = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# ANSI SGR color per level, used only on a TTY
_LEVEL_COLORS = {
	logging.DEBUG: "36",
	logging.INFO: "32",
	logging.WARNING: "33",
	logging.ERROR: "31",
	logging.CRITICAL: "35",
}


class _LevelFormatter(logging.Formatter):
	"""Pads the level name to a fixed width, colored when ``color`` is set."""

	def __init__(self, color: bool) -> None:
		super().__init__(fmt=_LOG_FORMAT, datefmt=_LOG_DATEFMT)
		self._color = color

	def format(self, record: logging.LogRecord) -> str:
		plain = record.levelname
		padded = f"{plain:<8}"
		code = _LEVEL_COLORS.get(record.levelno)
		record.levelname = f"\033[{code}m{padded}\033[0m" if self._color and code else padded
		try:
			return super().format(record)
		finally:
			record.levelname = plain


def _setup_logging(log_level: str) -> None:
	"""Route root, uvicorn and library loggers through one stdout handler."""
	level = logging.getLevelName(log_level.upper())
	if not isinstance(level, int):
		level = logging.INFO

	handler = logging.StreamHandler(sys.stdout)
	handler.setFormatter(_LevelFormatter(color=sys.stdout.isatty()))
	logging.basicConfig(level=level, handlers=[handler], force=True)

	for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
		server_log = logging.getLogger(name)
		server_log.handlers.clear()
		server_log.setLevel(level)
		server_log.propagate = True

	# httpx logs every request at INFO (public IP lookup)
	for name in ("httpcore", "httpx"):
		logging.getLogger(name).setLevel(logging.WARNING)


def _startup(app: FastAPI) -> None:
	"""Prepare the DB, the server row and every derived file."""
	cfg: Config = app.state.cfg
	coord: PeerCoordinator = app.state.coordinator

	if cfg.wg_detect_public_ip and not cfg.wg_server_ip:
		coord.detected_public_ip = detect_public_ip() or ""

	conn = connect(cfg.db_path)
	try:
		init_schema(conn)
		ensure_default_admin(conn)
		bootstrap_server_config(coord, conn)
		try:
			coord.regenerate_all(conn)
		except AppError as exc:
			# The API stays up so an admin can fix the cause and retry
			_log.error("STARTUP_REGENERATE_FAILED code=%s message=%s", int(exc.code), exc.message)
	finally:
		close_connection(conn)


@asynccontextmanager
async def _lifespan(app: FastAPI):
	"""Application lifespan manager."""
	await run_in_threadpool(_startup, app)
	_log.info("NexusPoint started (interface=%s, apply=%s)", app.state.cfg.wg_interface, app.state.cfg.wg_apply_method)
	yield
	closed = close_all_connections()
	_log.info("SQLITE_SHUTDOWN connections_closed=%d", closed)
	_log.info("NexusPoint shutdown complete")


# ---------------------------------------------------------------------------
# Exception handlers (every failure leaves as the error envelope)
# ---------------------------------------------------------------------------

async def _app_error_handler(request: Request, exc: AppError):
	if exc.status_code >= 500:
		_log.error("REQUEST_FAILED path=%s code=%s message=%s", request.url.path, int(exc.code), exc.message)
	return app_error_response(request, exc)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
	errors = exc.errors()
	if any(e.get("type") == "json_invalid" for e in errors):
		return error_response(request, Code.BIND, details=validation_details(errors))
	return error_response(request, Code.VALIDATION, details=validation_details(errors))


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
	message = exc.detail if isinstance(exc.detail, str) else None
	return error_response(
		request,
		code_for_status(exc.status_code),
		message,
		status_code=exc.status_code,
		headers=getattr(exc, "headers", None),
	)


async def _sqlite_error_handler(request: Request, exc: sqlite3.Error):
	_log.error("DATABASE_ERROR path=%s error=%s", request.url.path, exc)
	return error_response(request, Code.DATABASE)


def create_app(cfg: Config | None = None, applier: Applier | None = None) -> FastAPI:
	"""Application factory for NexusPoint."""
	cfg = cfg or load_config()
	_setup_logging(cfg.log_level)

	app = FastAPI(
		title="NexusPoint",
		description="Self-hosted WireGuard VPN control plane",
		version="0.1.0",
		lifespan=_lifespan,
		docs_url=f"{API_PREFIX}/docs",
		redoc_url=f"{API_PREFIX}/redoc",
		openapi_url=f"{API_PREFIX}/openapi.json",
	)

	# Store config and long-lived services in app state
	app.state.cfg = cfg
	app.state.db_path = cfg.db_path
	app.state.coordinator = PeerCoordinator(cfg, applier)

	# ─── MIDDLEWARE ──────────────────────────────────────────
	app.add_middleware(RequestIDMiddleware)

	# Rate limiting
	limiter.enabled = cfg.rate_limit_enabled
	app.state.limiter = limiter
	app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

	# ─── ERROR ENVELOPE ──────────────────────────────────────
	app.add_exception_handler(AppError, _app_error_handler)
	app.add_exception_handler(RequestValidationError, _validation_error_handler)
	app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
	app.add_exception_handler(sqlite3.Error, _sqlite_error_handler)

	# ─── API ROUTES ──────────────────────────────────────────
	app.include_router(auth_api.router, prefix=API_PREFIX)
	app.include_router(users_api.router, prefix=f"{API_PREFIX}/users")
	app.include_router(ip_pools_api.router, prefix=f"{API_PREFIX}/wg/ip-pools")
	app.include_router(peers_api.router, prefix=f"{API_PREFIX}/wg/peers")
	app.include_router(configs_api.router, prefix=f"{API_PREFIX}/wg/configs")
	app.include_router(server_config_api.router, prefix=f"{API_PREFIX}/wg/server-config")

	return app
