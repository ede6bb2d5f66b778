#!/usr/bin/env python3
#
# nexuspoint/utils/config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Configuration loading and app-level defaults."""

from __future__ import annotations

import ipaddress
import logging
import os
import sys
import threading
from dataclasses import dataclass
from pathlib import Path

_log = logging.getLogger(__name__)

ENV_PREFIX = "NEXUSPOINT_"

APPLY_METHODS = ("service", "wg-quick", "none")
WG_FALLBACK_ALLOWED_IPS = "0.0.0.0/0, ::/0"


class ConfigValidationError(Exception):
	"""Raised when critical configuration is missing or invalid."""


@dataclass(frozen=True)
class Config:
	"""Resolved runtime configuration derived from env and defaults."""
	base_dir: Path
	data_dir: Path
	db_path: Path
	wg_config_path: Path
	wg_user_dir: Path
	wg_interface: str = "wg0"
	wg_apply_method: str = "service"
	wg_default_dns: str = ""
	wg_default_allowed_ips: str = WG_FALLBACK_ALLOWED_IPS
	wg_default_endpoint: str = ""
	wg_server_ip: str = ""
	wg_detect_public_ip: bool = False
	wg_default_address: str = "100.100.100.1/24"
	wg_default_listen_port: int = 51820
	wg_default_keepalive: int = 25
	jwt_secret: str = ""
	jwt_expire_minutes: int = 1440
	allow_registration: bool = True
	rate_limit_enabled: bool = True
	host: str = "0.0.0.0"
	port: int = 8000
	log_level: str = "INFO"
	secret_key: str = ""


def _parse_value(raw: str) -> str:
	"""Extract value, respecting quotes and stripping inline comments.

	Handles quoted values correctly (e.g., POST_UP="iptables -A ... #x")
	and only strips comments from unquoted values.
	"""
	raw = raw.strip()
	if raw and raw[0] in ('"', "'"):
		quote = raw[0]
		end = raw.find(quote, 1)
		if end != -1:
			return raw[1:end]
		# Unterminated quote, fall through to unquoted handling
	if " #" in raw:
		raw = raw.split(" #", 1)[0]
	return raw.strip()


def load_dotenv(dotenv_path: Path | None = None) -> None:
	"""Seed os.environ from ``settings.env`` without overriding real env vars.

	Accepts ``KEY=VALUE`` and ``export KEY=VALUE`` lines; blank lines and
	``#`` comments are skipped.
	"""
	dotenv_path = dotenv_path or (Path(__file__).resolve().parents[2] / "settings.env")
	if not dotenv_path.is_file():
		return
	for line in dotenv_path.read_text(encoding="utf-8").splitlines():
		key, sep, value = line.strip().partition("=")
		if not sep or key.startswith("#"):
			continue
		key = key.removeprefix("export ").strip()
		if key:
			os.environ.setdefault(key, _parse_value(value))


def _env(name: str, default: str = "") -> str:
	return os.getenv(ENV_PREFIX + name, default).strip()


def _env_bool(name: str, default: bool) -> bool:
	raw = _env(name, "")
	if not raw:
		return default
	return raw.lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, *, low: int, high: int) -> int:
	raw = _env(name, "")
	if not raw:
		return default
	try:
		value = int(raw)
	except ValueError as exc:
		raise ConfigValidationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc
	if not low <= value <= high:
		raise ConfigValidationError(f"{ENV_PREFIX}{name} must be between {low} and {high}, got {value}")
	return value


def load_config() -> Config:
	"""Load configuration from environment variables (optionally via settings.env)."""
	load_dotenv()
	project_root = Path(__file__).resolve().parents[2]

	data_dir = Path(_env("DATA_DIR", str(project_root / "data"))).resolve()
	db_path = (data_dir / "nexuspoint.db").resolve()

	wg_interface = _env("WG_INTERFACE", "wg0")
	if not wg_interface.replace("-", "").replace("_", "").isalnum() or len(wg_interface) > 15:
		raise ConfigValidationError(f"Invalid WireGuard interface name: {wg_interface!r}")

	wg_config_path = Path(_env("WG_CONFIG_PATH", f"/etc/wireguard/{wg_interface}.conf"))
	wg_user_dir = Path(_env("WG_USER_DIR", str(data_dir / "users"))).resolve()

	# Self-healing: Ensure directories exist
	try:
		for d in (data_dir, wg_user_dir):
			if d.exists() and not d.is_dir():
				raise ConfigValidationError(f"Path exists but is not a directory: {d}")
			d.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		raise ConfigValidationError(f"Cannot create data directories: {exc}") from exc

	apply_method = _env("WG_APPLY_METHOD", "service").lower()
	if apply_method not in APPLY_METHODS:
		raise ConfigValidationError(
			f"{ENV_PREFIX}WG_APPLY_METHOD must be one of {', '.join(APPLY_METHODS)}, got {apply_method!r}"
		)

	default_address = _env("WG_DEFAULT_ADDRESS", "100.100.100.1/24")
	try:
		iface = ipaddress.ip_interface(default_address)
	except ValueError as exc:
		raise ConfigValidationError(f"Invalid {ENV_PREFIX}WG_DEFAULT_ADDRESS: {default_address!r}") from exc
	if iface.version != 4:
		raise ConfigValidationError(f"{ENV_PREFIX}WG_DEFAULT_ADDRESS must be IPv4")

	server_ip = _env("WG_SERVER_IP", "")
	if server_ip:
		try:
			ipaddress.ip_address(server_ip)
		except ValueError as exc:
			raise ConfigValidationError(f"Invalid {ENV_PREFIX}WG_SERVER_IP: {server_ip!r}") from exc

	log_level = (_env("LOG_LEVEL", "") or os.getenv("LOG_LEVEL", "INFO")).upper()
	if log_level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
		log_level = "INFO"

	# Secret key (required for production)
	secret_key = _env("SECRET_KEY", "")
	if not secret_key:
		if "pytest" not in sys.modules and "PYTEST_CURRENT_TEST" not in os.environ:
			raise ConfigValidationError(
				f"{ENV_PREFIX}SECRET_KEY is not set. "
				"Refusing to start without a secret key. "
				"Generate one with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
			)
		# Allow tests to run with a default
		secret_key = "test-only-secret-do-not-use-in-production"
		_log.debug("Using test-only secret key")

	return Config(
		base_dir=project_root,
		data_dir=data_dir,
		db_path=db_path,
		wg_config_path=wg_config_path,
		wg_user_dir=wg_user_dir,
		wg_interface=wg_interface,
		wg_apply_method=apply_method,
		wg_default_dns=_env("WG_DEFAULT_DNS", ""),
		wg_default_allowed_ips=_env("WG_DEFAULT_ALLOWED_IPS", WG_FALLBACK_ALLOWED_IPS),
		wg_default_endpoint=_env("WG_DEFAULT_ENDPOINT", ""),
		wg_server_ip=server_ip,
		wg_detect_public_ip=_env_bool("WG_DETECT_PUBLIC_IP", False),
		wg_default_address=default_address,
		wg_default_listen_port=_env_int("WG_DEFAULT_LISTEN_PORT", 51820, low=1, high=65535),
		wg_default_keepalive=_env_int("WG_DEFAULT_KEEPALIVE", 25, low=0, high=65535),
		jwt_secret=_env("JWT_SECRET", "") or secret_key,
		jwt_expire_minutes=_env_int("JWT_EXPIRE_MINUTES", 1440, low=1, high=525600),
		allow_registration=_env_bool("ALLOW_REGISTRATION", True),
		rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
		host=_env("HOST", "0.0.0.0"),
		port=_env_int("PORT", 8000, low=1, high=65535),
		log_level=log_level,
		secret_key=secret_key,
	)


# Global config singleton with thread-safe lazy initialization
_config: Config | None = None
_config_lock = threading.Lock()


def get_config() -> Config:
	"""Get the global config singleton (thread-safe)."""
	global _config
	if _config is None:
		with _config_lock:
			if _config is None:  # Double-checked locking
				_config = load_config()
	return _config


def reset_config() -> None:
	"""Reset the cached config. Intended for tests only."""
	global _config
	with _config_lock:
		_config = None
