#!/usr/bin/env python3
#
# nexuspoint/utils/authz.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Static RBAC policy.

Objects are ``<resource>:<scope>`` where scope is ``self`` when the caller owns
the resource and ``any`` otherwise. Actions are ``<resource>:<verb>``. The
policy table below is the whole rule set; it is built once at import.
"""

from __future__ import annotations

from ..errors import PermissionDeniedError

ROLE_ADMIN = "admin"
ROLE_USER = "user"

SCOPE_SELF = "self"
SCOPE_ANY = "any"

# ---- user ----
USER_CREATE = "user:create"
USER_READ = "user:read"
USER_LIST = "user:list"
USER_UPDATE_BASIC = "user:update_basic"
USER_UPDATE_SENSITIVE = "user:update_sensitive"
USER_SOFT_DELETE = "user:soft_delete"
USER_HARD_DELETE = "user:hard_delete"
USER_CHANGE_PASSWORD = "user:change_password"

# ---- WireGuard peer (admin surface) ----
WG_PEER_CREATE = "wg_peer:create"
WG_PEER_READ = "wg_peer:read"
WG_PEER_LIST = "wg_peer:list"
WG_PEER_UPDATE = "wg_peer:update"
WG_PEER_UPDATE_SENSITIVE = "wg_peer:update_sensitive"
WG_PEER_DELETE = "wg_peer:delete"

# ---- WireGuard config (user surface) ----
WG_CONFIG_DOWNLOAD = "wg_config:download"
WG_CONFIG_ROTATE = "wg_config:rotate"
WG_CONFIG_REVOKE = "wg_config:revoke"
WG_CONFIG_UPDATE = "wg_config:update"

# ---- IP pool ----
IP_POOL_CREATE = "ip_pool:create"
IP_POOL_READ = "ip_pool:read"
IP_POOL_LIST = "ip_pool:list"
IP_POOL_UPDATE = "ip_pool:update"
IP_POOL_DELETE = "ip_pool:delete"

# ---- WireGuard server ----
WG_SERVER_READ = "wg_server:read"
WG_SERVER_UPDATE = "wg_server:update"

ALL_ACTIONS = (
	USER_CREATE, USER_READ, USER_LIST, USER_UPDATE_BASIC, USER_UPDATE_SENSITIVE,
	USER_SOFT_DELETE, USER_HARD_DELETE, USER_CHANGE_PASSWORD,
	WG_PEER_CREATE, WG_PEER_READ, WG_PEER_LIST, WG_PEER_UPDATE,
	WG_PEER_UPDATE_SENSITIVE, WG_PEER_DELETE,
	WG_CONFIG_DOWNLOAD, WG_CONFIG_ROTATE, WG_CONFIG_REVOKE, WG_CONFIG_UPDATE,
	IP_POOL_CREATE, IP_POOL_READ, IP_POOL_LIST, IP_POOL_UPDATE, IP_POOL_DELETE,
	WG_SERVER_READ, WG_SERVER_UPDATE,
)

# Regular users act on their own account and their own device configs only.
_USER_RULES = (
	("user:self", USER_READ),
	("user:self", USER_UPDATE_BASIC),
	("user:self", USER_SOFT_DELETE),
	("user:self", USER_CHANGE_PASSWORD),
	("wg_peer:self", WG_PEER_LIST),
	("wg_peer:self", WG_PEER_READ),
	("wg_config:self", WG_CONFIG_DOWNLOAD),
	("wg_config:self", WG_CONFIG_ROTATE),
	("wg_config:self", WG_CONFIG_REVOKE),
	("wg_config:self", WG_CONFIG_UPDATE),
)


def _build_policy() -> frozenset[tuple[str, str, str]]:
	rules: set[tuple[str, str, str]] = set()
	for obj, act in _USER_RULES:
		rules.add((ROLE_USER, obj, act))
	for act in ALL_ACTIONS:
		resource = act.split(":", 1)[0]
		for scope in (SCOPE_SELF, SCOPE_ANY):
			rules.add((ROLE_ADMIN, f"{resource}:{scope}", act))
	return frozenset(rules)


_POLICY = _build_policy()


def obj(resource: str, scope: str) -> str:
	"""Build the canonical object string ``<resource>:<scope>``."""
	return f"{resource}:{scope}"


def scope_for(actor_id: str, owner_id: str | None) -> str:
	return SCOPE_SELF if owner_id is not None and str(actor_id) == str(owner_id) else SCOPE_ANY


def allowed(role: str, object_: str, action: str) -> bool:
	"""Boolean policy oracle."""
	return (role, object_, action) in _POLICY


def enforce(actor, resource: str, action: str, owner_id: str | None = None) -> None:
	"""Raise PermissionDeniedError unless ``actor`` may perform ``action``.

	``actor`` is a users row (``id``, ``role``). ``owner_id`` is the owning
	user of the target resource; ``None`` means a global resource.
	"""
	scope = scope_for(actor["id"], owner_id) if owner_id is not None else SCOPE_ANY
	if not allowed(actor["role"], obj(resource, scope), action):
		raise PermissionDeniedError(f"Permission denied: {action} on {resource}:{scope}")
