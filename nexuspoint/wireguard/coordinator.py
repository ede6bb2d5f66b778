#!/usr/bin/env python3
#
# nexuspoint/wireguard/coordinator.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Peer coordinator: the single writer for peers, files and the kernel.

Every mutation follows the same shape::

    authorize -> take server lock -> DB transaction -> files -> apply -> unlock

Authorization happens before the lock so a denied request never touches
state. The DB is authoritative; files and kernel state are derived from it
and rebuilt by ``regenerate_all`` on startup. File or apply failures after
the commit are logged and surface as 500s, without retries.

Reads (list/get/download/available IPs) never take the lock.
"""

from __future__ import annotations

import ipaddress
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from ipaddress import IPv4Address
from typing import Any, Iterable, Iterator, Optional, Sequence

from ..db.sqlite_peers import get_peer_by_id, list_active_peers_by_ip
from ..db.sqlite_peers import list_peers as query_peers
from ..db.sqlite_peers_mutations import delete_peer as delete_peer_row
from ..db.sqlite_peers_mutations import insert_peer as insert_peer_row
from ..db.sqlite_peers_mutations import update_peer as update_peer_row
from ..db.sqlite_pools import first_active_pool, get_pool
from ..db.sqlite_runtime import transaction
from ..db.sqlite_server import get_server_config
from ..db.sqlite_users import get_user_by_username
from ..errors import (
	Code,
	InternalError,
	InvalidInputError,
	IPAllocationError,
	NotFoundError,
	PermissionDeniedError,
)
from ..models.peers import SENSITIVE_PEER_FIELDS, PeerCreate, PeerUpdate
from ..utils import authz
from ..utils.cancel import CancelToken, never_cancelled
from ..utils.config import Config
from ..utils.network import split_csv
from ..utils.snowflake import new_id
from ..utils.time import isoformat
from ..utils.vault import KeyVault
from .allocator import list_available, parse_client_ip, release, reserve
from .applier import Applier
from .files import remove_peer_dir, write_peer_files, write_server_file
from .keys import derive_public, generate_keypair
from .render import (
	ClientConfig,
	ServerInterface,
	ServerPeer,
	global_endpoint,
	render_client,
	render_server,
	resolve,
	resolve_allowed_ips,
)

__all__ = ["MAX_BATCH_SIZE", "ServerState", "server_tunnel_ip", "check_batch", "PeerCoordinator"]

_log = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50

# Seconds between cancellation checks while waiting for the server lock
_LOCK_POLL = 0.05

_PLAIN_UPDATE_FIELDS = ("device_name", "allowed_ips", "dns", "endpoint", "persistent_keepalive")


@dataclass(frozen=True)
class ServerState:
	"""Decrypted server interface, as needed for rendering."""
	row: sqlite3.Row
	private_key: str
	public_key: str
	tunnel_ip: IPv4Address
	endpoint: str
	dns: str

	def interface(self) -> ServerInterface:
		return ServerInterface(
			address=self.row["address"],
			listen_port=self.row["listen_port"],
			private_key=self.private_key,
			mtu=self.row["mtu"] or 0,
			post_up=self.row["post_up"] or "",
			post_down=self.row["post_down"] or "",
		)


def server_tunnel_ip(address: str) -> IPv4Address:
	"""First IPv4 host address of the server ``Address`` value."""
	for item in split_csv(address):
		try:
			iface = ipaddress.ip_interface(item)
		except ValueError as exc:
			raise InvalidInputError(code=Code.WG_SERVER_ADDRESS_INVALID) from exc
		if iface.version == 4:
			return iface.ip
	raise InvalidInputError(code=Code.WG_SERVER_ADDRESS_INVALID)


def _meta(peer: sqlite3.Row) -> dict[str, Any]:
	return {
		"id": str(peer["id"]),
		"username": peer["username"],
		"device_name": peer["device_name"],
		"client_ip": peer["client_ip"],
		"ip_pool_id": str(peer["ip_pool_id"]),
		"status": peer["status"],
		"public_key": peer["client_public_key"],
		"updated_at": isoformat(peer["updated_at"]),
	}


def check_batch(items: Sequence[Any]) -> None:
	if not items:
		raise InvalidInputError("Batch must contain at least one item")
	if len(items) > MAX_BATCH_SIZE:
		raise InvalidInputError(
			f"Batch size {len(items)} exceeds maximum of {MAX_BATCH_SIZE}",
			code=Code.WG_BATCH_TOO_LARGE,
		)


def _patch_fields(patch: PeerUpdate) -> dict[str, Any]:
	"""Explicitly set, non-null fields of an update payload."""
	data = patch.model_dump(exclude_unset=True, exclude={"id"})
	return {k: v for k, v in data.items() if v is not None}


class PeerCoordinator:
	"""Serializes every WireGuard mutation behind one process-wide lock.

	Lives on ``app.state.coordinator``; all methods are synchronous and take
	the request's connection, so API handlers call them via run_in_threadpool.
	"""

	def __init__(self, cfg: Config, applier: Applier | None = None) -> None:
		self.cfg = cfg
		self.applier = applier or Applier(cfg.wg_apply_method, cfg.wg_interface, cfg.wg_config_path)
		self.vault = KeyVault(cfg.secret_key)
		self._lock = threading.Lock()
		self.detected_public_ip = ""

	# ------------------------------------------------------------------
	# Lock
	# ------------------------------------------------------------------

	@contextmanager
	def locked(self, cancel: CancelToken | None = None) -> Iterator[None]:
		"""Hold the server lock.

		Cancellation is honoured until the lock is acquired; once inside, the
		critical section always runs to completion.
		"""
		cancel = cancel or never_cancelled()
		cancel.raise_if_cancelled()
		while not self._lock.acquire(timeout=_LOCK_POLL):
			cancel.raise_if_cancelled()
		try:
			yield
		finally:
			self._lock.release()

	# ------------------------------------------------------------------
	# Server state and rendering
	# ------------------------------------------------------------------

	def public_ip(self, row: sqlite3.Row) -> str:
		return (row["public_ip"] or "").strip() or self.cfg.wg_server_ip or self.detected_public_ip

	def load_server(self, conn: sqlite3.Connection) -> ServerState:
		row = get_server_config(conn)
		if row is None:
			raise InternalError(code=Code.WG_SERVER_CONFIG_NOT_INITIALIZED)
		private_key = self.vault.unseal(row["private_key"], "server")
		return ServerState(
			row=row,
			private_key=private_key,
			public_key=derive_public(private_key),
			tunnel_ip=server_tunnel_ip(row["address"]),
			endpoint=global_endpoint(self.public_ip(row), row["listen_port"], self.cfg.wg_default_endpoint),
			dns=resolve(row["dns"], self.cfg.wg_default_dns),
		)

	def _peer_private_key(self, peer: sqlite3.Row) -> str:
		return self.vault.unseal(peer["client_private_key"], f"peer {peer['id']}")

	def _resolved_endpoint(self, peer_endpoint: str | None, pool: sqlite3.Row | None, server: ServerState) -> str:
		endpoint = resolve(peer_endpoint, pool["endpoint"] if pool is not None else "", server.endpoint)
		if not endpoint:
			raise InvalidInputError(code=Code.WG_ENDPOINT_REQUIRED)
		return endpoint

	def client_config(
		self,
		conn: sqlite3.Connection,
		peer: sqlite3.Row,
		server: ServerState,
		pool: sqlite3.Row | None = None,
	) -> ClientConfig:
		"""Resolve a peer's client config: peer value, then pool, then global."""
		pool = pool if pool is not None else get_pool(conn, peer["ip_pool_id"])
		return ClientConfig(
			private_key=self._peer_private_key(peer),
			address=peer["client_ip"],
			server_public_key=server.public_key,
			endpoint=self._resolved_endpoint(peer["endpoint"], pool, server),
			allowed_ips=resolve_allowed_ips(
				peer["allowed_ips"],
				pool["routes"] if pool is not None else "",
				self.cfg.wg_default_allowed_ips,
			),
			dns=resolve(peer["dns"], pool["dns"] if pool is not None else "", server.dns),
			persistent_keepalive=peer["persistent_keepalive"] or 0,
		)

	def _write_peer(self, conn: sqlite3.Connection, peer: sqlite3.Row, server: ServerState) -> None:
		conf = None
		if peer["status"] == "active" and peer["client_ip"]:
			conf = render_client(self.client_config(conn, peer, server))
		write_peer_files(
			self.cfg.wg_user_dir,
			peer["username"],
			str(peer["id"]),
			conf=conf,
			private_key=self._peer_private_key(peer),
			public_key=peer["client_public_key"],
			meta=_meta(peer),
		)

	def _write_server(self, conn: sqlite3.Connection, server: ServerState) -> None:
		peers = [
			ServerPeer(
				peer_id=str(row["id"]),
				username=row["username"],
				device_name=row["device_name"],
				public_key=row["client_public_key"],
				client_ip=row["client_ip"],
				persistent_keepalive=row["persistent_keepalive"] or 0,
				status=row["status"],
			)
			for row in list_active_peers_by_ip(conn)
		]
		write_server_file(self.cfg.wg_config_path, render_server(server.interface(), peers))

	def publish(
		self,
		conn: sqlite3.Connection,
		*,
		peer_ids: Iterable[str] = (),
		removed: Iterable[tuple[str, str]] = (),
		server_changed: bool = True,
	) -> None:
		"""Bring files (and the kernel) in line with the committed DB state.

		Must be called with the lock held, after the transaction committed.
		"""
		server = self.load_server(conn)
		for username, peer_id in removed:
			remove_peer_dir(self.cfg.wg_user_dir, username, peer_id)
		for peer_id in dict.fromkeys(str(p) for p in peer_ids):
			peer = get_peer_by_id(conn, peer_id)
			if peer is None:
				continue
			try:
				self._write_peer(conn, peer, server)
			except InvalidInputError as exc:
				# Already committed: the server file and apply still have to follow
				_log.warning("CONFIG_SKIPPED peer=%s reason=%s", peer_id, exc.message)
		if server_changed:
			self._write_server(conn, server)
			self.applier.apply()

	def check_endpoints(self, conn: sqlite3.Connection, *, ip_pool_id: str | None = None) -> None:
		"""Fail if any active peer (of ``ip_pool_id``, or all) has no endpoint.

		Reads through ``conn`` so pending server or pool changes of the open
		transaction are seen; the raise rolls them back.
		"""
		server = self.load_server(conn)
		pools: dict[str, sqlite3.Row | None] = {}
		for peer in query_peers(conn, ip_pool_id=ip_pool_id, status="active"):
			pool_id = str(peer["ip_pool_id"])
			if pool_id not in pools:
				pools[pool_id] = get_pool(conn, pool_id)
			self._resolved_endpoint(peer["endpoint"], pools[pool_id], server)

	def regenerate_all(self, conn: sqlite3.Connection, *, apply: bool = True) -> int:
		"""Rewrite every peer directory and the server file from the DB.

		Peers whose config cannot be rendered (no endpoint resolvable) are
		skipped with a warning; returns the number of peers written.
		"""
		written = 0
		with self.locked():
			server = self.load_server(conn)
			for peer in query_peers(conn):
				try:
					self._write_peer(conn, peer, server)
				except InvalidInputError as exc:
					_log.warning("CONFIG_SKIPPED peer=%s reason=%s", peer["id"], exc.message)
					continue
				written += 1
			self._write_server(conn, server)
			if apply:
				self.applier.apply()
		_log.info("CONFIG_REGENERATED peers=%d", written)
		return written

	# ------------------------------------------------------------------
	# Lookups and authorization
	# ------------------------------------------------------------------

	@staticmethod
	def _load_peer(conn: sqlite3.Connection, peer_id: str) -> sqlite3.Row:
		peer = get_peer_by_id(conn, peer_id)
		if peer is None:
			raise NotFoundError(code=Code.WG_PEER_NOT_FOUND)
		return peer

	@staticmethod
	def _pool_for(conn: sqlite3.Connection, pool_id: str | None) -> sqlite3.Row:
		"""Explicit pool, or the first active one; must be active."""
		if pool_id:
			pool = get_pool(conn, pool_id)
			if pool is None:
				raise NotFoundError(code=Code.IP_POOL_NOT_FOUND)
		else:
			pool = first_active_pool(conn)
			if pool is None:
				raise NotFoundError("No active IP pool configured", code=Code.IP_POOL_NOT_FOUND)
		if pool["status"] != "active":
			raise IPAllocationError(code=Code.IP_POOL_DISABLED)
		return pool

	@staticmethod
	def _owner(conn: sqlite3.Connection, actor: sqlite3.Row, username: str | None) -> sqlite3.Row:
		if not username or username == actor["username"]:
			owner = actor
		else:
			owner = get_user_by_username(conn, username)
			if owner is None:
				raise NotFoundError(code=Code.USER_NOT_FOUND)
		if owner["status"] != "active":
			raise PermissionDeniedError(f"User {owner['username']} is not active", code=Code.USER_NOT_ACTIVE)
		return owner

	def _authorize_create(self, conn: sqlite3.Connection, actor: sqlite3.Row, req: PeerCreate) -> sqlite3.Row:
		# Scope follows the requested owner name, so a denied caller never
		# learns whether that user exists.
		if not req.username or req.username == actor["username"]:
			authz.enforce(actor, "wg_peer", authz.WG_PEER_CREATE, actor["id"])
		else:
			authz.enforce(actor, "wg_peer", authz.WG_PEER_CREATE)
		return self._owner(conn, actor, req.username)

	def _authorize_update(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		peer: sqlite3.Row,
		fields: dict[str, Any],
		surface: str,
	) -> Optional[sqlite3.Row]:
		"""Check update rights; returns the new owner when ownership changes."""
		if surface == "self":
			authz.enforce(actor, "wg_config", authz.WG_CONFIG_UPDATE, peer["user_id"])
		else:
			authz.enforce(actor, "wg_peer", authz.WG_PEER_UPDATE, peer["user_id"])
		if SENSITIVE_PEER_FIELDS & fields.keys():
			authz.enforce(actor, "wg_peer", authz.WG_PEER_UPDATE_SENSITIVE, peer["user_id"])
		username = fields.get("username")
		if username and username != peer["username"]:
			return self._owner(conn, actor, username)
		return None

	# ------------------------------------------------------------------
	# Mutation steps (run inside the transaction)
	# ------------------------------------------------------------------

	def _insert(
		self,
		conn: sqlite3.Connection,
		owner: sqlite3.Row,
		req: PeerCreate,
		server: ServerState,
	) -> str:
		pool = self._pool_for(conn, req.ip_pool_id)
		self._resolved_endpoint(req.endpoint, pool, server)
		peer_id = new_id()
		address = reserve(conn, pool, server.tunnel_ip, peer_id, preferred=req.client_ip)
		if req.private_key:
			private_key = req.private_key.strip()
			public_key = derive_public(private_key)
		else:
			private_key, public_key = generate_keypair()
		keepalive = req.persistent_keepalive
		if keepalive is None:
			keepalive = self.cfg.wg_default_keepalive
		insert_peer_row(
			conn,
			peer_id=peer_id,
			user_id=owner["id"],
			device_name=req.device_name,
			client_private_key=self.vault.seal(private_key),
			client_public_key=public_key,
			client_ip=f"{address}/32",
			client_ip_int=int(address),
			ip_pool_id=pool["id"],
			allowed_ips=req.allowed_ips or "",
			dns=req.dns or "",
			endpoint=req.endpoint or "",
			persistent_keepalive=keepalive,
		)
		return peer_id

	def _release_held(self, conn: sqlite3.Connection, peer: sqlite3.Row) -> None:
		if peer["client_ip_int"] is not None:
			release(conn, peer["ip_pool_id"], peer["client_ip_int"])

	def _apply_update(
		self,
		conn: sqlite3.Connection,
		peer: sqlite3.Row,
		fields: dict[str, Any],
		new_owner: Optional[sqlite3.Row],
		server: ServerState,
	) -> None:
		updates: dict[str, Any] = {k: fields[k] for k in _PLAIN_UPDATE_FIELDS if k in fields}
		if new_owner is not None:
			updates["user_id"] = new_owner["id"]
		if "private_key" in fields:
			private_key = fields["private_key"].strip()
			updates["client_public_key"] = derive_public(private_key)
			updates["client_private_key"] = self.vault.seal(private_key)

		status = fields.get("status", peer["status"])
		pool_id = str(fields.get("ip_pool_id", peer["ip_pool_id"]))
		pool_changed = pool_id != str(peer["ip_pool_id"])

		if status == "disabled":
			if pool_changed and get_pool(conn, pool_id) is None:
				raise NotFoundError(code=Code.IP_POOL_NOT_FOUND)
			self._release_held(conn, peer)
			updates.update(status="disabled", client_ip=None, client_ip_int=None, ip_pool_id=pool_id)
		else:
			wanted = fields.get("client_ip")
			ip_changed = wanted is not None and (
				peer["client_ip_int"] is None or int(parse_client_ip(wanted)) != peer["client_ip_int"]
			)
			if pool_changed or ip_changed or peer["client_ip_int"] is None:
				pool = self._pool_for(conn, pool_id)
				self._release_held(conn, peer)
				address = reserve(conn, pool, server.tunnel_ip, str(peer["id"]), preferred=wanted)
				updates.update(client_ip=f"{address}/32", client_ip_int=int(address), ip_pool_id=pool["id"])
			else:
				pool = get_pool(conn, pool_id)
			updates["status"] = "active"
			self._resolved_endpoint(updates.get("endpoint", peer["endpoint"]), pool, server)

		update_peer_row(conn, peer["id"], **updates)

	def _disable(self, conn: sqlite3.Connection, peer: sqlite3.Row) -> None:
		self._release_held(conn, peer)
		update_peer_row(conn, peer["id"], status="disabled", client_ip=None, client_ip_int=None)

	# ------------------------------------------------------------------
	# Peer operations
	# ------------------------------------------------------------------

	def create_peer(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		req: PeerCreate,
		cancel: CancelToken | None = None,
	) -> sqlite3.Row:
		owner = self._authorize_create(conn, actor, req)
		with self.locked(cancel):
			server = self.load_server(conn)
			with transaction(conn, immediate=True):
				peer_id = self._insert(conn, owner, req, server)
			self.publish(conn, peer_ids=[peer_id])
		peer = self._load_peer(conn, peer_id)
		_log.info(
			"PEER_CREATED id=%s user=%s device=%s ip=%s by=%s",
			peer_id, owner["username"], peer["device_name"], peer["client_ip"], actor["username"],
		)
		return peer

	def update_peer(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		peer_id: str,
		patch: PeerUpdate,
		cancel: CancelToken | None = None,
		*,
		surface: str = "admin",
	) -> sqlite3.Row:
		"""Apply a partial update.

		``surface`` is ``admin`` for /wg/peers (wg_peer:update) and ``self``
		for /wg/configs (wg_config:update).
		"""
		fields = _patch_fields(patch)
		peer = self._load_peer(conn, peer_id)
		new_owner = self._authorize_update(conn, actor, peer, fields, surface)
		with self.locked(cancel):
			server = self.load_server(conn)
			with transaction(conn, immediate=True):
				peer = self._load_peer(conn, peer_id)
				self._apply_update(conn, peer, fields, new_owner, server)
			removed = [(peer["username"], str(peer_id))] if new_owner is not None else []
			self.publish(conn, peer_ids=[peer_id], removed=removed)
		_log.info("PEER_UPDATED id=%s fields=%s by=%s", peer_id, ",".join(sorted(fields)), actor["username"])
		return self._load_peer(conn, peer_id)

	def rotate(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		peer_id: str,
		cancel: CancelToken | None = None,
	) -> sqlite3.Row:
		peer = self._load_peer(conn, peer_id)
		authz.enforce(actor, "wg_config", authz.WG_CONFIG_ROTATE, peer["user_id"])
		with self.locked(cancel):
			private_key, public_key = generate_keypair()
			with transaction(conn, immediate=True):
				self._load_peer(conn, peer_id)
				update_peer_row(
					conn,
					peer_id,
					client_private_key=self.vault.seal(private_key),
					client_public_key=public_key,
				)
			self.publish(conn, peer_ids=[peer_id])
		_log.info("PEER_ROTATED id=%s by=%s", peer_id, actor["username"])
		return self._load_peer(conn, peer_id)

	def revoke(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		peer_id: str,
		cancel: CancelToken | None = None,
	) -> sqlite3.Row:
		"""Disable a peer and release its address; a disabled peer is left as is."""
		peer = self._load_peer(conn, peer_id)
		authz.enforce(actor, "wg_config", authz.WG_CONFIG_REVOKE, peer["user_id"])
		with self.locked(cancel):
			peer = self._load_peer(conn, peer_id)
			if peer["status"] == "disabled":
				_log.info("PEER_REVOKE_NOOP id=%s by=%s", peer_id, actor["username"])
				return peer
			with transaction(conn, immediate=True):
				self._disable(conn, peer)
			self.publish(conn, peer_ids=[peer_id])
		_log.info("PEER_REVOKED id=%s ip=%s by=%s", peer_id, peer["client_ip"], actor["username"])
		return self._load_peer(conn, peer_id)

	def delete_peer(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		peer_id: str,
		cancel: CancelToken | None = None,
	) -> None:
		peer = self._load_peer(conn, peer_id)
		authz.enforce(actor, "wg_peer", authz.WG_PEER_DELETE, peer["user_id"])
		with self.locked(cancel):
			with transaction(conn, immediate=True):
				peer = self._load_peer(conn, peer_id)
				delete_peer_row(conn, peer_id)
			self.publish(conn, removed=[(peer["username"], str(peer_id))])
		_log.info("PEER_DELETED id=%s ip=%s by=%s", peer_id, peer["client_ip"], actor["username"])

	def disable_user_peers(
		self,
		conn: sqlite3.Connection,
		user_id: str,
		cancel: CancelToken | None = None,
	) -> int:
		"""Revoke every active peer of a user (account deactivated or deleted)."""
		with self.locked(cancel):
			peers = query_peers(conn, user_id=user_id, status="active")
			if not peers:
				return 0
			with transaction(conn, immediate=True):
				for peer in peers:
					self._disable(conn, peer)
			self.publish(conn, peer_ids=[p["id"] for p in peers])
		_log.info("PEER_REVOKED user=%s count=%d reason=user_inactive", user_id, len(peers))
		return len(peers)

	def rename_owner(
		self,
		conn: sqlite3.Connection,
		user_id: str,
		old_username: str,
		cancel: CancelToken | None = None,
	) -> None:
		"""Move a renamed user's peer directories and refresh the server comments."""
		with self.locked(cancel):
			peers = query_peers(conn, user_id=user_id)
			if not peers:
				return
			self.publish(
				conn,
				peer_ids=[p["id"] for p in peers],
				removed=[(old_username, str(p["id"])) for p in peers],
			)

	# ------------------------------------------------------------------
	# Batches: authorize every item, then one transaction, then one publish
	# ------------------------------------------------------------------

	def create_peers(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		items: Sequence[PeerCreate],
		cancel: CancelToken | None = None,
	) -> list[sqlite3.Row]:
		check_batch(items)
		owners = [self._authorize_create(conn, actor, item) for item in items]
		with self.locked(cancel):
			server = self.load_server(conn)
			with transaction(conn, immediate=True):
				ids = [self._insert(conn, owner, item, server) for owner, item in zip(owners, items)]
			self.publish(conn, peer_ids=ids)
		_log.info("PEER_BATCH_CREATED count=%d by=%s", len(ids), actor["username"])
		return [self._load_peer(conn, peer_id) for peer_id in ids]

	def update_peers(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		items: Sequence[Any],
		cancel: CancelToken | None = None,
	) -> list[sqlite3.Row]:
		"""Batch update; each item is a PeerUpdate carrying an ``id``."""
		check_batch(items)
		plans = []
		for item in items:
			fields = _patch_fields(item)
			peer = self._load_peer(conn, item.id)
			plans.append((item.id, fields, self._authorize_update(conn, actor, peer, fields, "admin")))
		removed = []
		with self.locked(cancel):
			server = self.load_server(conn)
			with transaction(conn, immediate=True):
				for peer_id, fields, new_owner in plans:
					peer = self._load_peer(conn, peer_id)
					if new_owner is not None:
						removed.append((peer["username"], str(peer_id)))
					self._apply_update(conn, peer, fields, new_owner, server)
			self.publish(conn, peer_ids=[p[0] for p in plans], removed=removed)
		_log.info("PEER_BATCH_UPDATED count=%d by=%s", len(plans), actor["username"])
		return [self._load_peer(conn, peer_id) for peer_id in dict.fromkeys(p[0] for p in plans)]

	def delete_peers(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		peer_ids: Sequence[str],
		cancel: CancelToken | None = None,
	) -> int:
		check_batch(peer_ids)
		unique_ids = list(dict.fromkeys(str(p) for p in peer_ids))
		for peer_id in unique_ids:
			peer = self._load_peer(conn, peer_id)
			authz.enforce(actor, "wg_peer", authz.WG_PEER_DELETE, peer["user_id"])
		removed = []
		with self.locked(cancel):
			with transaction(conn, immediate=True):
				for peer_id in unique_ids:
					peer = self._load_peer(conn, peer_id)
					delete_peer_row(conn, peer_id)
					removed.append((peer["username"], peer_id))
			self.publish(conn, removed=removed)
		_log.info("PEER_BATCH_DELETED count=%d by=%s", len(removed), actor["username"])
		return len(removed)

	# ------------------------------------------------------------------
	# Reads (no lock)
	# ------------------------------------------------------------------

	def get_peer(self, conn: sqlite3.Connection, actor: sqlite3.Row, peer_id: str) -> sqlite3.Row:
		peer = self._load_peer(conn, peer_id)
		authz.enforce(actor, "wg_peer", authz.WG_PEER_READ, peer["user_id"])
		return peer

	def list_peers(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		*,
		username: str | None = None,
		ip_pool_id: str | None = None,
		status: str | None = None,
		device_name: str | None = None,
	) -> list[sqlite3.Row]:
		"""List peers visible to ``actor``; non-admins only ever see their own."""
		user_id: str | None
		if username and username != actor["username"]:
			authz.enforce(actor, "wg_peer", authz.WG_PEER_LIST)
			owner = get_user_by_username(conn, username)
			if owner is None:
				raise NotFoundError(code=Code.USER_NOT_FOUND)
			user_id = owner["id"]
		elif username or not authz.allowed(actor["role"], authz.obj("wg_peer", authz.SCOPE_ANY), authz.WG_PEER_LIST):
			authz.enforce(actor, "wg_peer", authz.WG_PEER_LIST, actor["id"])
			user_id = actor["id"]
		else:
			user_id = None
		return query_peers(conn, user_id=user_id, ip_pool_id=ip_pool_id, status=status, device_name=device_name)

	def list_mine(self, conn: sqlite3.Connection, actor: sqlite3.Row) -> list[sqlite3.Row]:
		authz.enforce(actor, "wg_peer", authz.WG_PEER_LIST, actor["id"])
		return query_peers(conn, user_id=actor["id"])

	def download(self, conn: sqlite3.Connection, actor: sqlite3.Row, peer_id: str) -> tuple[sqlite3.Row, str]:
		"""Render a peer's client config for download (same bytes as on disk)."""
		peer = self._load_peer(conn, peer_id)
		authz.enforce(actor, "wg_config", authz.WG_CONFIG_DOWNLOAD, peer["user_id"])
		if peer["status"] != "active" or not peer["client_ip"]:
			raise InvalidInputError(code=Code.WG_PEER_DISABLED)
		server = self.load_server(conn)
		return peer, render_client(self.client_config(conn, peer, server))

	def available_ips(
		self,
		conn: sqlite3.Connection,
		actor: sqlite3.Row,
		pool_id: str,
		limit: int = 10,
	) -> tuple[sqlite3.Row, list[IPv4Address]]:
		authz.enforce(actor, "ip_pool", authz.IP_POOL_LIST)
		pool = get_pool(conn, pool_id)
		if pool is None:
			raise NotFoundError(code=Code.IP_POOL_NOT_FOUND)
		server = self.load_server(conn)
		return pool, list_available(conn, pool, server.tunnel_ip, limit)
