#!/usr/bin/env python3
#
# nexuspoint/wireguard/server.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Server interface configuration (the singleton ``[Interface]`` row)."""

from __future__ import annotations

import logging
import sqlite3

from ..db.sqlite_allocations import is_ip_taken
from ..db.sqlite_peers import list_peers
from ..db.sqlite_runtime import transaction
from ..db.sqlite_server import get_server_config, insert_server_config, update_server_config
from ..errors import Code, IPAllocationError, InvalidInputError, KeyMaterialError
from ..models.server import ServerConfigPublic, ServerConfigUpdate
from ..utils import authz
from ..utils.cancel import CancelToken
from .coordinator import PeerCoordinator, server_tunnel_ip
from .keys import generate_keypair, validate_private
from .render import parse_interface

__all__ = ["bootstrap_server_config", "get_server_view", "update_server"]

_log = logging.getLogger(__name__)


def bootstrap_server_config(coord: PeerCoordinator, conn: sqlite3.Connection) -> bool:
	"""Create the server row on first start.

	An existing server file's ``[Interface]`` is imported when present;
	otherwise a fresh key is generated with the configured address and port.
	Returns True if a row was created.
	"""
	if get_server_config(conn) is not None:
		return False

	cfg = coord.cfg
	imported: dict = {}
	if cfg.wg_config_path.is_file():
		try:
			imported = parse_interface(cfg.wg_config_path.read_text(encoding="utf-8"))
		except OSError as exc:
			_log.warning("Cannot read existing server config %s: %s", cfg.wg_config_path, exc)

	private_key = str(imported.get("private_key") or "")
	if private_key:
		try:
			validate_private(private_key)
		except KeyMaterialError:
			_log.warning("Ignoring invalid PrivateKey in %s", cfg.wg_config_path)
			private_key = ""
	if not private_key:
		private_key, _ = generate_keypair()

	address = str(imported.get("address") or cfg.wg_default_address)
	try:
		server_tunnel_ip(address)
	except InvalidInputError:
		_log.warning("Ignoring invalid Address %r in %s", address, cfg.wg_config_path)
		address = cfg.wg_default_address

	listen_port = imported.get("listen_port") or cfg.wg_default_listen_port
	created = insert_server_config(
		conn,
		address=address,
		listen_port=int(listen_port),
		private_key=coord.vault.seal(private_key),
		mtu=int(imported.get("mtu") or 0),
		post_up=str(imported.get("post_up") or ""),
		post_down=str(imported.get("post_down") or ""),
	)
	if created:
		source = "imported" if imported else "generated"
		_log.info("SERVER_CONFIG_INITIALIZED source=%s address=%s port=%s", source, address, listen_port)
	return created


def get_server_view(coord: PeerCoordinator, conn: sqlite3.Connection, actor: sqlite3.Row) -> ServerConfigPublic:
	authz.enforce(actor, "wg_server", authz.WG_SERVER_READ)
	server = coord.load_server(conn)
	row = server.row
	return ServerConfigPublic(
		address=row["address"],
		listen_port=row["listen_port"],
		public_key=server.public_key,
		mtu=row["mtu"] or 0,
		post_up=row["post_up"] or "",
		post_down=row["post_down"] or "",
		public_ip=row["public_ip"] or "",
		dns=row["dns"] or "",
		endpoint=server.endpoint,
		updated_at=row["updated_at"],
	)


def update_server(
	coord: PeerCoordinator,
	conn: sqlite3.Connection,
	actor: sqlite3.Row,
	patch: ServerConfigUpdate,
	cancel: CancelToken | None = None,
) -> ServerConfigPublic:
	"""Update the server interface, then rewrite every file and apply.

	Client files embed the server public key, endpoint and DNS, so all of
	them are rewritten along with the server file.
	"""
	authz.enforce(actor, "wg_server", authz.WG_SERVER_UPDATE)
	fields = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}
	tunnel_ip = server_tunnel_ip(fields["address"]) if "address" in fields else None
	if "private_key" in fields:
		fields["private_key"] = fields["private_key"].strip()
		validate_private(fields["private_key"])
		fields["private_key"] = coord.vault.seal(fields["private_key"])

	with coord.locked(cancel):
		with transaction(conn, immediate=True):
			if tunnel_ip is not None and is_ip_taken(conn, int(tunnel_ip)):
				raise IPAllocationError(
					f"Server address {tunnel_ip} is held by a peer",
					code=Code.IP_ALREADY_IN_USE,
				)
			update_server_config(conn, **fields)
			coord.check_endpoints(conn)
		coord.publish(conn, peer_ids=[p["id"] for p in list_peers(conn)])
	_log.info("SERVER_CONFIG_UPDATED fields=%s by=%s", ",".join(sorted(fields)), actor["username"])
	return get_server_view(coord, conn, actor)
