#!/usr/bin/env python3
#
# nexuspoint/wireguard/allocator.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Client tunnel address allocation from IP pools.

Addresses are handled as integer-backed ``IPv4Address`` values; the DB keeps
``ip_int`` next to the dotted form so range scans stay cheap. Callers must hold
the coordinator's server lock; the UNIQUE constraints on ``ip_allocations``
are the backstop if they don't.
"""

from __future__ import annotations

import ipaddress
import logging
import sqlite3
from collections.abc import Iterator
from ipaddress import IPv4Address, IPv4Network
from typing import Optional

from ..db.sqlite_allocations import delete_allocation, insert_allocation, is_ip_taken, taken_ip_ints
from ..errors import Code, IPAllocationError, InvalidInputError

__all__ = [
	"pool_network",
	"parse_client_ip",
	"host_range",
	"reserve",
	"release",
	"list_available",
]

_log = logging.getLogger(__name__)


def pool_network(cidr: str) -> IPv4Network:
	"""Parse a pool CIDR (host bits not allowed)."""
	try:
		network = ipaddress.ip_network(str(cidr).strip(), strict=True)
	except ValueError as exc:
		raise InvalidInputError(code=Code.IP_POOL_INVALID_CIDR) from exc
	if network.version != 4:
		raise InvalidInputError(code=Code.IP_POOL_INVALID_CIDR)
	return network


def parse_client_ip(value: str) -> IPv4Address:
	"""Accept ``a.b.c.d`` or ``a.b.c.d/32``; anything else is IP_NOT_IPV4."""
	text = str(value).strip()
	if text.endswith("/32"):
		text = text[:-3]
	try:
		address = ipaddress.ip_address(text)
	except ValueError as exc:
		raise IPAllocationError(code=Code.IP_NOT_IPV4) from exc
	if address.version != 4:
		raise IPAllocationError(code=Code.IP_NOT_IPV4)
	return address


def host_range(network: IPv4Network) -> tuple[int, int]:
	"""Integer bounds of assignable hosts (network and broadcast excluded)."""
	if network.prefixlen >= 31:
		raise IPAllocationError(code=Code.WG_PREFIX_TOO_SMALL)
	return int(network.network_address) + 1, int(network.broadcast_address) - 1


def _check_pool(pool: sqlite3.Row) -> IPv4Network:
	if pool["status"] != "active":
		raise IPAllocationError(code=Code.IP_POOL_DISABLED)
	return pool_network(pool["cidr"])


def _free(
	conn: sqlite3.Connection,
	network: IPv4Network,
	server_ip: Optional[IPv4Address],
) -> Iterator[IPv4Address]:
	low, high = host_range(network)
	taken = taken_ip_ints(conn, low, high)
	server_int = int(server_ip) if server_ip is not None else None
	for value in range(low, high + 1):
		if value in taken or value == server_int:
			continue
		yield IPv4Address(value)


def _validate_preferred(
	conn: sqlite3.Connection,
	network: IPv4Network,
	server_ip: Optional[IPv4Address],
	preferred: str | IPv4Address,
	ignore_peer_id: str | None,
) -> IPv4Address:
	address = preferred if isinstance(preferred, IPv4Address) else parse_client_ip(preferred)
	host_range(network)
	if address not in network:
		raise IPAllocationError(code=Code.IP_OUT_OF_RANGE)
	if address == network.network_address:
		raise IPAllocationError(code=Code.IP_IS_NETWORK_ADDRESS)
	if address == network.broadcast_address:
		raise IPAllocationError(code=Code.IP_IS_BROADCAST_ADDRESS)
	if server_ip is not None and address == server_ip:
		raise IPAllocationError(code=Code.IP_IS_SERVER_IP)
	if is_ip_taken(conn, int(address), ignore_peer_id=ignore_peer_id):
		raise IPAllocationError(code=Code.IP_ALREADY_IN_USE)
	return address


def reserve(
	conn: sqlite3.Connection,
	pool: sqlite3.Row,
	server_ip: Optional[IPv4Address],
	peer_id: str,
	preferred: str | IPv4Address | None = None,
) -> IPv4Address:
	"""Pick an address for ``peer_id`` and write its reservation row.

	With ``preferred`` the address is validated and used as-is; otherwise the
	lowest free host of the pool is taken.

	Raises:
		IPAllocationError: pool disabled, prefix too small, address rejected,
			or pool exhausted.
	"""
	network = _check_pool(pool)
	if preferred is not None and str(preferred).strip():
		address = _validate_preferred(conn, network, server_ip, preferred, peer_id)
	else:
		address = next(_free(conn, network, server_ip), None)
		if address is None:
			_log.warning("IP_POOL_EXHAUSTED pool=%s cidr=%s", pool["id"], pool["cidr"])
			raise IPAllocationError(code=Code.IP_POOL_EXHAUSTED)
	try:
		insert_allocation(
			conn,
			pool_id=pool["id"],
			peer_id=peer_id,
			ip_address=str(address),
			ip_int=int(address),
		)
	except sqlite3.IntegrityError as exc:
		raise IPAllocationError(code=Code.IP_ALREADY_IN_USE) from exc
	_log.debug("IP_RESERVED pool=%s ip=%s peer=%s", pool["id"], address, peer_id)
	return address


def release(conn: sqlite3.Connection, pool_id: str, ip: IPv4Address | int | str) -> None:
	"""Drop the reservation for ``ip``; releasing a free address is a no-op."""
	if isinstance(ip, int):
		value = ip
	elif isinstance(ip, IPv4Address):
		value = int(ip)
	else:
		value = int(parse_client_ip(ip))
	if delete_allocation(conn, pool_id, value):
		_log.debug("IP_RELEASED pool=%s ip=%s", pool_id, IPv4Address(value))


def list_available(
	conn: sqlite3.Connection,
	pool: sqlite3.Row,
	server_ip: Optional[IPv4Address],
	limit: int = 10,
) -> list[IPv4Address]:
	"""Up to ``limit`` lowest free addresses of the pool."""
	network = pool_network(pool["cidr"])
	result: list[IPv4Address] = []
	if limit <= 0:
		return result
	for address in _free(conn, network, server_ip):
		result.append(address)
		if len(result) >= limit:
			break
	return result
