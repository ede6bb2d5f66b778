#!/usr/bin/env python3
#
# nexuspoint/wireguard/render.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard configuration rendering.

SECURITY WARNING: Rendered configs contain decrypted private keys. Render into
memory and hand the text straight to ``files.atomic_write``.

Rendering is pure: the same inputs always produce the same bytes, so an
unchanged database never causes a spurious rewrite diff.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Iterable

from ..errors import Code, InvalidInputError
from ..utils.config import WG_FALLBACK_ALLOWED_IPS

__all__ = [
    "ServerInterface",
    "ServerPeer",
    "ClientConfig",
    "sanitize",
    "resolve",
    "global_endpoint",
    "render_server",
    "render_client",
    "parse_interface",
]


@dataclass(frozen=True)
class ServerInterface:
    address: str
    listen_port: int
    private_key: str
    mtu: int = 0
    post_up: str = ""
    post_down: str = ""


@dataclass(frozen=True)
class ServerPeer:
    peer_id: str
    username: str
    device_name: str
    public_key: str
    client_ip: str | None
    persistent_keepalive: int = 0
    status: str = "active"


@dataclass(frozen=True)
class ClientConfig:
    private_key: str
    address: str
    server_public_key: str
    endpoint: str
    allowed_ips: str
    dns: str = ""
    persistent_keepalive: int = 0


def sanitize(value: object, field: str) -> str:
    """Return ``value`` as a single-line string.

    Raises:
        InvalidInputError: value contains a line break (config injection).
    """
    text = "" if value is None else str(value)
    if "\n" in text or "\r" in text:
        raise InvalidInputError(
            f"{field} must not contain line breaks",
            code=Code.VALIDATION,
            details={field: "validation.singleline"},
        )
    return text.strip()


def resolve(*candidates: str | None) -> str:
    """First non-empty candidate (peer value, pool value, global default...)."""
    for candidate in candidates:
        if candidate is not None and str(candidate).strip():
            return str(candidate).strip()
    return ""


def resolve_allowed_ips(peer_value: str | None, pool_routes: str | None, default: str | None) -> str:
    return resolve(peer_value, pool_routes, default, WG_FALLBACK_ALLOWED_IPS)


def global_endpoint(public_ip: str | None, listen_port: int, default_endpoint: str | None) -> str:
    """``<public_ip>:<port>`` when the public IP is known, else the configured default."""
    if public_ip:
        host = public_ip.strip()
        try:
            if ipaddress.ip_address(host).version == 6:
                host = f"[{host}]"
        except ValueError:
            pass  # hostname
        return f"{host}:{listen_port}"
    return (default_endpoint or "").strip()


def _ip_sort_key(peer: ServerPeer) -> tuple[int, str]:
    address = str(peer.client_ip).split("/", 1)[0]
    return int(ipaddress.IPv4Address(address)), peer.peer_id


def render_server(iface: ServerInterface, peers: Iterable[ServerPeer]) -> str:
    """Render the server interface file.

    Only active peers holding an address are emitted, in ascending integer
    order of their tunnel address.
    """
    lines = [
        "[Interface]",
        f"Address = {sanitize(iface.address, 'address')}",
        f"ListenPort = {int(iface.listen_port)}",
        f"PrivateKey = {sanitize(iface.private_key, 'private_key')}",
    ]
    if iface.mtu:
        lines.append(f"MTU = {int(iface.mtu)}")
    post_up = sanitize(iface.post_up, "post_up")
    if post_up:
        lines.append(f"PostUp = {post_up}")
    post_down = sanitize(iface.post_down, "post_down")
    if post_down:
        lines.append(f"PostDown = {post_down}")

    active = [p for p in peers if p.status == "active" and p.client_ip]
    for peer in sorted(active, key=_ip_sort_key):
        lines.append("")
        lines.append(
            "# {} {} {}".format(
                sanitize(peer.peer_id, "id"),
                sanitize(peer.username, "username"),
                sanitize(peer.device_name, "device_name"),
            )
        )
        lines.append("[Peer]")
        lines.append(f"PublicKey = {sanitize(peer.public_key, 'public_key')}")
        lines.append(f"AllowedIPs = {sanitize(peer.client_ip, 'client_ip')}")
        if peer.persistent_keepalive:
            lines.append(f"PersistentKeepalive = {int(peer.persistent_keepalive)}")

    return "\n".join(lines) + "\n"


def render_client(cfg: ClientConfig) -> str:
    """Render a client (device) config file."""
    lines = [
        "[Interface]",
        f"PrivateKey = {sanitize(cfg.private_key, 'private_key')}",
        f"Address = {sanitize(cfg.address, 'client_ip')}",
    ]
    dns = sanitize(cfg.dns, "dns")
    if dns:
        lines.append(f"DNS = {dns}")
    lines += [
        "",
        "[Peer]",
        f"PublicKey = {sanitize(cfg.server_public_key, 'server_public_key')}",
        f"Endpoint = {sanitize(cfg.endpoint, 'endpoint')}",
        f"AllowedIPs = {sanitize(cfg.allowed_ips, 'allowed_ips')}",
    ]
    if cfg.persistent_keepalive:
        lines.append(f"PersistentKeepalive = {int(cfg.persistent_keepalive)}")
    return "\n".join(lines) + "\n"


_INTERFACE_KEYS = {
    "address": "address",
    "listenport": "listen_port",
    "privatekey": "private_key",
    "mtu": "mtu",
    "postup": "post_up",
    "postdown": "post_down",
}


def parse_interface(text: str) -> dict[str, object]:
    """Read the ``[Interface]`` section of an existing server file.

    Returns a dict with whichever of ``address``, ``listen_port``,
    ``private_key``, ``mtu``, ``post_up``, ``post_down`` were present.
    Repeated PostUp/PostDown lines are joined with ``; `` the way wg-quick
    runs them. Malformed numbers are ignored.
    """
    result: dict[str, object] = {}
    in_interface = False
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", ";")):
            continue
        if line.startswith("[") and line.endswith("]"):
            in_interface = line[1:-1].strip().lower() == "interface"
            continue
        if not in_interface or "=" not in line:
            continue
        key, value = line.split("=", 1)
        field = _INTERFACE_KEYS.get(key.strip().lower())
        value = value.strip()
        if field is None:
            continue
        if field in ("listen_port", "mtu"):
            try:
                result[field] = int(value)
            except ValueError:
                continue
        elif field in ("post_up", "post_down") and result.get(field):
            result[field] = f"{result[field]}; {value}"
        elif field == "address" and result.get(field):
            result[field] = f"{result[field]}, {value}"
        else:
            result[field] = value
    return result
