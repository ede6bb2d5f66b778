#!/usr/bin/env python3
#
# nexuspoint/utils/network.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Network utility functions."""

from __future__ import annotations

import ipaddress
import logging

import httpx

_log = logging.getLogger(__name__)

__all__ = [
    "detect_public_ip",
    "split_csv",
]

_IP_ECHO_URLS = (
    "https://ifconfig.me/ip",
    "https://api.ipify.org",
)


def detect_public_ip(timeout: float = 3.0) -> str | None:
    """Ask public echo services for this host's IPv4 address.

    Returns the first valid IPv4 answer, or None when every service fails.
    """
    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        for url in _IP_ECHO_URLS:
            try:
                resp = client.get(url)
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                _log.debug("Public IP lookup via %s failed: %s", url, exc)
                continue
            candidate = resp.text.strip()
            try:
                ip_obj = ipaddress.ip_address(candidate)
            except ValueError:
                continue
            if ip_obj.version == 4:
                _log.info("PUBLIC_IP_DETECTED ip=%s source=%s", candidate, url)
                return candidate
    _log.warning("Public IP detection failed for all sources")
    return None


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated list, dropping blanks."""
    return [x.strip() for x in (value or "").split(",") if x.strip()]
