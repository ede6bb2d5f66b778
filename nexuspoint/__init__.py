#!/usr/bin/env python3
#
# nexuspoint/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""NexusPoint - self-hosted WireGuard VPN control plane."""

from .main import create_app

__all__ = ["create_app"]
