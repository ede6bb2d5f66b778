#!/usr/bin/env python3
#
# nexuspoint/wireguard/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""WireGuard provisioning engine: keys, allocation, rendering, apply."""

from .applier import Applier
from .coordinator import MAX_BATCH_SIZE, PeerCoordinator

__all__ = ["Applier", "MAX_BATCH_SIZE", "PeerCoordinator"]
