#!/usr/bin/env python3
#
# nexuspoint/utils/rate_limit.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Rate limiting configuration using slowapi."""

from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

# Rate limit presets
RATE_LIMIT_AUTH = "5/minute"         # Strict limit for login attempts
RATE_LIMIT_REGISTER = "10/hour"      # Public self-registration
RATE_LIMIT_DOWNLOAD = "30/minute"    # Config / QR downloads expose private keys

# Global limiter instance
limiter = Limiter(key_func=get_remote_address)

__all__ = [
	"RATE_LIMIT_AUTH",
	"RATE_LIMIT_REGISTER",
	"RATE_LIMIT_DOWNLOAD",
	"limiter",
]
