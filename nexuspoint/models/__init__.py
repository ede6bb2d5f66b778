#!/usr/bin/env python3
#
# nexuspoint/models/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Pydantic models for NexusPoint."""

from .users import (
	LoginRequest,
	PasswordChangeRequest,
	TokenResponse,
	UserCreate,
	UserList,
	UserPublic,
	UserUpdate,
)
from .pools import (
	AvailableIPs,
	BatchDelete,
	BatchDeleteResult,
	PoolBatchCreate,
	PoolBatchUpdate,
	PoolBatchUpdateItem,
	PoolCreate,
	PoolList,
	PoolPublic,
	PoolUpdate,
)
from .peers import (
	PeerBatchCreate,
	PeerBatchUpdate,
	PeerBatchUpdateItem,
	PeerCreate,
	PeerList,
	PeerPublic,
	PeerUpdate,
)
from .server import ServerConfigPublic, ServerConfigUpdate

__all__ = [
	# Users
	"LoginRequest",
	"PasswordChangeRequest",
	"TokenResponse",
	"UserCreate",
	"UserList",
	"UserPublic",
	"UserUpdate",
	# IP pools
	"AvailableIPs",
	"BatchDelete",
	"BatchDeleteResult",
	"PoolBatchCreate",
	"PoolBatchUpdate",
	"PoolBatchUpdateItem",
	"PoolCreate",
	"PoolList",
	"PoolPublic",
	"PoolUpdate",
	# Peers
	"PeerBatchCreate",
	"PeerBatchUpdate",
	"PeerBatchUpdateItem",
	"PeerCreate",
	"PeerList",
	"PeerPublic",
	"PeerUpdate",
	# Server
	"ServerConfigPublic",
	"ServerConfigUpdate",
]
