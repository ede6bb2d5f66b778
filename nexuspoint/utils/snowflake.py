#!/usr/bin/env python3
#
# nexuspoint/utils/snowflake.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""64-bit snowflake IDs rendered as decimal strings.

Layout: 41 bits milliseconds since 2024-01-01, 10 bits node, 12 bits sequence.
"""

from __future__ import annotations

import os
import threading
import time

_EPOCH_MS = 1704067200000  # 2024-01-01T00:00:00Z
_NODE_BITS = 10
_SEQ_BITS = 12
_MAX_SEQ = (1 << _SEQ_BITS) - 1


class SnowflakeGenerator:
	"""Thread-safe, monotonic ID generator."""

	def __init__(self, node_id: int = 0) -> None:
		self._node = node_id & ((1 << _NODE_BITS) - 1)
		self._lock = threading.Lock()
		self._last_ms = -1
		self._seq = 0

	def next_id(self) -> str:
		with self._lock:
			now = int(time.time() * 1000)
			if now < self._last_ms:
				# Clock moved backwards: keep issuing from the last timestamp
				now = self._last_ms
			if now == self._last_ms:
				self._seq = (self._seq + 1) & _MAX_SEQ
				if self._seq == 0:
					while now <= self._last_ms:
						now = int(time.time() * 1000)
			else:
				self._seq = 0
			self._last_ms = now
			value = ((now - _EPOCH_MS) << (_NODE_BITS + _SEQ_BITS)) | (self._node << _SEQ_BITS) | self._seq
			return str(value)


_generator = SnowflakeGenerator(node_id=os.getpid())


def new_id() -> str:
	"""Return a new process-unique snowflake ID."""
	return _generator.next_id()
