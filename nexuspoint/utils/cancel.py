#!/usr/bin/env python3
#
# nexuspoint/utils/cancel.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Per-request cancellation token shared between the event loop and workers."""

from __future__ import annotations

import threading

from ..errors import CancelledError


class CancelToken:
	"""Set once when the request that owns it goes away."""

	def __init__(self) -> None:
		self._event = threading.Event()

	def cancel(self) -> None:
		self._event.set()

	@property
	def cancelled(self) -> bool:
		return self._event.is_set()

	def raise_if_cancelled(self) -> None:
		if self._event.is_set():
			raise CancelledError()


def never_cancelled() -> CancelToken:
	"""Token for callers without a request context (startup, CLI, tests)."""
	return CancelToken()
