#!/usr/bin/env python3
#
# nexuspoint/wireguard/applier.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Reload the kernel WireGuard interface from the server file.

Only called by the coordinator while it holds the server lock. There is no
internal retry; a failed apply surfaces as WG_APPLY_FAILED.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Callable

from ..errors import ApplyError, Code

__all__ = ["APPLY_TIMEOUT", "Applier"]

_log = logging.getLogger(__name__)

# Seconds per subprocess
APPLY_TIMEOUT = 10

Runner = Callable[..., subprocess.CompletedProcess]


class Applier:
	"""Runs the configured reload strategy (``service``, ``wg-quick`` or ``none``)."""

	def __init__(
		self,
		method: str,
		interface: str,
		config_path: Path,
		*,
		timeout: float = APPLY_TIMEOUT,
		runner: Runner = subprocess.run,
	) -> None:
		self.method = method
		self.interface = interface
		self.config_path = Path(config_path)
		self.timeout = timeout
		self._run = runner

	def _exec(self, cmd: list[str], stdin: str | None = None) -> str:
		try:
			proc = self._run(
				cmd,
				input=stdin,
				capture_output=True,
				text=True,
				timeout=self.timeout,
				check=False,
			)
		except subprocess.TimeoutExpired as exc:
			_log.error("WG_APPLY_FAILED cmd=%s error=timeout after %ss", cmd[0], self.timeout)
			raise ApplyError(f"{cmd[0]} timed out after {self.timeout}s", code=Code.WG_APPLY_FAILED) from exc
		except OSError as exc:
			_log.error("WG_APPLY_FAILED cmd=%s error=%s", cmd[0], exc)
			raise ApplyError(f"{cmd[0]} could not be executed", code=Code.WG_APPLY_FAILED) from exc
		if proc.returncode != 0:
			stderr = (proc.stderr or "").strip()
			_log.error("WG_APPLY_FAILED cmd=%s rc=%s stderr=%s", " ".join(cmd), proc.returncode, stderr)
			raise ApplyError(code=Code.WG_APPLY_FAILED)
		return proc.stdout or ""

	def apply(self) -> None:
		if self.method == "none":
			_log.debug("WG_APPLY_SKIPPED interface=%s", self.interface)
			return
		if self.method == "service":
			self._exec(["systemctl", "restart", f"wg-quick@{self.interface}"])
		elif self.method == "wg-quick":
			stripped = self._exec(["wg-quick", "strip", str(self.config_path)])
			self._exec(["wg", "syncconf", self.interface, "/dev/stdin"], stdin=stripped)
		else:
			raise ApplyError(f"Unknown apply method: {self.method}", code=Code.WG_APPLY_FAILED)
		_log.info("WG_APPLY_OK interface=%s method=%s", self.interface, self.method)
