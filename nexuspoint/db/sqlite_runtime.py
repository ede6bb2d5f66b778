#!/usr/bin/env python3
#
# nexuspoint/db/sqlite_runtime.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite runtime helpers: adapters, connections, and transactions."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

_log = logging.getLogger(__name__)

# Sentinel value to distinguish "not provided" from "set to None" in update functions.
# Use `is UNSET` to check if a parameter was not provided.
UNSET: object = object()


def _adapt_datetime(value: datetime) -> str:
	if value.tzinfo is None:
		raise ValueError("Naive datetime not allowed in SQLite")
	return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _convert_datetime(value: bytes) -> datetime:
	s = value.decode("utf-8")
	if s.endswith("Z"):
		s = s[:-1] + "+00:00"
	try:
		dt = datetime.fromisoformat(s)
		if dt.tzinfo is None:
			dt = dt.replace(tzinfo=timezone.utc)
		return dt.astimezone(timezone.utc)
	except ValueError:
		_log.error(
			"Corrupt timestamp in database: %r - returning epoch",
			value.decode("utf-8", errors="replace"),
		)
		return datetime(1970, 1, 1, tzinfo=timezone.utc)


# NOTE: sqlite3 adapter/converter registration is process-global.
sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("timestamp", _convert_datetime)


# ---------------------------------------------------------------------------
# Connection Registry
# ---------------------------------------------------------------------------

_OPEN_CONNECTIONS: set[sqlite3.Connection] = set()
_CONNECTIONS_LOCK = threading.Lock()


def connect(db_path: Path) -> sqlite3.Connection:
	"""Create a SQLite connection configured for this application.

	Connections are handed to worker threads (run_in_threadpool), so
	``check_same_thread`` is off; every connection is owned by one request.
	"""
	db_path.parent.mkdir(parents=True, exist_ok=True)
	conn = sqlite3.connect(
		str(db_path),
		detect_types=sqlite3.PARSE_DECLTYPES,
		check_same_thread=False,
		timeout=30.0,
		isolation_level=None,  # explicit BEGIN/COMMIT via transaction()
	)
	conn.row_factory = sqlite3.Row

	current_mode = conn.execute("PRAGMA journal_mode").fetchone()[0].upper()
	if current_mode != "WAL":
		conn.execute("PRAGMA journal_mode=WAL")
		_log.debug("Enabled WAL mode for database")
	conn.execute("PRAGMA foreign_keys=ON")

	with _CONNECTIONS_LOCK:
		_OPEN_CONNECTIONS.add(conn)

	return conn


def close_connection(conn: sqlite3.Connection) -> None:
	"""Close and untrack a SQLite connection."""
	with _CONNECTIONS_LOCK:
		_OPEN_CONNECTIONS.discard(conn)
	conn.close()


def close_all_connections() -> int:
	"""Close all tracked connections for graceful shutdown."""
	with _CONNECTIONS_LOCK:
		connections = list(_OPEN_CONNECTIONS)
		_OPEN_CONNECTIONS.clear()

	closed = 0
	for conn in connections:
		try:
			conn.close()
			closed += 1
		except sqlite3.Error as e:
			_log.warning("Failed to close SQLite connection: %s", e)

	return closed


@contextmanager
def transaction(conn: sqlite3.Connection, *, immediate: bool = False):
	"""Transaction context manager that commits or rolls back on error.

	If already inside a transaction, this is a no-op (the outer transaction
	controls commit/rollback). Inner functions MUST NOT catch and suppress
	exceptions that the outer transaction needs to see for rollback.
	"""
	started_tx = False
	if not conn.in_transaction:
		conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
		started_tx = True
	try:
		yield
		if started_tx:
			conn.execute("COMMIT")
	except BaseException:
		if started_tx and conn.in_transaction:
			conn.execute("ROLLBACK")
		raise


def integrity_column(exc: sqlite3.IntegrityError) -> str:
	"""Return the ``table.column`` named in a UNIQUE failure, or ''.

	SQLite reports e.g. ``UNIQUE constraint failed: users.email``; for
	composite keys only the first column is returned.
	"""
	msg = str(exc)
	marker = "UNIQUE constraint failed:"
	if marker not in msg:
		return ""
	return msg.split(marker, 1)[1].split(",")[0].strip()
