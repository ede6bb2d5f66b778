#!/usr/bin/env python3
#
# nexuspoint/wireguard/files.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Atomic writes for the server file and per-peer artifacts.

Layout under the user directory::

    <user_dir>/<username>/<peer_id>/
        <peer_id>.conf   0600
        privatekey       0600
        publickey        0644
        meta.json        0644
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Any

from ..errors import Code, FileSystemError

__all__ = [
    "atomic_write",
    "write_server_file",
    "peer_dir",
    "write_peer_files",
    "remove_peer_dir",
]

_log = logging.getLogger(__name__)

# Path components come from validated usernames and snowflake IDs; this is
# only a last guard against traversal.
_SAFE_COMPONENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]{0,127}$")


def _fsync_dir(directory: Path) -> None:
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return  # platforms without directory fds
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write(path: Path, content: str, mode: int = 0o600) -> None:
    """Write ``content`` to ``path`` so readers see either old or new bytes.

    The data goes to ``<path>.tmp`` (created 0600, switched to ``mode`` before
    the rename), is fsynced, renamed over ``path`` and the directory fsynced.

    Raises:
        OSError: on any failure; the temp file is removed first.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    data = content.encode("utf-8")
    try:
        fd = os.open(str(tmp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            view = memoryview(data)
            while view:
                written = os.write(fd, view)
                view = view[written:]
            os.fchmod(fd, mode)
            os.fsync(fd)
        finally:
            os.close(fd)
        os.replace(str(tmp_path), str(path))
    except OSError:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise
    _fsync_dir(path.parent)


def write_server_file(path: Path, content: str) -> None:
    try:
        atomic_write(path, content, 0o600)
    except OSError as exc:
        _log.error("CONFIG_WRITE_FAILED path=%s error=%s", path, exc)
        raise FileSystemError(code=Code.WG_WRITE_SERVER_CONFIG_FAILED) from exc
    _log.info("CONFIG_WRITTEN path=%s", path)


def _component(value: str, label: str) -> str:
    text = str(value)
    if not _SAFE_COMPONENT_RE.fullmatch(text) or text in (".", ".."):
        raise FileSystemError(f"Unsafe {label} for path: {text!r}", code=Code.WG_CONFIG_WRITE_FAILED)
    return text


def peer_dir(user_dir: Path, username: str, peer_id: str) -> Path:
    return Path(user_dir) / _component(username, "username") / _component(peer_id, "peer id")


def write_peer_files(
    user_dir: Path,
    username: str,
    peer_id: str,
    *,
    conf: str | None,
    private_key: str,
    public_key: str,
    meta: dict[str, Any],
) -> Path:
    """Write the per-peer artifacts; returns the peer directory.

    ``conf`` is None for a peer without an address (disabled); any stale
    client config is removed then.
    """
    directory = peer_dir(user_dir, username, peer_id)
    try:
        directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        conf_path = directory / f"{peer_id}.conf"
        if conf is None:
            conf_path.unlink(missing_ok=True)
        else:
            atomic_write(conf_path, conf, 0o600)
        atomic_write(directory / "privatekey", private_key + "\n", 0o600)
        atomic_write(directory / "publickey", public_key + "\n", 0o644)
        atomic_write(
            directory / "meta.json",
            json.dumps(meta, indent=2, sort_keys=True) + "\n",
            0o644,
        )
    except OSError as exc:
        _log.error("CONFIG_WRITE_FAILED peer=%s path=%s error=%s", peer_id, directory, exc)
        raise FileSystemError(code=Code.WG_CONFIG_WRITE_FAILED) from exc
    _log.debug("CONFIG_WRITTEN peer=%s path=%s", peer_id, directory)
    return directory


def remove_peer_dir(user_dir: Path, username: str, peer_id: str) -> None:
    """Delete a peer's artifact directory (missing is fine)."""
    directory = peer_dir(user_dir, username, peer_id)
    try:
        shutil.rmtree(directory)
    except FileNotFoundError:
        return
    except OSError as exc:
        _log.error("PEER_DIR_REMOVE_FAILED peer=%s path=%s error=%s", peer_id, directory, exc)
        raise FileSystemError(code=Code.WG_CONFIG_WRITE_FAILED) from exc
    _log.debug("PEER_DIR_REMOVED peer=%s", peer_id)
