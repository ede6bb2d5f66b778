"""Shared fixtures: an isolated NexusPoint app per test.

Every test gets its own data dir, server file path and SQLite database under
``tmp_path``. The kernel is never touched (apply method ``none`` plus a
MagicMock applier that records calls), and the password / vault KDFs run with
a tiny iteration count so the suite stays fast.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from nexuspoint import create_app
from nexuspoint.db.sqlite_runtime import close_connection, connect
from nexuspoint.utils import crypto, vault
from nexuspoint.utils.config import load_config, reset_config

API = "/api/v1"
ADMIN_PASSWORD = "admin"
DEFAULT_ENDPOINT = "vpn.example.com:51820"


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    monkeypatch.setattr(crypto, "PBKDF2_ITERATIONS", 1_000)
    monkeypatch.setattr(vault, "KDF_ITERATIONS", 1_000)


@pytest.fixture
def env(tmp_path, monkeypatch):
    for name in ("WG_SERVER_IP", "WG_DEFAULT_DNS", "WG_USER_DIR", "JWT_SECRET", "ALLOW_REGISTRATION"):
        monkeypatch.delenv(f"NEXUSPOINT_{name}", raising=False)
    monkeypatch.setenv("NEXUSPOINT_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("NEXUSPOINT_WG_CONFIG_PATH", str(tmp_path / "wireguard" / "wg0.conf"))
    monkeypatch.setenv("NEXUSPOINT_WG_APPLY_METHOD", "none")
    monkeypatch.setenv("NEXUSPOINT_WG_DEFAULT_ENDPOINT", DEFAULT_ENDPOINT)
    monkeypatch.setenv("NEXUSPOINT_RATE_LIMIT_ENABLED", "false")
    monkeypatch.setenv("NEXUSPOINT_SECRET_KEY", "unit-test-secret")
    reset_config()
    yield tmp_path
    reset_config()


@pytest.fixture
def cfg(env):
    return load_config()


@pytest.fixture
def applier():
    return MagicMock()


@pytest.fixture
def app(cfg, applier):
    return create_app(cfg, applier)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def conn(cfg):
    """A raw connection to the test database (schema created by the app)."""
    c = connect(cfg.db_path)
    yield c
    close_connection(c)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def login(client, username: str, password: str) -> dict[str, str]:
    resp = client.post(f"{API}/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def create_user(client, admin_headers, username: str, password: str = "password123", role: str = "user") -> dict:
    resp = client.post(
        f"{API}/users",
        json={"username": username, "email": f"{username}@example.com", "password": password, "role": role},
        headers=admin_headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_pool(client, admin_headers, name: str = "office", cidr: str = "10.8.0.0/24", **extra) -> dict:
    resp = client.post(f"{API}/wg/ip-pools", json={"name": name, "cidr": cidr, **extra}, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_peer(client, headers, device_name: str, **extra) -> dict:
    resp = client.post(f"{API}/wg/peers", json={"device_name": device_name, **extra}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def admin_headers(client):
    return login(client, "admin", ADMIN_PASSWORD)


@pytest.fixture
def alice(client, admin_headers):
    user = create_user(client, admin_headers, "alice")
    return user, login(client, "alice", "password123")


@pytest.fixture
def pool(client, admin_headers):
    return create_pool(client, admin_headers)


@pytest.fixture
def no_default_endpoint(env, monkeypatch):
    """App without NEXUSPOINT_WG_DEFAULT_ENDPOINT: yields (client, applier, admin headers)."""
    monkeypatch.setenv("NEXUSPOINT_WG_DEFAULT_ENDPOINT", "")
    applier = MagicMock()
    with TestClient(create_app(load_config(), applier)) as c:
        yield c, applier, login(c, "admin", ADMIN_PASSWORD)
