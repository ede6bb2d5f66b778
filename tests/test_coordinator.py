"""PeerCoordinator: server lock, cancellation and publish behaviour."""

from __future__ import annotations

import threading
from ipaddress import IPv4Address

import pytest
from conftest import create_peer, create_pool

from nexuspoint.db.sqlite_peers import list_peers
from nexuspoint.db.sqlite_runtime import close_connection, connect
from nexuspoint.db.sqlite_users import get_user_by_username
from nexuspoint.errors import ApplyError, CancelledError, Code, PermissionDeniedError
from nexuspoint.models.peers import PeerCreate
from nexuspoint.utils.cancel import CancelToken
from nexuspoint.utils.config import load_config


@pytest.fixture
def coord(app, client):
    return app.state.coordinator


@pytest.fixture
def admin(client, conn):
    return get_user_by_username(conn, "admin")


class TestCancellation:
    def test_cancelled_before_lock_has_no_side_effects(self, coord, conn, admin, pool, applier, cfg):
        server = cfg.wg_config_path.read_text()
        applies = applier.apply.call_count
        token = CancelToken()
        token.cancel()

        with pytest.raises(CancelledError) as exc:
            coord.create_peer(conn, admin, PeerCreate(device_name="laptop"), token)
        assert exc.value.code == Code.REQUEST_CANCELLED
        assert list_peers(conn) == []
        assert cfg.wg_config_path.read_text() == server
        assert applier.apply.call_count == applies

    def test_cancelled_while_waiting_for_lock(self, coord, conn, admin, pool):
        token = CancelToken()
        timer = threading.Timer(0.1, token.cancel)
        with coord.locked():
            timer.start()
            with pytest.raises(CancelledError):
                coord.create_peer(conn, admin, PeerCreate(device_name="laptop"), token)
        timer.join()
        assert list_peers(conn) == []

    def test_cancel_inside_critical_section_is_ignored(self, coord, conn, admin, pool, applier):
        token = CancelToken()
        applier.apply.side_effect = token.cancel

        peer = coord.create_peer(conn, admin, PeerCreate(device_name="laptop"), token)
        assert token.cancelled
        assert peer["status"] == "active"
        assert len(list_peers(conn)) == 1

    def test_lock_is_released_after_failure(self, coord, conn, admin, pool):
        token = CancelToken()
        token.cancel()
        with pytest.raises(CancelledError):
            coord.create_peer(conn, admin, PeerCreate(device_name="laptop"), token)
        assert coord.create_peer(conn, admin, PeerCreate(device_name="laptop"))["client_ip"] == "10.8.0.1/32"


class TestAuthorizationBeforeLock:
    def test_denied_caller_does_not_wait_for_lock(self, coord, conn, alice, pool):
        user, _ = alice
        actor = get_user_by_username(conn, user["username"])
        with coord.locked():
            # would block forever if the lock were taken first
            with pytest.raises(PermissionDeniedError):
                coord.create_peer(conn, actor, PeerCreate(device_name="laptop"))


class TestApplyFailure:
    def test_apply_error_surfaces_after_commit(self, client, admin_headers, pool, applier, cfg):
        applier.apply.side_effect = ApplyError("wg syncconf failed")
        resp = client.post("/api/v1/wg/peers", json={"device_name": "laptop"}, headers=admin_headers)
        assert resp.status_code == 500
        assert resp.json()["code"] == 120003

        # the DB is authoritative: the peer exists and its files were written
        applier.apply.side_effect = None
        peers = client.get("/api/v1/wg/peers", headers=admin_headers).json()["items"]
        assert len(peers) == 1
        assert peers[0]["client_public_key"] in cfg.wg_config_path.read_text()


class TestRegenerate:
    def test_regenerate_rebuilds_deleted_files(self, client, coord, conn, admin_headers, pool, cfg):
        client.post("/api/v1/wg/peers", json={"device_name": "laptop"}, headers=admin_headers)
        peer = list_peers(conn)[0]
        conf = cfg.wg_user_dir / "admin" / peer["id"] / f"{peer['id']}.conf"
        conf.unlink()
        cfg.wg_config_path.unlink()

        assert coord.regenerate_all(conn) == 1
        assert conf.is_file()
        assert peer["client_public_key"] in cfg.wg_config_path.read_text()


class TestConcurrentCreate:
    def test_parallel_creates_get_distinct_lowest_addresses(self, coord, conn, admin, pool, cfg):
        workers = 20
        created, errors = [], []
        start = threading.Barrier(workers)

        def worker(n):
            c = connect(cfg.db_path)
            try:
                start.wait()
                created.append(coord.create_peer(c, admin, PeerCreate(device_name=f"dev{n}", ip_pool_id=pool["id"])))
            except Exception as exc:  # collected for the assertion below
                errors.append(exc)
            finally:
                close_connection(c)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)

        assert errors == []
        ips = sorted(int(p["client_ip_int"]) for p in created)
        assert len(set(ips)) == workers
        assert ips == list(range(int(IPv4Address("10.8.0.1")), int(IPv4Address("10.8.0.1")) + workers))
        rows = conn.execute("SELECT peer_id, ip_int FROM ip_allocations").fetchall()
        assert len(rows) == workers
        assert len({r["ip_int"] for r in rows}) == workers
        assert cfg.wg_config_path.read_text().count("[Peer]") == workers


class TestPublishAfterCommit:
    def test_unrenderable_peer_does_not_stop_server_file_or_apply(self, no_default_endpoint):
        client, applier, headers = no_default_endpoint
        client.put("/api/v1/wg/server-config", json={"public_ip": "203.0.113.5"}, headers=headers)
        create_pool(client, headers)
        peer = create_peer(client, headers, "laptop")
        coord = client.app.state.coordinator
        cfg = load_config()
        c = connect(cfg.db_path)
        try:
            c.execute("UPDATE server_config SET public_ip = '', listen_port = 51999")
            applies = applier.apply.call_count
            coord.publish(c, peer_ids=[peer["id"]])
        finally:
            close_connection(c)
        assert "ListenPort = 51999" in cfg.wg_config_path.read_text()
        assert peer["client_public_key"] in cfg.wg_config_path.read_text()
        assert applier.apply.call_count == applies + 1
