"""Self-service config routes (/wg/configs)."""

from __future__ import annotations

from conftest import API, create_peer, create_pool

CONFIGS = f"{API}/wg/configs"


def _conf(cfg, username, peer):
    return cfg.wg_user_dir / username / peer["id"] / f"{peer['id']}.conf"


class TestListDownload:
    def test_list_only_own_devices(self, client, admin_headers, alice, pool):
        _, headers = alice
        mine = create_peer(client, admin_headers, "phone", username="alice")
        create_peer(client, admin_headers, "server")
        body = client.get(CONFIGS, headers=headers).json()
        assert body["total"] == 1
        assert body["items"][0]["id"] == mine["id"]

    def test_download_own_config(self, client, cfg, admin_headers, alice, pool):
        _, headers = alice
        peer = create_peer(client, admin_headers, "phone", username="alice")
        resp = client.get(f"{CONFIGS}/{peer['id']}/download", headers=headers)
        assert resp.status_code == 200
        assert resp.text == _conf(cfg, "alice", peer).read_text()

    def test_download_foreign_config_forbidden(self, client, admin_headers, alice, pool):
        _, headers = alice
        peer = create_peer(client, admin_headers, "server")
        assert client.get(f"{CONFIGS}/{peer['id']}/download", headers=headers).status_code == 403


class TestRotate:
    def test_rotate_replaces_key_everywhere(self, client, cfg, admin_headers, alice, pool):
        _, headers = alice
        peer = create_peer(client, admin_headers, "phone", username="alice")
        resp = client.post(f"{CONFIGS}/{peer['id']}/rotate", headers=headers)
        assert resp.status_code == 200
        rotated = resp.json()
        assert rotated["client_public_key"] != peer["client_public_key"]
        assert rotated["client_ip"] == peer["client_ip"]

        server = cfg.wg_config_path.read_text()
        assert rotated["client_public_key"] in server
        assert peer["client_public_key"] not in server
        public = (cfg.wg_user_dir / "alice" / peer["id"] / "publickey").read_text().strip()
        assert public == rotated["client_public_key"]

    def test_rotate_repairs_missing_config_file(self, client, cfg, admin_headers, pool):
        peer = create_peer(client, admin_headers, "laptop")
        conf = _conf(cfg, "admin", peer)
        conf.unlink()
        assert client.post(f"{CONFIGS}/{peer['id']}/rotate", headers=admin_headers).status_code == 200
        assert conf.is_file()
        assert f"Address = {peer['client_ip']}" in conf.read_text()


class TestSelfUpdate:
    def test_basic_fields(self, client, cfg, admin_headers, alice, pool):
        _, headers = alice
        peer = create_peer(client, admin_headers, "phone", username="alice")
        resp = client.put(
            f"{CONFIGS}/{peer['id']}", json={"device_name": "pixel", "dns": "9.9.9.9"}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["device_name"] == "pixel"
        assert "DNS = 9.9.9.9" in _conf(cfg, "alice", peer).read_text()
        assert f"# {peer['id']} alice pixel" in cfg.wg_config_path.read_text()

    def test_sensitive_fields_forbidden(self, client, admin_headers, alice, pool):
        _, headers = alice
        peer = create_peer(client, admin_headers, "phone", username="alice")
        for patch in ({"status": "disabled"}, {"username": "admin"}, {"private_key": "x" * 43 + "="}):
            resp = client.put(f"{CONFIGS}/{peer['id']}", json=patch, headers=headers)
            assert resp.status_code == 403, patch

    def test_foreign_peer_forbidden(self, client, admin_headers, alice, pool):
        _, headers = alice
        peer = create_peer(client, admin_headers, "server")
        assert client.put(f"{CONFIGS}/{peer['id']}", json={"dns": "1.1.1.1"}, headers=headers).status_code == 403


class TestRevoke:
    def test_revoke_releases_address(self, client, cfg, admin_headers, alice, pool):
        _, headers = alice
        peer = create_peer(client, admin_headers, "phone", username="alice")
        resp = client.post(f"{CONFIGS}/{peer['id']}/revoke", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "disabled"
        assert resp.json()["client_ip"] is None
        assert not _conf(cfg, "alice", peer).exists()
        assert peer["client_public_key"] not in cfg.wg_config_path.read_text()

        # the released address goes to the next device
        assert create_peer(client, admin_headers, "laptop")["client_ip"] == peer["client_ip"]

    def test_revoke_twice_is_a_noop(self, client, cfg, admin_headers, pool, applier):
        peer = create_peer(client, admin_headers, "laptop")
        first = client.post(f"{CONFIGS}/{peer['id']}/revoke", headers=admin_headers).json()
        server = cfg.wg_config_path.read_text()
        applies = applier.apply.call_count

        second = client.post(f"{CONFIGS}/{peer['id']}/revoke", headers=admin_headers)
        assert second.status_code == 200
        assert second.json() == first
        assert cfg.wg_config_path.read_text() == server
        assert applier.apply.call_count == applies

    def test_download_after_revoke(self, client, admin_headers, pool):
        peer = create_peer(client, admin_headers, "laptop")
        client.post(f"{CONFIGS}/{peer['id']}/revoke", headers=admin_headers)
        resp = client.get(f"{CONFIGS}/{peer['id']}/download", headers=admin_headers)
        assert resp.json()["code"] == 120034

    def test_revoke_in_second_pool(self, client, admin_headers, pool):
        lab = create_pool(client, admin_headers, name="lab", cidr="10.9.0.0/29")
        peer = create_peer(client, admin_headers, "laptop", ip_pool_id=lab["id"])
        assert peer["client_ip"] == "10.9.0.1/32"
        client.post(f"{CONFIGS}/{peer['id']}/revoke", headers=admin_headers)
        free = client.get(f"{API}/wg/ip-pools/{lab['id']}/available-ips", headers=admin_headers).json()
        assert free["items"][0] == "10.9.0.1"
