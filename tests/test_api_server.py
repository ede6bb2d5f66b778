"""Server interface routes (/wg/server-config)."""

from __future__ import annotations

from conftest import API, DEFAULT_ENDPOINT, create_peer, create_pool

from nexuspoint.wireguard.keys import generate_keypair

SERVER = f"{API}/wg/server-config"


def _conf(cfg, peer):
    return cfg.wg_user_dir / "admin" / peer["id"] / f"{peer['id']}.conf"


class TestRead:
    def test_defaults(self, client, admin_headers):
        body = client.get(SERVER, headers=admin_headers).json()
        assert body["address"] == "100.100.100.1/24"
        assert body["listen_port"] == 51820
        assert body["endpoint"] == DEFAULT_ENDPOINT
        assert "private_key" not in body
        assert len(body["public_key"]) == 44

    def test_admin_only(self, client, alice):
        _, headers = alice
        assert client.get(SERVER, headers=headers).status_code == 403
        assert client.put(SERVER, json={"mtu": 1420}, headers=headers).status_code == 403


class TestUpdate:
    def test_public_ip_drives_endpoint(self, client, cfg, admin_headers, pool, applier):
        peer = create_peer(client, admin_headers, "laptop")
        applies = applier.apply.call_count
        resp = client.put(SERVER, json={"public_ip": "203.0.113.5", "listen_port": 51999}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["endpoint"] == "203.0.113.5:51999"
        assert "Endpoint = 203.0.113.5:51999" in _conf(cfg, peer).read_text()
        assert "ListenPort = 51999" in cfg.wg_config_path.read_text()
        assert applier.apply.call_count == applies + 1

    def test_interface_options_rendered(self, client, cfg, admin_headers):
        resp = client.put(
            SERVER,
            json={"mtu": 1420, "post_up": "iptables -A FORWARD -i wg0 -j ACCEPT", "dns": "10.0.0.53"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        server = cfg.wg_config_path.read_text()
        assert "MTU = 1420" in server
        assert "PostUp = iptables -A FORWARD -i wg0 -j ACCEPT" in server

    def test_server_dns_reaches_clients_without_own_dns(self, client, cfg, admin_headers, pool):
        peer = create_peer(client, admin_headers, "laptop")
        client.put(SERVER, json={"dns": "10.0.0.53"}, headers=admin_headers)
        assert "DNS = 10.0.0.53" in _conf(cfg, peer).read_text()

    def test_new_private_key(self, client, cfg, admin_headers, pool):
        peer = create_peer(client, admin_headers, "laptop")
        private, public = generate_keypair()
        resp = client.put(SERVER, json={"private_key": private}, headers=admin_headers)
        assert resp.json()["public_key"] == public
        assert f"PrivateKey = {private}" in cfg.wg_config_path.read_text()
        assert f"PublicKey = {public}" in _conf(cfg, peer).read_text()

    def test_invalid_private_key(self, client, admin_headers):
        resp = client.put(SERVER, json={"private_key": "bogus"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120020

    def test_invalid_address(self, client, admin_headers):
        resp = client.put(SERVER, json={"address": "not-an-address"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120012

    def test_address_held_by_peer(self, client, admin_headers):
        create_pool(client, admin_headers, name="cgnat", cidr="100.100.100.0/24")
        peer = create_peer(client, admin_headers, "laptop")
        assert peer["client_ip"] == "100.100.100.2/32"
        resp = client.put(SERVER, json={"address": "100.100.100.2/24"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120010
        assert client.get(SERVER, headers=admin_headers).json()["address"] == "100.100.100.1/24"

    def test_moved_server_address_is_skipped_by_allocator(self, client, admin_headers):
        pool = create_pool(client, admin_headers, name="cgnat", cidr="100.100.100.0/24")
        client.put(SERVER, json={"address": "100.100.100.3/24"}, headers=admin_headers)
        free = client.get(f"{API}/wg/ip-pools/{pool['id']}/available-ips?limit=3", headers=admin_headers).json()
        assert free["items"] == ["100.100.100.1", "100.100.100.2", "100.100.100.4"]

    def test_dropping_last_endpoint_source_rolls_back(self, no_default_endpoint, tmp_path):
        client, applier, headers = no_default_endpoint
        client.put(SERVER, json={"public_ip": "203.0.113.5"}, headers=headers)
        create_pool(client, headers)
        create_peer(client, headers, "laptop")
        server_file = tmp_path / "wireguard" / "wg0.conf"
        before = server_file.read_text()
        applies = applier.apply.call_count

        resp = client.put(SERVER, json={"public_ip": "", "listen_port": 51999}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120014
        body = client.get(SERVER, headers=headers).json()
        assert body["listen_port"] == 51820
        assert body["public_ip"] == "203.0.113.5"
        assert server_file.read_text() == before
        assert applier.apply.call_count == applies

    def test_endpoint_source_may_go_when_peers_have_their_own(self, no_default_endpoint):
        client, _, headers = no_default_endpoint
        client.put(SERVER, json={"public_ip": "203.0.113.5"}, headers=headers)
        create_pool(client, headers)
        create_peer(client, headers, "laptop", endpoint="peer.example.com:51820")
        resp = client.put(SERVER, json={"public_ip": "", "listen_port": 51999}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["listen_port"] == 51999
