"""IP pool routes."""

from __future__ import annotations

from conftest import API, create_peer, create_pool

from nexuspoint.wireguard.coordinator import MAX_BATCH_SIZE

POOLS = f"{API}/wg/ip-pools"


class TestCreate:
    def test_create_normalizes_and_returns_pool(self, client, admin_headers):
        pool = create_pool(client, admin_headers, routes="10.8.0.0/24,192.168.1.0/24", dns="1.1.1.1")
        assert pool["cidr"] == "10.8.0.0/24"
        assert pool["routes"] == "10.8.0.0/24, 192.168.1.0/24"
        assert pool["status"] == "active"

    def test_duplicate_cidr(self, client, admin_headers, pool):
        resp = client.post(POOLS, json={"name": "other", "cidr": "10.8.0.0/24"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120051

    def test_duplicate_name(self, client, admin_headers, pool):
        resp = client.post(POOLS, json={"name": "office", "cidr": "10.9.0.0/24"}, headers=admin_headers)
        assert resp.json()["code"] == 120055

    def test_invalid_cidr(self, client, admin_headers):
        for cidr in ("10.8.0.5/24", "not-a-cidr", "fd00::/64"):
            resp = client.post(POOLS, json={"name": "bad", "cidr": cidr}, headers=admin_headers)
            assert resp.status_code == 400, cidr
            assert resp.json()["code"] == 120052, cidr

    def test_prefix_without_hosts(self, client, admin_headers):
        resp = client.post(POOLS, json={"name": "tiny", "cidr": "10.8.0.0/31"}, headers=admin_headers)
        assert resp.json()["code"] == 120013

    def test_users_cannot_manage_pools(self, client, alice):
        _, headers = alice
        assert client.post(POOLS, json={"name": "x", "cidr": "10.1.0.0/24"}, headers=headers).status_code == 403
        assert client.get(POOLS, headers=headers).status_code == 403


class TestReadUpdate:
    def test_list_and_get(self, client, admin_headers, pool):
        create_pool(client, admin_headers, name="lab", cidr="10.9.0.0/24", status="disabled")
        body = client.get(POOLS, headers=admin_headers).json()
        assert body["total"] == 2
        active = client.get(f"{POOLS}?status=active", headers=admin_headers).json()
        assert [p["name"] for p in active["items"]] == ["office"]
        assert client.get(f"{POOLS}/{pool['id']}", headers=admin_headers).json()["cidr"] == "10.8.0.0/24"

    def test_missing_pool(self, client, admin_headers):
        resp = client.get(f"{POOLS}/12345", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == 120050

    def test_cidr_change_allowed_while_empty(self, client, admin_headers, pool):
        resp = client.put(f"{POOLS}/{pool['id']}", json={"cidr": "10.10.0.0/16"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["cidr"] == "10.10.0.0/16"

    def test_cidr_frozen_while_addresses_held(self, client, admin_headers, pool):
        create_peer(client, admin_headers, "laptop")
        resp = client.put(f"{POOLS}/{pool['id']}", json={"cidr": "10.10.0.0/16"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120053
        # resubmitting the current CIDR is not a change
        resp = client.put(f"{POOLS}/{pool['id']}", json={"cidr": "10.8.0.0/24", "description": "hq"}, headers=admin_headers)
        assert resp.status_code == 200

    def test_routes_change_rewrites_client_files(self, client, cfg, admin_headers, pool, applier):
        peer = create_peer(client, admin_headers, "laptop")
        conf = cfg.wg_user_dir / "admin" / peer["id"] / f"{peer['id']}.conf"
        assert "AllowedIPs = 0.0.0.0/0" in conf.read_text()
        applies = applier.apply.call_count

        resp = client.put(f"{POOLS}/{pool['id']}", json={"routes": "10.8.0.0/24", "dns": "9.9.9.9"}, headers=admin_headers)
        assert resp.status_code == 200
        text = conf.read_text()
        assert "AllowedIPs = 10.8.0.0/24" in text
        assert "DNS = 9.9.9.9" in text
        # client files only; the server file and kernel are untouched
        assert applier.apply.call_count == applies

    def test_disabled_pool_refuses_new_peers(self, client, admin_headers, pool):
        client.put(f"{POOLS}/{pool['id']}", json={"status": "disabled"}, headers=admin_headers)
        resp = client.post(
            f"{API}/wg/peers", json={"device_name": "laptop", "ip_pool_id": pool["id"]}, headers=admin_headers
        )
        assert resp.json()["code"] == 120054

    def test_clearing_only_endpoint_source_rolls_back(self, no_default_endpoint):
        client, applier, headers = no_default_endpoint
        pool = create_pool(client, headers, endpoint="pool.example.com:51820")
        create_peer(client, headers, "laptop")
        applies = applier.apply.call_count

        resp = client.put(f"{POOLS}/{pool['id']}", json={"endpoint": "", "description": "x"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120014
        after = client.get(f"{POOLS}/{pool['id']}", headers=headers).json()
        assert after["endpoint"] == "pool.example.com:51820"
        assert after["description"] != "x"
        assert applier.apply.call_count == applies

        resp = client.put(
            f"{POOLS}/batch", json={"items": [{"id": pool["id"], "endpoint": ""}]}, headers=headers
        )
        assert resp.json()["code"] == 120014
        assert client.get(f"{POOLS}/{pool['id']}", headers=headers).json()["endpoint"] == "pool.example.com:51820"


class TestDelete:
    def test_delete_empty_pool(self, client, admin_headers, pool):
        assert client.delete(f"{POOLS}/{pool['id']}", headers=admin_headers).status_code == 204
        assert client.get(f"{POOLS}/{pool['id']}", headers=admin_headers).status_code == 404

    def test_delete_refused_while_referenced(self, client, admin_headers, pool):
        peer = create_peer(client, admin_headers, "laptop")
        # a disabled peer still references the pool
        client.put(f"{API}/wg/peers/{peer['id']}", json={"status": "disabled"}, headers=admin_headers)
        resp = client.delete(f"{POOLS}/{pool['id']}", headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == 120053


class TestAvailableIPs:
    def test_lowest_free_addresses(self, client, admin_headers):
        pool = create_pool(client, admin_headers, name="cgnat", cidr="100.100.100.0/24")
        create_peer(client, admin_headers, "laptop")
        resp = client.get(f"{POOLS}/{pool['id']}/available-ips?limit=3", headers=admin_headers)
        assert resp.status_code == 200
        body = resp.json()
        # .1 is the server, .2 the laptop
        assert body["items"] == ["100.100.100.3", "100.100.100.4", "100.100.100.5"]
        assert body["cidr"] == "100.100.100.0/24"

    def test_limit_bounds(self, client, admin_headers, pool):
        assert client.get(f"{POOLS}/{pool['id']}/available-ips?limit=0", headers=admin_headers).status_code == 400
        assert client.get(f"{POOLS}/{pool['id']}/available-ips?limit=257", headers=admin_headers).status_code == 400


class TestBatch:
    def test_batch_create_update_delete(self, client, admin_headers):
        resp = client.post(
            f"{POOLS}/batch",
            json={"items": [{"name": "a", "cidr": "10.1.0.0/24"}, {"name": "b", "cidr": "10.2.0.0/24"}]},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        ids = [p["id"] for p in resp.json()["items"]]

        resp = client.put(
            f"{POOLS}/batch",
            json={"items": [{"id": ids[0], "description": "first"}, {"id": ids[1], "description": "second"}]},
            headers=admin_headers,
        )
        assert [p["description"] for p in resp.json()["items"]] == ["first", "second"]

        resp = client.request("DELETE", f"{POOLS}/batch", json={"ids": ids}, headers=admin_headers)
        assert resp.json() == {"deleted": 2}
        assert client.get(POOLS, headers=admin_headers).json()["total"] == 0

    def test_failing_item_aborts_batch(self, client, admin_headers, pool):
        resp = client.post(
            f"{POOLS}/batch",
            json={"items": [{"name": "fresh", "cidr": "10.1.0.0/24"}, {"name": "dup", "cidr": "10.8.0.0/24"}]},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        names = [p["name"] for p in client.get(POOLS, headers=admin_headers).json()["items"]]
        assert names == ["office"]

    def test_batch_too_large(self, client, admin_headers):
        items = [{"name": f"p{i}", "cidr": f"10.{i}.0.0/24"} for i in range(MAX_BATCH_SIZE + 1)]
        resp = client.post(f"{POOLS}/batch", json={"items": items}, headers=admin_headers)
        assert resp.json()["code"] == 120033

    def test_empty_batch(self, client, admin_headers):
        resp = client.post(f"{POOLS}/batch", json={"items": []}, headers=admin_headers)
        assert resp.status_code == 400
