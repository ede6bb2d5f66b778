"""IP allocator: lowest-free scan, preferred address checks, release."""

from __future__ import annotations

from ipaddress import IPv4Address

import pytest

from nexuspoint.db.sqlite_pools import get_pool, insert_pool
from nexuspoint.db.sqlite_runtime import close_connection, connect
from nexuspoint.db.sqlite_schema import init_schema
from nexuspoint.errors import Code, IPAllocationError, InvalidInputError
from nexuspoint.wireguard.allocator import (
    host_range,
    list_available,
    parse_client_ip,
    pool_network,
    release,
    reserve,
)

SERVER_IP = IPv4Address("10.0.0.1")


def _allocation(db, peer_id):
    return db.execute("SELECT * FROM ip_allocations WHERE peer_id = ?", (peer_id,)).fetchone()


@pytest.fixture
def db(cfg):
    """Schema-initialized connection with an open transaction that is rolled back.

    Reservations reference peers through a deferred foreign key, so they are
    only valid inside the transaction that also inserts the peer; these tests
    never commit.
    """
    c = connect(cfg.db_path)
    init_schema(c)
    yield c
    if c.in_transaction:
        c.execute("ROLLBACK")
    close_connection(c)


def _pool(db, cidr="10.0.0.0/29", status="active"):
    pool = get_pool(db, insert_pool(db, name=f"pool-{cidr}", cidr=cidr, status=status))
    db.execute("BEGIN")
    return pool


class TestHelpers:
    def test_pool_network_rejects_host_bits(self):
        with pytest.raises(InvalidInputError) as exc:
            pool_network("10.0.0.1/24")
        assert exc.value.code == Code.IP_POOL_INVALID_CIDR

    def test_pool_network_rejects_ipv6(self):
        with pytest.raises(InvalidInputError):
            pool_network("fd00::/64")

    def test_parse_client_ip_accepts_slash_32(self):
        assert parse_client_ip("10.0.0.5/32") == IPv4Address("10.0.0.5")

    @pytest.mark.parametrize("value", ["fd00::1", "10.0.0.300", "host.example"])
    def test_parse_client_ip_rejects_non_ipv4(self, value):
        with pytest.raises(IPAllocationError) as exc:
            parse_client_ip(value)
        assert exc.value.code == Code.IP_NOT_IPV4

    @pytest.mark.parametrize("cidr", ["10.0.0.0/31", "10.0.0.1/32"])
    def test_prefix_too_small(self, cidr):
        with pytest.raises(IPAllocationError) as exc:
            host_range(pool_network(cidr))
        assert exc.value.code == Code.WG_PREFIX_TOO_SMALL


class TestReserve:
    def test_lowest_free_skips_server_ip(self, db):
        pool = _pool(db)
        assert reserve(db, pool, SERVER_IP, "p1") == IPv4Address("10.0.0.2")
        assert reserve(db, pool, SERVER_IP, "p2") == IPv4Address("10.0.0.3")

    def test_writes_reservation_row(self, db):
        pool = _pool(db)
        reserve(db, pool, SERVER_IP, "p1")
        row = _allocation(db, "p1")
        assert row["ip_address"] == "10.0.0.2"
        assert row["ip_int"] == int(IPv4Address("10.0.0.2"))

    def test_gap_is_reused(self, db):
        pool = _pool(db)
        for peer in ("p1", "p2", "p3"):
            reserve(db, pool, SERVER_IP, peer)
        release(db, pool["id"], "10.0.0.3")
        assert reserve(db, pool, SERVER_IP, "p4") == IPv4Address("10.0.0.3")

    def test_exhausted(self, db):
        pool = _pool(db)
        for i in range(5):  # .2 - .6, .1 is the server
            reserve(db, pool, SERVER_IP, f"p{i}")
        with pytest.raises(IPAllocationError) as exc:
            reserve(db, pool, SERVER_IP, "p-last")
        assert exc.value.code == Code.IP_POOL_EXHAUSTED

    def test_disabled_pool(self, db):
        pool = _pool(db, status="disabled")
        with pytest.raises(IPAllocationError) as exc:
            reserve(db, pool, SERVER_IP, "p1")
        assert exc.value.code == Code.IP_POOL_DISABLED

    def test_preferred_address(self, db):
        pool = _pool(db)
        assert reserve(db, pool, SERVER_IP, "p1", preferred="10.0.0.5") == IPv4Address("10.0.0.5")

    @pytest.mark.parametrize(
        "preferred, code",
        [
            ("10.0.1.5", Code.IP_OUT_OF_RANGE),
            ("10.0.0.0", Code.IP_IS_NETWORK_ADDRESS),
            ("10.0.0.7", Code.IP_IS_BROADCAST_ADDRESS),
            ("10.0.0.1", Code.IP_IS_SERVER_IP),
            ("fd00::5", Code.IP_NOT_IPV4),
        ],
    )
    def test_preferred_rejected(self, db, preferred, code):
        pool = _pool(db)
        with pytest.raises(IPAllocationError) as exc:
            reserve(db, pool, SERVER_IP, "p1", preferred=preferred)
        assert exc.value.code == code

    def test_preferred_already_in_use(self, db):
        pool = _pool(db)
        reserve(db, pool, SERVER_IP, "p1", preferred="10.0.0.4")
        with pytest.raises(IPAllocationError) as exc:
            reserve(db, pool, SERVER_IP, "p2", preferred="10.0.0.4")
        assert exc.value.code == Code.IP_ALREADY_IN_USE

    def test_prefix_too_small_pool(self, db):
        pool = _pool(db, cidr="10.0.0.0/31")
        with pytest.raises(IPAllocationError) as exc:
            reserve(db, pool, None, "p1")
        assert exc.value.code == Code.WG_PREFIX_TOO_SMALL


class TestRelease:
    def test_release_is_idempotent(self, db):
        pool = _pool(db)
        reserve(db, pool, SERVER_IP, "p1")
        release(db, pool["id"], IPv4Address("10.0.0.2"))
        release(db, pool["id"], IPv4Address("10.0.0.2"))
        assert _allocation(db, "p1") is None


class TestListAvailable:
    def test_lowest_first_with_limit(self, db):
        pool = _pool(db)
        reserve(db, pool, SERVER_IP, "p1", preferred="10.0.0.3")
        assert list_available(db, pool, SERVER_IP, limit=3) == [
            IPv4Address("10.0.0.2"),
            IPv4Address("10.0.0.4"),
            IPv4Address("10.0.0.5"),
        ]

    def test_zero_limit(self, db):
        assert list_available(db, _pool(db), SERVER_IP, limit=0) == []
