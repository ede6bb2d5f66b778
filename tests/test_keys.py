"""Key engine: generation, clamping, derivation and validation."""

from __future__ import annotations

import base64

import pytest
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from nexuspoint.errors import Code, KeyMaterialError
from nexuspoint.wireguard.keys import clamp, derive_public, generate_keypair, validate_private


class TestGenerateKeypair:
    def test_keys_are_canonical_base64(self):
        priv, pub = generate_keypair()
        for key in (priv, pub):
            assert len(key) == 44
            assert key.endswith("=")
            assert len(base64.b64decode(key, validate=True)) == 32

    def test_private_key_is_clamped(self):
        priv, _ = generate_keypair()
        raw = base64.b64decode(priv)
        assert raw[0] & 7 == 0
        assert raw[31] & 128 == 0
        assert raw[31] & 64 == 64

    def test_public_matches_private(self):
        priv, pub = generate_keypair()
        assert derive_public(priv) == pub

    def test_successive_calls_differ(self):
        assert generate_keypair()[0] != generate_keypair()[0]

    def test_random_source_failure(self, monkeypatch):
        def broken(_n):
            raise OSError("no entropy")

        monkeypatch.setattr("nexuspoint.wireguard.keys.os.urandom", broken)
        with pytest.raises(KeyMaterialError) as exc:
            generate_keypair()
        assert exc.value.code == Code.WG_KEY_GENERATION_FAILED
        assert exc.value.status_code == 500


class TestClamp:
    def test_clamp_bits(self):
        raw = clamp(b"\xff" * 32)
        assert raw[0] == 248
        assert raw[31] == 127
        assert raw[1:31] == b"\xff" * 30

    def test_clamp_sets_bit_254(self):
        assert clamp(b"\x00" * 32)[31] == 64


class TestDerivePublic:
    def test_matches_x25519(self):
        key = X25519PrivateKey.generate()
        raw = key.private_bytes_raw()
        expected = base64.b64encode(key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)).decode()
        assert derive_public(base64.b64encode(raw).decode()) == expected

    def test_deterministic(self):
        priv, _ = generate_keypair()
        assert derive_public(priv) == derive_public(priv)

    @pytest.mark.parametrize("bad", ["", "not base64!!", base64.b64encode(b"\x01" * 31).decode(), "A" * 44])
    def test_invalid_private_key(self, bad):
        with pytest.raises(KeyMaterialError) as exc:
            derive_public(bad)
        assert exc.value.code == Code.WG_PRIVATE_KEY_INVALID
        assert exc.value.status_code == 400

    def test_validate_private_accepts_generated_key(self):
        priv, _ = generate_keypair()
        validate_private(priv)
