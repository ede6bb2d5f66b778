"""Private key sealing."""

from __future__ import annotations

import pytest

from nexuspoint.errors import InternalError
from nexuspoint.utils.vault import KeyVault, is_sealed
from nexuspoint.wireguard.keys import generate_keypair


class TestKeyVault:
    def test_sealed_value_hides_key(self):
        private, _ = generate_keypair()
        sealed = KeyVault("secret-a").seal(private)
        assert is_sealed(sealed)
        assert private not in sealed
        assert KeyVault("secret-a").unseal(sealed, "peer 1") == private

    def test_same_key_seals_differently(self):
        private, _ = generate_keypair()
        vault = KeyVault("secret-a")
        assert vault.seal(private) != vault.seal(private)

    def test_wrong_secret(self):
        sealed = KeyVault("secret-a").seal(generate_keypair()[0])
        with pytest.raises(InternalError):
            KeyVault("secret-b").unseal(sealed, "peer 1")

    def test_damaged_salt(self):
        with pytest.raises(InternalError):
            KeyVault("secret-a").unseal("vault:1:zz:token", "server")

    def test_plain_import_passes_through(self):
        private, _ = generate_keypair()
        assert not is_sealed(private)
        assert KeyVault("secret-a").unseal(private, "server") == private

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            KeyVault("")
