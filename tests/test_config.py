"""Configuration loading from the environment and settings.env."""

from __future__ import annotations

import os

import pytest

from nexuspoint.utils.config import (
    ConfigValidationError,
    _parse_value,
    get_config,
    load_config,
    load_dotenv,
    reset_config,
)


class TestLoadConfig:
    def test_defaults(self, env):
        cfg = load_config()
        assert cfg.wg_interface == "wg0"
        assert cfg.wg_apply_method == "none"
        assert cfg.wg_default_allowed_ips == "0.0.0.0/0, ::/0"
        assert cfg.wg_default_keepalive == 25
        assert cfg.jwt_secret == cfg.secret_key == "unit-test-secret"
        assert cfg.db_path == (env / "data" / "nexuspoint.db").resolve()
        assert cfg.wg_user_dir.is_dir()

    def test_jwt_secret_override(self, env, monkeypatch):
        monkeypatch.setenv("NEXUSPOINT_JWT_SECRET", "other")
        assert load_config().jwt_secret == "other"

    @pytest.mark.parametrize(
        "name, value",
        [
            ("NEXUSPOINT_WG_APPLY_METHOD", "reboot"),
            ("NEXUSPOINT_WG_INTERFACE", "wg0; rm -rf /"),
            ("NEXUSPOINT_WG_DEFAULT_ADDRESS", "fd00::1/64"),
            ("NEXUSPOINT_WG_DEFAULT_LISTEN_PORT", "70000"),
            ("NEXUSPOINT_WG_DEFAULT_KEEPALIVE", "soon"),
            ("NEXUSPOINT_WG_SERVER_IP", "not-an-ip"),
        ],
    )
    def test_invalid_values(self, env, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigValidationError):
            load_config()

    def test_singleton(self, env):
        first = get_config()
        assert get_config() is first
        reset_config()
        assert get_config() is not first


class TestDotenv:
    def test_parse_value(self):
        assert _parse_value('"iptables -A x # keep"') == "iptables -A x # keep"
        assert _parse_value("value # comment") == "value"
        assert _parse_value("  plain  ") == "plain"

    def test_existing_env_wins(self, tmp_path, monkeypatch):
        dotenv = tmp_path / "settings.env"
        dotenv.write_text(
            "# comment\n"
            "export NEXUSPOINT_TEST_A=from-file\n"
            "NEXUSPOINT_TEST_B='quoted # value'\n"
            "garbage line\n"
        )
        monkeypatch.setenv("NEXUSPOINT_TEST_A", "from-env")
        # registered with monkeypatch so the value set from the file is undone
        monkeypatch.setenv("NEXUSPOINT_TEST_B", "placeholder")
        monkeypatch.delenv("NEXUSPOINT_TEST_B")
        load_dotenv(dotenv)
        assert os.environ["NEXUSPOINT_TEST_A"] == "from-env"
        assert os.environ["NEXUSPOINT_TEST_B"] == "quoted # value"
