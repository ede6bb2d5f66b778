"""Applier: reload strategies driven through a fake subprocess runner."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock

import pytest

from nexuspoint.errors import ApplyError, Code
from nexuspoint.wireguard.applier import Applier


def _ok(stdout=""):
    return MagicMock(returncode=0, stdout=stdout, stderr="")


class TestApplier:
    def test_none_runs_nothing(self, tmp_path):
        runner = MagicMock()
        Applier("none", "wg0", tmp_path / "wg0.conf", runner=runner).apply()
        runner.assert_not_called()

    def test_service_restarts_unit(self, tmp_path):
        runner = MagicMock(return_value=_ok())
        Applier("service", "wg0", tmp_path / "wg0.conf", runner=runner).apply()
        cmd = runner.call_args.args[0]
        assert cmd == ["systemctl", "restart", "wg-quick@wg0"]
        assert runner.call_args.kwargs["timeout"] == 10

    def test_wg_quick_strips_then_syncs(self, tmp_path):
        path = tmp_path / "wg0.conf"
        runner = MagicMock(side_effect=[_ok("[Interface]\nPrivateKey = K=\n"), _ok()])
        Applier("wg-quick", "wg0", path, runner=runner).apply()
        first, second = runner.call_args_list
        assert first.args[0] == ["wg-quick", "strip", str(path)]
        assert second.args[0] == ["wg", "syncconf", "wg0", "/dev/stdin"]
        assert second.kwargs["input"] == "[Interface]\nPrivateKey = K=\n"

    def test_non_zero_exit(self, tmp_path):
        runner = MagicMock(return_value=MagicMock(returncode=1, stdout="", stderr="boom"))
        with pytest.raises(ApplyError) as exc:
            Applier("service", "wg0", tmp_path / "wg0.conf", runner=runner).apply()
        assert exc.value.code == Code.WG_APPLY_FAILED
        assert exc.value.status_code == 500

    def test_timeout(self, tmp_path):
        runner = MagicMock(side_effect=subprocess.TimeoutExpired(cmd="systemctl", timeout=10))
        with pytest.raises(ApplyError) as exc:
            Applier("service", "wg0", tmp_path / "wg0.conf", runner=runner).apply()
        assert "timed out" in exc.value.message

    def test_missing_binary(self, tmp_path):
        runner = MagicMock(side_effect=FileNotFoundError("wg-quick"))
        with pytest.raises(ApplyError):
            Applier("wg-quick", "wg0", tmp_path / "wg0.conf", runner=runner).apply()
