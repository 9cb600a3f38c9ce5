"""Tests for the confgate CLI: ``test``, ``parse`` and ``verify``."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from confgate import __version__
from confgate.cli import main

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _invoke(*args: str) -> tuple[int, str]:
    result = CliRunner().invoke(main, list(args))
    return result.exit_code, result.output


# ---------------------------------------------------------------------------
# confgate test
# ---------------------------------------------------------------------------


class TestTestCommand:
    def test_passing_input(
        self, policy_dir: Path, inputs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(policy_dir.parent)
        code, out = _invoke("test", str(inputs_dir / "deployment.yaml"))
        assert code == 0, out
        assert "1 test, 1 passed, 0 warnings, 0 failures, 0 exceptions" in out

    def test_failing_input(
        self, policy_dir: Path, inputs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(policy_dir.parent)
        service = str(inputs_dir / "service.yaml")
        code, out = _invoke("test", service)
        assert code == 1
        assert f"FAIL - {service} - main - no services" in out

    def test_explicit_policy_path(self, policy_dir: Path, inputs_dir: Path) -> None:
        code, _ = _invoke("test", "-p", str(policy_dir), str(inputs_dir))
        assert code == 1

    def test_fail_on_warn(self, tmp_path: Path, inputs_dir: Path) -> None:
        policy = tmp_path / "warn-policy"
        policy.mkdir()
        (policy / "main.policy.yml").write_text(
            "package: main\nrules:\n  - name: warn\n    msg: heads up\n"
        )
        target = str(inputs_dir / "deployment.yaml")

        code, out = _invoke("test", "-p", str(policy), target)
        assert code == 0
        assert "WARN" in out

        code, _ = _invoke("test", "-p", str(policy), "--fail-on-warn", target)
        assert code == 1

    def test_json_output(self, policy_dir: Path, inputs_dir: Path) -> None:
        code, out = _invoke("test", "-p", str(policy_dir), "-o", "json", str(inputs_dir))
        assert code == 1
        payload = json.loads(out)
        assert [entry["successes"] for entry in payload] == [1, 0]
        assert payload[1]["failures"][0]["msg"] == "no services"

    def test_tap_output(self, policy_dir: Path, inputs_dir: Path) -> None:
        _, out = _invoke("test", "-p", str(policy_dir), "-o", "tap", str(inputs_dir))
        assert out.splitlines()[0] == "1..2"

    def test_ignore(self, policy_dir: Path, inputs_dir: Path) -> None:
        code, _ = _invoke("test", "-p", str(policy_dir), "--ignore", "service", str(inputs_dir))
        assert code == 0

    def test_combine(self, policy_dir: Path, inputs_dir: Path) -> None:
        code, out = _invoke(
            "test", "-p", str(policy_dir), "--combine", "-o", "json", str(inputs_dir)
        )
        payload = json.loads(out)
        assert code == 0
        assert [entry["filename"] for entry in payload] == ["Combined"]

    def test_trace(self, policy_dir: Path, inputs_dir: Path) -> None:
        _, out = _invoke(
            "test", "-p", str(policy_dir), "--trace", str(inputs_dir / "service.yaml")
        )
        assert "TRAC" in out
        assert "Enter data.main.deny" in out

    def test_missing_policy_dir_is_fatal(self, tmp_path: Path, inputs_dir: Path) -> None:
        code, out = _invoke("test", "-p", str(tmp_path / "absent"), str(inputs_dir))
        assert code == 2
        assert "Error:" in out

    def test_broken_policy_is_fatal(self, tmp_path: Path, inputs_dir: Path) -> None:
        policy = tmp_path / "broken"
        policy.mkdir()
        (policy / "main.policy.yml").write_text("package: main\nrules:\n  - name: allow\n")
        code, out = _invoke("test", "-p", str(policy), str(inputs_dir))
        assert code == 2
        assert "error(s) occurred during policy compilation" in out

    def test_unknown_output_is_fatal(self, policy_dir: Path, inputs_dir: Path) -> None:
        code, out = _invoke("test", "-p", str(policy_dir), "-o", "xml", str(inputs_dir))
        assert code == 2
        assert "unknown output format 'xml'" in out


class TestConfigFile:
    def test_config_file_sets_defaults(
        self, policy_dir: Path, inputs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(policy_dir.parent)
        (policy_dir.parent / "confgate.yml").write_text("namespace: other\n")
        code, _ = _invoke("test", str(inputs_dir / "service.yaml"))
        assert code == 0

    def test_cli_option_overrides_config_file(
        self, policy_dir: Path, inputs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(policy_dir.parent)
        (policy_dir.parent / "confgate.yml").write_text("namespace: other\n")
        code, _ = _invoke("test", "-n", "main", str(inputs_dir / "service.yaml"))
        assert code == 1

    def test_explicit_config_option(
        self, policy_dir: Path, inputs_dir: Path, tmp_path: Path
    ) -> None:
        config = tmp_path / "ci.yml"
        config.write_text(f"policy: {policy_dir}\noutput: json\n")
        code, out = _invoke("test", "--config", str(config), str(inputs_dir))
        assert code == 1
        assert json.loads(out)[1]["failures"][0]["rule"] == "deny"

    def test_invalid_config_is_fatal(
        self, policy_dir: Path, inputs_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(policy_dir.parent)
        (policy_dir.parent / "confgate.yml").write_text("colour: true\n")
        code, out = _invoke("test", str(inputs_dir))
        assert code == 2
        assert "unknown configuration key 'colour'" in out


# ---------------------------------------------------------------------------
# confgate parse
# ---------------------------------------------------------------------------


class TestParseCommand:
    def test_prints_documents(self, inputs_dir: Path) -> None:
        service = str(inputs_dir / "service.yaml")
        code, out = _invoke("parse", service)
        assert code == 0
        first, rest = out.split("\n", 1)
        assert first == service
        assert json.loads(rest) == {"kind": "Service", "metadata": {"name": "web"}}

    def test_combined(self, inputs_dir: Path) -> None:
        code, out = _invoke("parse", "--combine", str(inputs_dir))
        assert code == 0
        assert sorted(json.loads(out)) == [
            str(inputs_dir / "deployment.yaml"),
            str(inputs_dir / "service.yaml"),
        ]

    def test_unparsable_file(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")
        code, out = _invoke("parse", str(bad))
        assert code == 1
        assert "Error: parse" in out

    def test_unknown_input_format(self, inputs_dir: Path) -> None:
        code, _ = _invoke("parse", "-i", "hcl", str(inputs_dir))
        assert code == 2


# ---------------------------------------------------------------------------
# confgate verify
# ---------------------------------------------------------------------------


class TestVerifyCommand:
    def test_lists_namespaces(self, policy_dir: Path, tmp_path: Path) -> None:
        data = tmp_path / "data"
        data.mkdir()
        (data / "images.yaml").write_text("allowed: [nginx]\n")
        code, out = _invoke("verify", "-p", str(policy_dir), "-d", str(data))
        assert code == 0
        assert "main" in out
        assert "1 namespace(s), 1 data root key(s)" in out

    def test_broken_policy(self, tmp_path: Path) -> None:
        policy = tmp_path / "policy"
        policy.mkdir()
        (policy / "main.policy.yml").write_text("nope\n")
        code, _ = _invoke("verify", "-p", str(policy))
        assert code == 2


class TestVersion:
    def test_version(self) -> None:
        code, out = _invoke("--version")
        assert code == 0
        assert __version__ in out
