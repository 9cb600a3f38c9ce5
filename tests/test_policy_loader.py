"""Tests for confgate.runner.policy_loader."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from confgate.errors import PolicyCompileError
from confgate.runner.policy_loader import discover_policy_files, load_policies

if TYPE_CHECKING:
    from pathlib import Path


class TestDiscoverPolicyFiles:
    def test_recursive_and_sorted(self, tmp_path: Path) -> None:
        (tmp_path / "b.policy.yml").write_text("package: b\n")
        (tmp_path / "nested").mkdir()
        (tmp_path / "nested" / "a.policy.yaml").write_text("package: a\n")
        (tmp_path / "data.yaml").write_text("x: 1\n")
        found = discover_policy_files(tmp_path)
        assert [p.name for p in found] == ["b.policy.yml", "a.policy.yaml"]

    def test_explicit_file(self, tmp_path: Path) -> None:
        path = tmp_path / "rules.yml"
        path.write_text("package: main\n")
        assert discover_policy_files(path) == [path]


class TestLoadPolicies:
    def test_compiles_directory(self, policy_dir: Path) -> None:
        rule_set = load_policies([policy_dir])
        assert rule_set.namespaces == ("main",)
        assert len(rule_set.rules("main")) == 1

    def test_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(PolicyCompileError) as exc_info:
            load_policies([tmp_path / "nope"])
        assert exc_info.value.diagnostics[0].message == "no such file or directory"

    def test_empty_directory_has_no_namespaces(self, tmp_path: Path) -> None:
        assert load_policies([tmp_path]).namespaces == ()

    def test_reports_every_broken_file(self, tmp_path: Path) -> None:
        (tmp_path / "a.policy.yml").write_text("rules: []\n")
        (tmp_path / "b.policy.yml").write_text("package: main\nrules:\n  - name: allow\n")
        with pytest.raises(PolicyCompileError) as exc_info:
            load_policies([tmp_path])
        files = sorted(d.file for d in exc_info.value.diagnostics)
        assert files == [str(tmp_path / "a.policy.yml"), str(tmp_path / "b.policy.yml")]
