"""Tests for confgate.runner.runner — end-to-end runs through TestRunner."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

import pytest

from confgate.config import RunnerConfig
from confgate.errors import CancellationError, DataLoadError, ParseError, PolicyCompileError
from confgate.runner import (
    COMBINED_FILENAME,
    EXIT_OK,
    EXIT_VIOLATIONS,
    TestRunner,
    exit_code,
    exit_code_fail_on_warn,
)
from confgate.runner.evaluator import evaluate

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _runner(policy_dir: Path, **kwargs: object) -> TestRunner:
    return TestRunner(RunnerConfig(policy_paths=(str(policy_dir),), **kwargs))  # type: ignore[arg-type]


def _write(path: Path, text: str) -> str:
    path.write_text(text)
    return str(path)


# ---------------------------------------------------------------------------
# Basic outcomes
# ---------------------------------------------------------------------------


class TestRunOutcomes:
    def test_denied_document(self, policy_dir: Path, tmp_path: Path) -> None:
        path = _write(tmp_path / "svc.json", '{"kind": "Service"}')
        results = _runner(policy_dir).run([path])
        assert len(results) == 1
        assert results[0].filename == path
        assert results[0].successes == 0
        assert [f.message for f in results[0].failures] == ["no services"]
        assert exit_code(results) == EXIT_VIOLATIONS

    def test_clean_document(self, policy_dir: Path, tmp_path: Path) -> None:
        path = _write(tmp_path / "deploy.json", '{"kind": "Deployment"}')
        results = _runner(policy_dir).run([path])
        assert results[0].successes == 1
        assert results[0].failures == ()
        assert exit_code(results) == EXIT_OK

    def test_warning_only_fails_on_warn(self, tmp_path: Path) -> None:
        policy = tmp_path / "policy"
        policy.mkdir()
        _write(policy / "main.policy.yml", "package: main\nrules:\n  - name: warn\n    msg: w\n")
        path = _write(tmp_path / "a.yaml", "a: 1\n")
        results = _runner(policy, fail_on_warn=True).run([path])
        assert [w.message for w in results[0].warnings] == ["w"]
        assert exit_code_fail_on_warn(results) == EXIT_VIOLATIONS
        assert exit_code(results) == EXIT_OK

    def test_ignore_pattern_drops_input(self, policy_dir: Path, inputs_dir: Path) -> None:
        results = _runner(policy_dir, ignore="service").run([str(inputs_dir)])
        assert [r.filename for r in results] == [str(inputs_dir / "deployment.yaml")]

    def test_results_follow_input_order(self, policy_dir: Path, tmp_path: Path) -> None:
        paths = [
            _write(tmp_path / f"doc{i}.json", f'{{"kind": "K{i}"}}') for i in range(12)
        ]
        paths.reverse()
        results = _runner(policy_dir, workers=4).run(paths)
        assert [r.filename for r in results] == paths

    def test_runs_are_deterministic(self, policy_dir: Path, inputs_dir: Path) -> None:
        runner = _runner(policy_dir)
        assert runner.run([str(inputs_dir)]) == runner.run([str(inputs_dir)])

    def test_absent_namespace_counts_as_success(self, policy_dir: Path, tmp_path: Path) -> None:
        path = _write(tmp_path / "svc.json", '{"kind": "Service"}')
        results = _runner(policy_dir, namespaces=("main", "absent")).run([path])
        assert results[0].namespaces == ("main", "absent")
        assert results[0].successes == 1
        assert len(results[0].failures) == 1

    def test_parse_failure_reported_per_file(self, policy_dir: Path, tmp_path: Path) -> None:
        bad = _write(tmp_path / "bad.json", "{nope")
        good = _write(tmp_path / "good.json", '{"kind": "Deployment"}')
        results = _runner(policy_dir).run([bad, good])
        assert results[0].successes == 0
        assert len(results[0].exceptions) == 1
        assert results[1].successes == 1
        assert exit_code(results) == EXIT_VIOLATIONS

    def test_no_inputs(self, policy_dir: Path, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        assert _runner(policy_dir).run([str(empty)]) == ()


class TestNamespaces:
    def test_all_namespaces(self, policy_dir: Path, tmp_path: Path) -> None:
        _write(
            policy_dir / "extra.policy.yml",
            "package: extra\nrules:\n  - name: warn\n    msg: extra warning\n",
        )
        path = _write(tmp_path / "svc.json", '{"kind": "Service"}')
        results = _runner(policy_dir, all_namespaces=True).run([path])
        assert results[0].namespaces == ("extra", "main")
        assert [w.message for w in results[0].warnings] == ["extra warning"]
        assert [f.message for f in results[0].failures] == ["no services"]


class TestCombine:
    def test_single_combined_result(self, tmp_path: Path, inputs_dir: Path) -> None:
        policy = tmp_path / "policy"
        policy.mkdir()
        service = str(inputs_dir / "service.yaml")
        _write(
            policy / "main.policy.yml",
            "package: main\n"
            "rules:\n"
            "  - name: deny\n"
            "    when:\n"
            f"      - {{path: 'input[\"{service}\"].kind', equals: Service}}\n"
            "    msg: combined service\n",
        )
        results = _runner(policy, combine=True).run([str(inputs_dir)])
        assert len(results) == 1
        assert results[0].filename == COMBINED_FILENAME
        assert [f.message for f in results[0].failures] == ["combined service"]

    def test_combined_parse_error_is_fatal(self, policy_dir: Path, tmp_path: Path) -> None:
        bad = _write(tmp_path / "bad.json", "{nope")
        with pytest.raises(ParseError):
            _runner(policy_dir, combine=True).run([bad])


class TestData:
    def test_rules_read_data(self, tmp_path: Path) -> None:
        policy = tmp_path / "policy"
        policy.mkdir()
        _write(
            policy / "main.policy.yml",
            "package: main\n"
            "rules:\n"
            "  - name: deny\n"
            "    when:\n"
            "      - {path: input.image, not_in: {ref: data.images.allowed}}\n"
            '    msg: "image {input.image} not allowed"\n',
        )
        data = tmp_path / "data"
        data.mkdir()
        _write(data / "images.yaml", "allowed: [nginx]\n")
        path = _write(tmp_path / "pod.json", '{"image": "evil"}')

        config = RunnerConfig(policy_paths=(str(policy),), data_paths=(str(data),))
        results = TestRunner(config).run([path])
        assert [f.message for f in results[0].failures] == ["image evil not allowed"]


class TestFatalErrors:
    def test_broken_policy(self, tmp_path: Path) -> None:
        policy = tmp_path / "policy"
        policy.mkdir()
        _write(policy / "main.policy.yml", "rules: []\n")
        with pytest.raises(PolicyCompileError):
            _runner(policy).run([])

    def test_missing_data(self, policy_dir: Path, tmp_path: Path) -> None:
        config = RunnerConfig(
            policy_paths=(str(policy_dir),), data_paths=(str(tmp_path / "absent"),)
        )
        with pytest.raises(DataLoadError):
            TestRunner(config).run([])


class TestCancellation:
    def test_pre_cancelled_run(self, policy_dir: Path, inputs_dir: Path) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(CancellationError):
            _runner(policy_dir).run([str(inputs_dir)], cancel=cancel)

    def test_unset_event_completes(self, policy_dir: Path, inputs_dir: Path) -> None:
        results = _runner(policy_dir).run([str(inputs_dir)], cancel=threading.Event())
        assert len(results) == 2

    def test_cancel_during_run(
        self, policy_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        paths = [
            _write(tmp_path / f"doc{i:02d}.json", '{"kind": "Deployment"}') for i in range(20)
        ]
        cancel = threading.Event()
        calls: list[str] = []
        lock = threading.Lock()

        def cancelling_evaluate(document: Any, namespace: str, *args: Any, **kwargs: Any) -> Any:
            with lock:
                calls.append(namespace)
                if len(calls) == 3:
                    cancel.set()
            return evaluate(document, namespace, *args, **kwargs)

        monkeypatch.setattr("confgate.runner.runner.evaluate", cancelling_evaluate)
        with pytest.raises(CancellationError):
            _runner(policy_dir, workers=1).run(paths, cancel=cancel)
        assert len(calls) == 3


class TestQueryErrorIsolation:
    def test_error_confined_to_its_cell(self, tmp_path: Path) -> None:
        policy = tmp_path / "policy"
        policy.mkdir()
        _write(
            policy / "main.policy.yml",
            "package: main\n"
            "rules:\n"
            "  - name: deny\n"
            "    when: [{path: input.user, equals: root}]\n"
            "    msg: runs as root\n",
        )
        _write(
            policy / "strict.policy.yml",
            "package: strict\n"
            "rules:\n"
            "  - name: deny\n"
            "    when: [{path: input.replicas, lt: 2}]\n"
            "    msg: too few replicas\n"
            "  - name: warn\n"
            "    when: [{path: input.tag, equals: latest}]\n"
            "    msg: latest tag\n",
        )
        broken = _write(
            tmp_path / "a.json", '{"user": "root", "replicas": "one", "tag": "latest"}'
        )
        clean = _write(tmp_path / "b.json", '{"user": "app", "replicas": 1}')

        results = _runner(policy, namespaces=("main", "strict")).run([broken, clean])

        first, second = results
        assert [f.message for f in first.failures] == ["runs as root"]
        assert [(e.namespace, e.rule) for e in first.exceptions] == [("strict", "deny")]
        assert [w.message for w in first.warnings] == ["latest tag"]
        assert first.successes == 0

        assert [f.message for f in second.failures] == ["too few replicas"]
        assert second.exceptions == ()
        assert second.successes == 1
        assert exit_code(results) == EXIT_VIOLATIONS
