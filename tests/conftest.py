"""Shared test fixtures for confgate."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


SERVICE_POLICY = (
    "package: main\n"
    "rules:\n"
    "  - name: deny\n"
    "    when:\n"
    "      - path: input.kind\n"
    "        equals: Service\n"
    '    msg: "no services"\n'
)


@pytest.fixture()
def policy_dir(tmp_path: Path) -> Path:
    """A ``policy/`` directory holding a single deny rule against Services."""
    directory = tmp_path / "policy"
    directory.mkdir()
    (directory / "main.policy.yml").write_text(SERVICE_POLICY)
    return directory


@pytest.fixture()
def inputs_dir(tmp_path: Path) -> Path:
    """A directory with one Service and one Deployment manifest."""
    directory = tmp_path / "inputs"
    directory.mkdir()
    (directory / "service.yaml").write_text("kind: Service\nmetadata:\n  name: web\n")
    (directory / "deployment.yaml").write_text("kind: Deployment\nmetadata:\n  name: web\n")
    return directory
