"""Shared fixtures for CLI tests.

Commands read ``REVKIT_*`` variables, so every test starts from an
environment without them.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

WORKFLOW = """\
schedule:
  daily>: 07:00:00
+run:
  sh>: ./run.sh ${env}
"""


@pytest.fixture(autouse=True)
def _clean_revkit_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("REVKIT_"):
            monkeypatch.delenv(name)


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    (root / "daily.dig").write_text(WORKFLOW)
    (root / "project.yml").write_text("params:\n  env: dev\n")
    (root / "run.sh").write_text("echo $1\n")
    return root
