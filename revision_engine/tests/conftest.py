"""Shared fixtures for revision_engine tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

DAILY_WORKFLOW = """\
timezone: UTC
schedule:
  daily>: 07:00:00
+extract:
  sh>: python extract.py ${target_db}
"""

HOURLY_WORKFLOW = """\
schedule:
  hourly>: 30:00
+run:
  echo>: hourly
"""

PROJECT_MANIFEST = """\
params:
  target_db: analytics
  retries: 2
"""


def write_files(root: Path, files: dict[str, str]) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture()
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory creating a small project directory under ``tmp_path``."""

    def _make(name: str = "project", extra: dict[str, str] | None = None) -> Path:
        files = {
            "daily_report.dig": DAILY_WORKFLOW,
            "hourly_sync.dig": HOURLY_WORKFLOW,
            "project.yml": PROJECT_MANIFEST,
            "scripts/extract.py": "print('extract')\n",
        }
        files.update(extra or {})
        return write_files(tmp_path / name, files)

    return _make
