"""Shared fixtures for revision server tests.

Provides a small project directory, archive builders and a ``TestClient``
running the full application lifespan with the scheduler disabled.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from revision_engine.archive import ProjectArchiver

from api.config import ServerSettings
from api.main import create_app

WORKFLOW = """\
schedule:
  daily>: 07:00:00
+run:
  echo>: ${env}
"""

PROJECT_YML = """\
params:
  env: dev
"""


@pytest.fixture()
def project_dir(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "scripts").mkdir(parents=True)
    (root / "daily.dig").write_text(WORKFLOW)
    (root / "project.yml").write_text(PROJECT_YML)
    (root / "scripts" / "run.sh").write_text("echo run\n")
    return root


@pytest.fixture()
def build_archive(project_dir: Path, tmp_path: Path) -> Callable[..., bytes]:
    """Return a factory producing archive bytes of ``project_dir``."""
    archiver = ProjectArchiver(tmp_path / "staging")

    def _build(**params: object) -> bytes:
        return archiver.archive(project_dir, params).data

    return _build


@pytest.fixture()
def make_settings(tmp_path: Path) -> Callable[..., ServerSettings]:
    def _make(**overrides: object) -> ServerSettings:
        values: dict[str, object] = {"scheduler_enabled": False, "_env_file": None}
        values.update(overrides)
        return ServerSettings(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture()
def client(make_settings: Callable[..., ServerSettings]) -> Iterator[TestClient]:
    """TestClient with an in-memory store and no local project."""
    with TestClient(create_app(make_settings())) as test_client:
        yield test_client
