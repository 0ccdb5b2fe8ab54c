"""Tests for ``revkit archive``."""

from __future__ import annotations

import hashlib
import io
import tarfile
from pathlib import Path

from revision_engine.archive import read_manifest
from typer.testing import CliRunner

from cli.app import app
from cli.options import EXIT_FAILURE, EXIT_INPUT

runner = CliRunner()


def _contents(path: Path) -> dict[str, bytes]:
    with tarfile.open(fileobj=io.BytesIO(path.read_bytes()), mode="r:gz") as tar:
        return {m.name: tar.extractfile(m).read() for m in tar if m.isfile()}  # type: ignore[union-attr]


class TestArchive:
    def test_writes_archive(self, project_dir: Path, tmp_path: Path):
        output = tmp_path / "out" / "project.tar.gz"
        result = runner.invoke(app, ["archive", "-o", str(output), "--project", str(project_dir)])

        assert result.exit_code == 0, result.output
        assert output.is_file()
        assert f"sha256:{hashlib.sha256(output.read_bytes()).hexdigest()}" in result.output
        assert {"daily.dig", "project.yml", "run.sh"} <= set(_contents(output))

    def test_output_is_deterministic(self, project_dir: Path, tmp_path: Path):
        first, second = tmp_path / "a.tar.gz", tmp_path / "b.tar.gz"
        for output in (first, second):
            result = runner.invoke(app, ["archive", "-o", str(output), "--project", str(project_dir), "-p", "env=prod"])
            assert result.exit_code == 0, result.output
        assert first.read_bytes() == second.read_bytes()

    def test_revision_and_params_embedded(self, project_dir: Path, tmp_path: Path):
        output = tmp_path / "project.tar.gz"
        result = runner.invoke(
            app,
            ["archive", "-o", str(output), "--project", str(project_dir), "-r", "v7", "-p", "env=prod"],
        )

        assert result.exit_code == 0, result.output
        manifest = read_manifest(_contents(output))
        assert manifest.revision == "v7"
        assert manifest.params["env"] == "prod"
        assert [wf.name for wf in manifest.workflows] == ["daily"]

    def test_params_file_and_system_params(self, project_dir: Path, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("REVKIT_PARAM_REGION", "eu")
        params_file = tmp_path / "params.yml"
        params_file.write_text("env: staging\nretries: 3\n")
        output = tmp_path / "project.tar.gz"

        result = runner.invoke(
            app,
            ["archive", "-o", str(output), "--project", str(project_dir), "-P", str(params_file), "-p", "retries=5"],
        )

        assert result.exit_code == 0, result.output
        params = read_manifest(_contents(output)).params
        assert params["env"] == "staging"
        assert params["retries"] == "5"
        assert params["region"] == "eu"

    def test_staging_directory_left_empty(self, project_dir: Path, tmp_path: Path):
        runner.invoke(app, ["archive", "-o", str(tmp_path / "p.tar.gz"), "--project", str(project_dir)])
        assert list((project_dir / ".revkit" / "tmp").iterdir()) == []


class TestArchiveErrors:
    def test_invalid_revision(self, project_dir: Path, tmp_path: Path):
        output = tmp_path / "p.tar.gz"
        result = runner.invoke(app, ["archive", "-o", str(output), "--project", str(project_dir), "-r", "a b"])
        assert result.exit_code == EXIT_INPUT
        assert not output.exists()

    def test_invalid_workflow(self, project_dir: Path, tmp_path: Path):
        (project_dir / "daily.dig").write_text("schedule: [1, 2]\n")
        output = tmp_path / "p.tar.gz"
        result = runner.invoke(app, ["archive", "-o", str(output), "--project", str(project_dir)])
        assert result.exit_code == EXIT_FAILURE
        assert not output.exists()

    def test_non_finite_params_file_value(self, project_dir: Path, tmp_path: Path):
        params_file = tmp_path / "params.yml"
        params_file.write_text("ratio: .nan\n")
        output = tmp_path / "p.tar.gz"
        result = runner.invoke(
            app, ["archive", "-o", str(output), "--project", str(project_dir), "-P", str(params_file)]
        )
        assert result.exit_code == EXIT_INPUT
        assert isinstance(result.exception, SystemExit)
        assert not output.exists()
