"""Unit tests for revision_engine.project.workflow_loader."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from revision_engine.errors import InvalidManifestError, ProjectDirNotFoundError
from revision_engine.project import ScheduleKind
from revision_engine.project.workflow_loader import (
    list_project_files,
    parse_project_manifest,
    parse_workflow_document,
    scan_project,
)

# ---------------------------------------------------------------------------
# File enumeration
# ---------------------------------------------------------------------------


class TestListProjectFiles:
    def test_sorted_posix_paths(self, make_project: Callable[..., Path]):
        root = make_project()
        assert list_project_files(root) == [
            "daily_report.dig",
            "hourly_sync.dig",
            "project.yml",
            "scripts/extract.py",
        ]

    def test_hidden_entries_skipped(self, make_project: Callable[..., Path]):
        root = make_project(extra={".env": "SECRET=1", ".revkit/tmp/archive.tar.gz": "x", "sub/.cache": "x"})
        files = list_project_files(root)
        assert all(not part.startswith(".") for f in files for part in f.split("/"))


# ---------------------------------------------------------------------------
# Workflow parsing
# ---------------------------------------------------------------------------


class TestParseWorkflowDocument:
    def test_daily_schedule(self):
        wf = parse_workflow_document("wf", "wf.dig", "schedule:\n  daily>: 12:00:00\n")
        assert wf.schedule is not None
        assert wf.schedule.kind is ScheduleKind.DAILY
        assert wf.schedule.expression == "12:00:00"

    def test_hourly_expression_is_not_read_as_a_number(self):
        wf = parse_workflow_document("wf", "wf.dig", "schedule:\n  hourly>: 30:00\n")
        assert wf.schedule is not None
        assert wf.schedule.expression == "30:00"

    def test_timezone_default_and_override(self):
        assert parse_workflow_document("a", "a.dig", "+t:\n  echo>: hi\n").timezone == "UTC"
        assert parse_workflow_document("b", "b.dig", "timezone: Asia/Tokyo\n").timezone == "Asia/Tokyo"

    def test_no_schedule(self):
        assert parse_workflow_document("a", "a.dig", "+t:\n  echo>: hi\n").schedule is None

    def test_empty_document(self):
        wf = parse_workflow_document("a", "a.dig", "")
        assert wf.config == {}

    def test_config_kept_verbatim(self):
        wf = parse_workflow_document("a", "a.dig", "_export:\n  x: 1\n+t:\n  echo>: hi\n")
        assert wf.config == {"_export": {"x": 1}, "+t": {"echo>": "hi"}}

    @pytest.mark.parametrize(
        "text, match",
        [
            ("key: [unclosed\n", "not valid YAML"),
            ("- a\n- b\n", "must be a mapping"),
            ("timezone: Mars/Olympus\n", "Unknown timezone"),
            ("schedule: daily\n", "'schedule' must be a mapping"),
            ("schedule:\n  monthly>: 1,00:00:00\n", "unknown schedule operator"),
            ("schedule:\n  daily>: 07:00:00\n  hourly>: 30:00\n", "exactly one operator"),
            ("schedule:\n  daily>: 25:00:00\n", "out of range"),
            ("schedule:\n  cron>: '0 0 1 * *'\n", "Unsupported cron expression"),
            ("blob: !!binary aGVsbG8=\n", "Unsupported parameter value type: bytes"),
            ("+t:\n  limit: .inf\n", "Unsupported parameter value"),
        ],
    )
    def test_invalid_documents(self, text: str, match: str):
        with pytest.raises(InvalidManifestError, match=match):
            parse_workflow_document("wf", "wf.dig", text)


class TestParseProjectManifest:
    def test_params(self):
        assert parse_project_manifest("params:\n  a: 1\n") == {"a": 1}

    def test_empty(self):
        assert parse_project_manifest("") == {}

    def test_params_must_be_mapping(self):
        with pytest.raises(InvalidManifestError, match="'params' must be a mapping"):
            parse_project_manifest("params: [1, 2]\n")

    @pytest.mark.parametrize("value", ["!!binary aGVsbG8=", ".nan"])
    def test_unsupported_param_values(self, value: str):
        with pytest.raises(InvalidManifestError, match="project.yml"):
            parse_project_manifest(f"params:\n  x: {value}\n")


# ---------------------------------------------------------------------------
# Directory scanning
# ---------------------------------------------------------------------------


class TestScanProject:
    def test_scan(self, make_project: Callable[..., Path]):
        tree = scan_project(make_project())
        assert [wf.name for wf in tree.workflows] == ["daily_report", "hourly_sync"]
        assert tree.params == {"target_db": "analytics", "retries": 2}

    def test_subdirectory_workflows_are_resources_only(self, make_project: Callable[..., Path]):
        tree = scan_project(make_project(extra={"lib/helper.dig": "+t:\n  echo>: hi\n"}))
        assert "lib/helper.dig" in tree.files
        assert "helper" not in [wf.name for wf in tree.workflows]

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(ProjectDirNotFoundError):
            scan_project(tmp_path / "nope")

    def test_invalid_workflow_aborts_scan(self, make_project: Callable[..., Path]):
        root = make_project(extra={"broken.dig": "schedule:\n  daily>: nonsense\n"})
        with pytest.raises(InvalidManifestError, match="broken.dig"):
            scan_project(root)

    def test_project_without_workflows(self, tmp_path: Path):
        (tmp_path / "readme.txt").write_text("hi")
        tree = scan_project(tmp_path)
        assert tree.workflows == ()
        assert tree.files == ("readme.txt",)
