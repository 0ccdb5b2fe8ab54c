"""Unit tests for revision_engine.revision.naming."""

from __future__ import annotations

import re
import threading
from datetime import UTC, datetime, timedelta

import pytest
from revision_engine.errors import InvalidProjectNameError, InvalidRevisionNameError
from revision_engine.revision import generate_default_revision, validate_project_name, validate_revision_name

_NAME_RE = re.compile(r"^\d{8}T\d{6}\.\d{6}Z_[0-9a-f]{8}$")


class TestGenerateDefaultRevision:
    def test_format(self):
        name = generate_default_revision()
        assert _NAME_RE.match(name), name
        assert validate_revision_name(name) == name

    def test_pinned_clock(self):
        far_future = datetime(2999, 1, 2, 3, 4, 5, 123456, tzinfo=UTC)
        assert generate_default_revision(far_future).startswith("29990102T030405.123456Z_")

    def test_same_instant_still_strictly_increasing(self):
        now = datetime(3000, 6, 1, tzinfo=UTC)
        names = [generate_default_revision(now) for _ in range(50)]
        assert names == sorted(names)
        assert len({n.split("_")[0] for n in names}) == 50

    def test_clock_regression_does_not_reorder(self):
        base = datetime(3001, 1, 1, tzinfo=UTC)
        first = generate_default_revision(base)
        second = generate_default_revision(base - timedelta(hours=1))
        assert first < second

    def test_unique_across_threads(self):
        names: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(100):
                name = generate_default_revision()
                with lock:
                    names.append(name)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(names)) == 400


class TestValidateNames:
    @pytest.mark.parametrize("name", ["r1", "v1.2.3", "2024-01-01_release", "A_b-c.d"])
    def test_valid_revision_names(self, name: str):
        assert validate_revision_name(name) == name

    @pytest.mark.parametrize(
        "name",
        ["", "has space", "a/b", "..", "x..y", ".hidden", "-leading", "a%20b", "x" * 256],
    )
    def test_invalid_revision_names(self, name: str):
        with pytest.raises(InvalidRevisionNameError):
            validate_revision_name(name)

    def test_invalid_project_name_has_its_own_error(self):
        with pytest.raises(InvalidProjectNameError):
            validate_project_name("bad name")

    def test_valid_project_name(self):
        assert validate_project_name("my_project") == "my_project"
