"""Unit tests for revision_engine.reload.auto_reloader."""

from __future__ import annotations

import asyncio
import itertools
import shutil
import threading
from collections.abc import Callable
from pathlib import Path

import pytest
from revision_engine.archive import ProjectArchiveLoader
from revision_engine.errors import InvalidManifestError, ProjectDirNotFoundError
from revision_engine.reload import ActiveProjectReference, ReloaderState, RevisionAutoReloader
from revision_engine.reload.watcher import WatchdogChangeSource, is_ignored


class FakeChangeSource:
    """Change source driven by the test through :meth:`emit`."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[str] | None = None
        self.started = False
        self.stopped = False

    def start(self, root: Path, queue: asyncio.Queue[str], loop: asyncio.AbstractEventLoop) -> None:
        self.queue = queue
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def emit(self, path: str) -> None:
        assert self.queue is not None
        self.queue.put_nowait(path)


class CountingLoader(ProjectArchiveLoader):
    def __init__(self) -> None:
        self.calls = 0

    def load(self, *args, **kwargs):
        self.calls += 1
        return super().load(*args, **kwargs)


class FailOnceLoader(ProjectArchiveLoader):
    """Raises an unexpected error on the first reload after the initial load."""

    def __init__(self) -> None:
        self.calls = 0

    def load(self, *args, **kwargs):
        self.calls += 1
        if self.calls == 2:
            raise RuntimeError("loader crashed")
        return super().load(*args, **kwargs)


def _revisions() -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"local-{next(counter)}"


async def _wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture()
def reference() -> ActiveProjectReference:
    return ActiveProjectReference("dev")


@pytest.fixture()
def source() -> FakeChangeSource:
    return FakeChangeSource()


def _reloader(
    reference: ActiveProjectReference,
    source: FakeChangeSource,
    loader: ProjectArchiveLoader | None = None,
    debounce: float = 0.05,
) -> RevisionAutoReloader:
    return RevisionAutoReloader(
        reference,
        loader,
        change_source=source,
        debounce_seconds=debounce,
        revision_factory=_revisions(),
    )


# ---------------------------------------------------------------------------
# Initial load
# ---------------------------------------------------------------------------


class TestWatch:
    def test_installs_initial_snapshot(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        reloader = _reloader(reference, source)
        snapshot = reloader.watch(make_project(), {"env": "dev"})

        assert reloader.state is ReloaderState.WATCHING
        assert reference.get() is snapshot
        assert snapshot.revision == "local-1"
        assert snapshot.params["env"] == "dev"

    def test_initial_failure_propagates_and_installs_nothing(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        tmp_path: Path,
    ):
        reloader = _reloader(reference, source)
        with pytest.raises(ProjectDirNotFoundError):
            reloader.watch(tmp_path / "missing")
        assert reference.get() is None

    def test_initial_invalid_project(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project(extra={"bad.dig": "schedule:\n  daily>: 7\n"})
        with pytest.raises(InvalidManifestError):
            _reloader(reference, source).watch(root)
        assert reference.get() is None

    def test_watch_twice_rejected(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        reloader = _reloader(reference, source)
        reloader.watch(make_project())
        with pytest.raises(RuntimeError):
            reloader.watch(make_project())

    def test_negative_debounce_rejected(self, reference: ActiveProjectReference, source: FakeChangeSource):
        with pytest.raises(ValueError):
            RevisionAutoReloader(reference, change_source=source, debounce_seconds=-1)


# ---------------------------------------------------------------------------
# Reloading
# ---------------------------------------------------------------------------


class TestReloadNow:
    @pytest.mark.asyncio
    async def test_change_installs_new_snapshot(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        reloader = _reloader(reference, source)
        reloader.watch(root)

        (root / "scripts" / "extract.py").write_text("print('v2')\n")
        assert await reloader.reload_now() is True

        current = reference.get()
        assert current is not None and current.revision == "local-2"
        assert reference.version == 2
        assert reloader.successful_reloads == 1

    @pytest.mark.asyncio
    async def test_unchanged_content_is_not_swapped(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        reloader = _reloader(reference, source)
        reloader.watch(make_project())
        assert await reloader.reload_now() is False
        assert reference.version == 1

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_previous_snapshot(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        reloader = _reloader(reference, source)
        initial = reloader.watch(root)

        (root / "daily_report.dig").write_text("schedule:\n  daily>: not-a-time\n")
        assert await reloader.reload_now() is False

        assert reference.get() is initial
        assert reloader.failed_reloads == 1
        assert reloader.last_error is not None and "daily_report.dig" in reloader.last_error
        assert reloader.state is ReloaderState.WATCHING

        (root / "daily_report.dig").write_text("schedule:\n  daily>: 08:00:00\n")
        assert await reloader.reload_now() is True
        assert reloader.last_error is None
        wf = reference.get().workflow("daily_report")  # type: ignore[union-attr]
        assert wf is not None and wf.schedule is not None and wf.schedule.expression == "08:00:00"

    @pytest.mark.asyncio
    async def test_deleted_directory_keeps_previous_snapshot(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        reloader = _reloader(reference, source)
        initial = reloader.watch(root)
        shutil.rmtree(root)

        assert await reloader.reload_now() is False
        assert reference.get() is initial

    @pytest.mark.asyncio
    async def test_unsupported_param_value_keeps_previous_snapshot(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        reloader = _reloader(reference, source)
        initial = reloader.watch(root)

        (root / "project.yml").write_text("params:\n  blob: !!binary aGVsbG8=\n")
        assert await reloader.reload_now() is False
        assert reference.get() is initial
        assert reloader.failed_reloads == 1
        assert reloader.last_error is not None and "project.yml" in reloader.last_error

        (root / "project.yml").write_text("params:\n  target_db: warehouse\n")
        assert await reloader.reload_now() is True
        assert reference.get().params["target_db"] == "warehouse"  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_reload_when_idle_or_stopped(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        reloader = _reloader(reference, source)
        assert await reloader.reload_now() is False

        reloader.watch(make_project())
        await reloader.stop()
        assert await reloader.reload_now() is False
        assert reloader.state is ReloaderState.STOPPED


# ---------------------------------------------------------------------------
# Background loop
# ---------------------------------------------------------------------------


class TestBackgroundLoop:
    @pytest.mark.asyncio
    async def test_burst_of_changes_reloads_once(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        loader = CountingLoader()
        reloader = _reloader(reference, source, loader, debounce=0.1)
        reloader.watch(root)
        await reloader.start()
        try:
            assert source.started
            (root / "scripts" / "extract.py").write_text("print('v2')\n")
            for name in ("a", "b", "c", "d"):
                source.emit(str(root / name))
                await asyncio.sleep(0.01)

            await _wait_until(lambda: reloader.successful_reloads == 1)
            await asyncio.sleep(0.2)
            assert loader.calls == 2
            assert reference.version == 2
        finally:
            await reloader.stop()
        assert source.stopped

    @pytest.mark.asyncio
    async def test_start_requires_watch(self, reference: ActiveProjectReference, source: FakeChangeSource):
        with pytest.raises(RuntimeError):
            await _reloader(reference, source).start()

    @pytest.mark.asyncio
    async def test_failure_in_loop_does_not_stop_watching(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        reloader = _reloader(reference, source)
        initial = reloader.watch(root)
        await reloader.start()
        try:
            (root / "hourly_sync.dig").write_text("key: [unclosed\n")
            source.emit(str(root / "hourly_sync.dig"))
            await _wait_until(lambda: reloader.failed_reloads == 1)
            assert reference.get() is initial

            (root / "hourly_sync.dig").write_text("schedule:\n  hourly>: 15:00\n")
            source.emit(str(root / "hourly_sync.dig"))
            await _wait_until(lambda: reloader.successful_reloads == 1)
        finally:
            await reloader.stop()


    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_end_loop(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        reloader = _reloader(reference, source, FailOnceLoader())
        initial = reloader.watch(root)
        await reloader.start()
        try:
            (root / "scripts" / "extract.py").write_text("print('v2')\n")
            source.emit(str(root / "scripts" / "extract.py"))
            await _wait_until(lambda: reloader.failed_reloads == 1)
            assert reference.get() is initial
            assert reloader.last_error == "RuntimeError: loader crashed"
            assert reloader.state is ReloaderState.WATCHING

            source.emit(str(root / "scripts" / "extract.py"))
            await _wait_until(lambda: reloader.successful_reloads == 1)
        finally:
            await reloader.stop()

    @pytest.mark.asyncio
    async def test_filesystem_change_triggers_reload(
        self,
        reference: ActiveProjectReference,
        make_project: Callable[..., Path],
    ):
        root = make_project()
        reloader = RevisionAutoReloader(
            reference,
            change_source=WatchdogChangeSource(),
            debounce_seconds=0.1,
            revision_factory=_revisions(),
        )
        reloader.watch(root)
        await reloader.start()
        try:
            await asyncio.sleep(0.2)
            (root / "hourly_sync.dig").write_text("schedule:\n  hourly>: 45:00\n")
            await _wait_until(lambda: reloader.successful_reloads == 1, timeout=10.0)
        finally:
            await reloader.stop()

        wf = reference.get().workflow("hourly_sync")  # type: ignore[union-attr]
        assert wf is not None and wf.schedule is not None and wf.schedule.expression == "45:00"


# ---------------------------------------------------------------------------
# Concurrent readers
# ---------------------------------------------------------------------------


class TestConcurrentReaders:
    @pytest.mark.asyncio
    async def test_readers_never_see_mixed_snapshots(
        self,
        reference: ActiveProjectReference,
        source: FakeChangeSource,
        tmp_path: Path,
    ):
        root = tmp_path / "project"
        root.mkdir()

        def write_generation(n: int) -> None:
            (root / "project.yml").write_text(f"params:\n  generation: {n}\n")
            (root / "tick.dig").write_text(f"schedule:\n  daily>: {n:02d}:00:00\n")

        write_generation(1)
        reloader = _reloader(reference, source)
        reloader.watch(root)

        stop = threading.Event()
        mismatches: list[str] = []
        reads = [0]

        def read_continuously() -> None:
            last_version = 0
            while not stop.is_set():
                current = reference.get_versioned()
                snapshot = current.snapshot
                if snapshot is None:
                    mismatches.append("no active snapshot")
                    continue
                wf = snapshot.workflow("tick")
                expected = f"{snapshot.params['generation']:02d}:00:00"
                if wf is None or wf.schedule is None or wf.schedule.expression != expected:
                    mismatches.append(snapshot.revision)
                if current.version < last_version:
                    mismatches.append(f"version went back to {current.version}")
                last_version = current.version
                reads[0] += 1

        readers = [threading.Thread(target=read_continuously) for _ in range(4)]
        for thread in readers:
            thread.start()
        try:
            for n in range(2, 12):
                write_generation(n)
                assert await reloader.reload_now() is True
        finally:
            stop.set()
            for thread in readers:
                thread.join(timeout=5)

        assert mismatches == []
        assert reads[0] > 0
        assert reference.version == 11


class TestIsIgnored:
    def test_dot_paths_and_outside_root(self, tmp_path: Path):
        assert is_ignored(tmp_path, str(tmp_path / ".revkit" / "tmp" / "x"))
        assert is_ignored(tmp_path, str(tmp_path / ".swp"))
        assert is_ignored(tmp_path, "/elsewhere/file")
        assert not is_ignored(tmp_path, str(tmp_path / "wf.dig"))
