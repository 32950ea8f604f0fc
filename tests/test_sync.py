"""Tests for vault syncing: on-demand runs, reports and the background timer."""

import logging
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from notesearch.search import SearchEngine
from notesearch.sync import SyncManager, SyncReport
from notesearch.vault import VaultLoader


def wait_for(condition_fn, timeout: float = 5.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition_fn():
            return True
        time.sleep(0.05)
    return False


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    (tmp_path / "first.md").write_text("# First\nalpha")
    return tmp_path


@pytest.fixture
def loader(vault: Path) -> VaultLoader:
    loader = VaultLoader(vault, SearchEngine())
    loader.reindex()
    return loader


def fake_loader(result=(0, 0, 0), documents: int = 0) -> MagicMock:
    loader = MagicMock()
    loader.sync.return_value = result
    loader.engine.__len__.return_value = documents
    return loader


class TestSyncReport:
    def test_changed(self):
        assert not SyncReport().changed
        assert SyncReport(deleted=1).changed

    def test_to_dict(self):
        report = SyncReport(added=2, documents=5, duration=0.12345)
        data = report.to_dict()

        assert data["added"] == 2
        assert data["documents"] == 5
        assert data["duration"] == 0.123
        assert data["full"] is False
        assert data["error"] is None
        assert data["finished_at"] == report.finished_at.isoformat()


class TestSyncNow:
    def test_picks_up_new_note(self, vault: Path, loader: VaultLoader):
        manager = SyncManager(loader)
        (vault / "second.md").write_text("# Second\nbravo")

        report = manager.sync_now()

        assert (report.added, report.updated, report.deleted) == (1, 0, 0)
        assert report.documents == 2
        assert [r.id for r in loader.engine.search("bravo")] == ["second.md"]

    def test_full_reindex(self, vault: Path, loader: VaultLoader):
        manager = SyncManager(loader)
        (vault / "first.md").unlink()

        report = manager.sync_now(full=True)

        assert report.full is True
        assert report.documents == 0
        assert len(loader.engine) == 0

    def test_records_last_report_and_runs(self, loader: VaultLoader):
        manager = SyncManager(loader)
        assert manager.status() == {"background": False, "interval": 0, "runs": 0, "last": None}

        first = manager.sync_now()
        second = manager.sync_now()

        assert manager.runs == 2
        assert manager.last_report is second
        assert first is not second
        assert manager.status()["last"]["documents"] == 1

    def test_error_is_reported_not_raised(self, caplog):
        loader = fake_loader(documents=3)
        loader.sync.side_effect = OSError("vault unmounted")
        manager = SyncManager(loader)

        with caplog.at_level(logging.ERROR):
            report = manager.sync_now()

        assert report.error == "vault unmounted"
        assert report.documents == 3
        assert manager.last_report is report
        assert "Error during sync" in caplog.text

    def test_changes_are_logged(self, caplog):
        manager = SyncManager(fake_loader(result=(1, 2, 3), documents=10))
        with caplog.at_level(logging.INFO):
            manager.sync_now()
        assert "Sync: 1 added, 2 updated, 3 deleted (10 documents)" in caplog.text

    def test_quiet_when_nothing_changed(self, caplog):
        manager = SyncManager(fake_loader())
        with caplog.at_level(logging.INFO):
            manager.sync_now()
        assert "Sync:" not in caplog.text


class TestBackgroundSync:
    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError, match="Sync interval must be >= 0"):
            SyncManager(fake_loader(), -1)

    def test_interval_zero_never_starts_thread(self, caplog):
        manager = SyncManager(fake_loader(), 0)
        with caplog.at_level(logging.INFO):
            manager.start()

        assert manager.running is False
        assert "Background sync disabled" in caplog.text
        manager.stop()

    def test_runs_on_interval(self):
        loader = fake_loader()
        manager = SyncManager(loader, 1)

        manager.start()
        try:
            assert manager.running
            assert wait_for(lambda: manager.runs >= 1), "no sync within timeout"
            assert manager.status()["background"] is True
        finally:
            manager.stop()
        assert manager.running is False

    def test_request_sync_wakes_thread(self):
        loader = fake_loader()
        manager = SyncManager(loader, 3600)

        manager.start()
        try:
            manager.request_sync()
            assert wait_for(lambda: loader.sync.call_count == 1, timeout=3.0)
        finally:
            manager.stop()

    def test_stop_is_prompt_and_final(self):
        loader = fake_loader()
        manager = SyncManager(loader, 3600)

        manager.start()
        started = time.time()
        manager.stop()

        assert time.time() - started < 2
        assert manager.running is False
        assert loader.sync.call_count == 0

    def test_start_twice_keeps_one_thread(self):
        manager = SyncManager(fake_loader(), 3600)
        manager.start()
        try:
            first = manager._thread
            manager.start()
            assert manager._thread is first
        finally:
            manager.stop()

    def test_keeps_running_after_failed_sync(self):
        loader = fake_loader()
        loader.sync.side_effect = [RuntimeError("boom"), (0, 0, 0), (0, 0, 0)]
        manager = SyncManager(loader, 3600)

        manager.start()
        try:
            manager.request_sync()
            assert wait_for(lambda: manager.runs == 1)
            manager.request_sync()
            assert wait_for(lambda: manager.runs == 2)
        finally:
            manager.stop()
        assert manager.last_report.error is None


class TestSearchDuringSync:
    def test_searches_see_whole_syncs(self, vault: Path, loader: VaultLoader):
        """Notes are renamed in bulk while searches count them."""
        for i in range(100):
            (vault / f"bulk-{i}.md").write_text(f"# Bulk {i}\ngamma")
        manager = SyncManager(loader)
        manager.sync_now()

        stop = threading.Event()
        errors: list[Exception] = []

        def churn():
            revision = 0
            try:
                while not stop.is_set():
                    revision += 1
                    for i in range(100):
                        path = vault / f"bulk-{i}.md"
                        path.write_text(f"# Bulk {i}\ngamma revision {revision}")
                    manager.sync_now()
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=churn, daemon=True)
        thread.start()
        try:
            counts = [len(loader.engine.search("gamma")) for _ in range(30)]
        finally:
            stop.set()
            thread.join(timeout=10)

        assert errors == []
        assert all(count == 100 for count in counts)
        assert manager.last_report.error is None
