"""Keeps the in-memory index in step with notes edited on disk.

A SyncManager runs loader.sync() either on demand (the sync_notes tool) or
from a daemon thread every ``interval`` seconds. Each run is summarised in
a SyncReport, which the index_status tool exposes.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime

from notesearch.vault import VaultLoader

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Outcome of one sync or reindex run."""

    added: int = 0
    updated: int = 0
    deleted: int = 0
    documents: int = 0  # Index size after the run
    full: bool = False  # True for a full reindex
    duration: float = 0.0  # Seconds
    finished_at: datetime = field(default_factory=datetime.now)
    error: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.deleted)

    def to_dict(self) -> dict:
        return {
            "added": self.added,
            "updated": self.updated,
            "deleted": self.deleted,
            "documents": self.documents,
            "full": self.full,
            "duration": round(self.duration, 3),
            "finished_at": self.finished_at.isoformat(),
            "error": self.error,
        }


class SyncManager:
    """Runs vault syncs on demand and, when enabled, on a background timer.

    On-demand and timed runs share the loader, which serializes them; the
    engine applies each run's changes atomically, so searches never see a
    partial sync. With ``interval=0`` only on-demand runs happen.
    """

    def __init__(self, loader: VaultLoader, interval: int = 0):
        """Initialize the sync manager.

        Args:
            loader: Loader bound to the engine being served.
            interval: Seconds between background syncs, 0 to disable them.
        """
        if interval < 0:
            raise ValueError(f"Sync interval must be >= 0, got {interval}")

        self.loader = loader
        self.interval = interval
        self.runs = 0
        self.last_report: SyncReport | None = None
        self._report_lock = threading.Lock()
        self._wake = threading.Event()
        self._stopping = False
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sync_now(self, full: bool = False) -> SyncReport:
        """Sync on the calling thread and record the report.

        Args:
            full: Rebuild the whole index instead of an incremental sync.

        Errors are logged and recorded in the report rather than raised.
        """
        started = time.monotonic()
        report = SyncReport(full=full)
        try:
            if full:
                report.added = self.loader.reindex()
            else:
                report.added, report.updated, report.deleted = self.loader.sync()
        except Exception as e:
            logger.exception("Error during %s", "reindex" if full else "sync")
            report.error = str(e)

        report.documents = len(self.loader.engine)
        report.duration = time.monotonic() - started
        report.finished_at = datetime.now()

        with self._report_lock:
            self.runs += 1
            self.last_report = report

        if report.changed:
            logger.info(
                "Sync: %d added, %d updated, %d deleted (%d documents)",
                report.added,
                report.updated,
                report.deleted,
                report.documents,
            )
        return report

    def request_sync(self) -> None:
        """Wake the background thread so it syncs without waiting out the interval."""
        self._wake.set()

    def status(self) -> dict:
        with self._report_lock:
            last = self.last_report.to_dict() if self.last_report else None
            runs = self.runs
        return {
            "background": self.running,
            "interval": self.interval,
            "runs": runs,
            "last": last,
        }

    def start(self) -> None:
        """Start background syncing. Does nothing when the interval is 0."""
        if self.interval == 0:
            logger.info("Background sync disabled")
            return
        if self.running:
            logger.warning("Sync thread already running")
            return

        self._stopping = False
        self._wake.clear()
        self._thread = threading.Thread(target=self._run, name="notesearch-sync", daemon=True)
        self._thread.start()
        logger.info("Background sync every %ds", self.interval)

    def stop(self) -> None:
        """Stop background syncing, waiting for a run in progress to finish."""
        if self._thread is None:
            return

        self._stopping = True
        self._wake.set()
        self._thread.join(timeout=self.interval + 1)
        if self._thread.is_alive():
            logger.warning("Sync thread did not stop within %ds", self.interval + 1)
        else:
            logger.info("Background sync stopped")
        self._thread = None

    def _run(self) -> None:
        while True:
            # Either the interval elapsed or request_sync()/stop() woke us
            self._wake.wait(timeout=self.interval)
            self._wake.clear()
            if self._stopping:
                break
            self.sync_now()
