"""Tests for the VaultLoader."""

import logging
import os
from datetime import datetime
from pathlib import Path

import pytest

from notesearch.search import SearchEngine
from notesearch.vault import VaultLoader, walk_vault

RUST_NOTE = """---
title: Rust Ownership
tags: [systems]
created: 2024-03-10
---
The borrow checker enforces the rules.
"""


def bump_mtime(path: Path, seconds: float = 10.0) -> None:
    stat = path.stat()
    os.utime(path, (stat.st_atime + seconds, stat.st_mtime + seconds))


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    (root / "projects").mkdir(parents=True)
    (root / "projects" / "rust.md").write_text(RUST_NOTE)
    (root / "inbox.md").write_text("# Inbox\nRemember to buy #groceries")
    return root


@pytest.fixture
def engine() -> SearchEngine:
    return SearchEngine()


@pytest.fixture
def loader(vault: Path, engine: SearchEngine) -> VaultLoader:
    loader = VaultLoader(vault, engine)
    loader.reindex()
    return loader


class TestVaultLoaderReindex:
    def test_reindex_counts_documents(self, vault: Path, engine: SearchEngine):
        assert VaultLoader(vault, engine).reindex() == 2
        assert len(engine) == 2

    def test_documents_use_relative_path_as_id(self, loader: VaultLoader, engine: SearchEngine):
        doc = engine.get_document("projects/rust.md")

        assert doc is not None
        assert doc.title == "Rust Ownership"
        assert doc.tags == ["systems"]
        assert doc.folder == "projects"
        assert doc.path == "projects/rust.md"
        assert doc.created_at == "2024-03-10"
        assert doc.content.startswith("The borrow checker")

    def test_modified_falls_back_to_mtime(self, loader: VaultLoader, engine: SearchEngine):
        doc = engine.get_document("inbox.md")

        assert doc.folder is None
        assert doc.created_at is None
        assert isinstance(doc.modified_at, datetime)
        assert doc.tags == ["groceries"]

    def test_notes_are_searchable(self, loader: VaultLoader, engine: SearchEngine):
        assert [r.id for r in engine.search('"borrow checker"')] == ["projects/rust.md"]
        assert [r.id for r in engine.search("tag:groceries")] == ["inbox.md"]

    def test_reindex_drops_removed_notes(self, vault: Path, loader: VaultLoader, engine):
        (vault / "inbox.md").unlink()
        assert loader.reindex() == 1
        assert engine.get_document("inbox.md") is None

    def test_invalid_utf8_is_skipped(self, vault: Path, engine: SearchEngine, caplog):
        (vault / "broken.md").write_bytes(b"\xff\xfe\xfa")
        with caplog.at_level(logging.WARNING):
            assert VaultLoader(vault, engine).reindex() == 2
        assert "invalid UTF-8" in caplog.text

    def test_symlink_outside_vault_is_skipped(self, tmp_path: Path, vault: Path, engine, caplog):
        outside = tmp_path / "secret.md"
        outside.write_text("# Secret")
        (vault / "link.md").symlink_to(outside)

        with caplog.at_level(logging.WARNING):
            assert VaultLoader(vault, engine).reindex() == 2
        assert engine.get_document("link.md") is None
        assert "Skipping file outside vault" in caplog.text


class TestVaultLoaderSync:
    def test_sync_detects_no_changes(self, loader: VaultLoader):
        assert loader.sync() == (0, 0, 0)

    def test_sync_detects_new_file(self, vault: Path, loader: VaultLoader, engine):
        (vault / "projects" / "go.md").write_text("# Go Concurrency\nChannels")

        assert loader.sync() == (1, 0, 0)
        assert engine.get_document("projects/go.md").title == "Go Concurrency"

    def test_sync_detects_modified_file(self, vault: Path, loader: VaultLoader, engine):
        path = vault / "projects" / "rust.md"
        path.write_text(RUST_NOTE.replace("borrow checker", "lifetime system"))
        bump_mtime(path)

        assert loader.sync() == (0, 1, 0)
        assert engine.search('"borrow checker"') == []
        assert engine.index.lookup("borrow") == set()

    def test_sync_ignores_touch_without_change(self, vault: Path, loader: VaultLoader):
        bump_mtime(vault / "inbox.md")
        assert loader.sync() == (0, 0, 0)
        # The new mtime is remembered
        assert loader.sync() == (0, 0, 0)

    def test_sync_detects_deleted_file(self, vault: Path, loader: VaultLoader, engine):
        (vault / "inbox.md").unlink()

        assert loader.sync() == (0, 0, 1)
        assert engine.get_document("inbox.md") is None
        assert engine.search("tag:groceries") == []

    def test_sync_applies_changes_in_one_batch(self, vault: Path, loader, engine, monkeypatch):
        batches = []
        apply_changes = engine.apply_changes

        def record(upserts, removals):
            upserts, removals = list(upserts), list(removals)
            batches.append(([doc.id for doc in upserts], removals))
            return apply_changes(upserts, removals)

        monkeypatch.setattr(engine, "apply_changes", record)
        (vault / "projects" / "go.md").write_text("# Go Concurrency\nChannels")
        path = vault / "projects" / "rust.md"
        path.write_text(RUST_NOTE.replace("borrow checker", "lifetime system"))
        bump_mtime(path)
        (vault / "inbox.md").unlink()

        assert loader.sync() == (1, 1, 1)
        assert len(batches) == 1
        upserted, removed = batches[0]
        assert sorted(upserted) == ["projects/go.md", "projects/rust.md"]
        assert removed == ["inbox.md"]

    def test_unreadable_update_is_retried(self, vault: Path, loader: VaultLoader, engine):
        path = vault / "inbox.md"
        path.write_bytes(b"# Inbox\n\xff\xfe broken")
        bump_mtime(path)

        assert loader.sync() == (0, 0, 0)
        # The old version stays searchable until the file is readable again
        assert engine.get_document("inbox.md").title == "Inbox"

        path.write_text("# Inbox\nFixed #errands")
        bump_mtime(path, 20.0)
        assert loader.sync() == (0, 1, 0)
        assert [r.id for r in engine.search("tag:errands")] == ["inbox.md"]


class TestVaultLoaderSingleFile:
    def test_load_file(self, vault: Path, engine: SearchEngine):
        loader = VaultLoader(vault, engine)
        file_info = next(f for f in walk_vault(vault) if f.relative_path == "inbox.md")

        assert loader.load_file(file_info) is True
        assert [doc.id for doc in engine.documents()] == ["inbox.md"]

    def test_forget(self, loader: VaultLoader, engine: SearchEngine):
        loader.forget("inbox.md")
        loader.forget("inbox.md")

        assert engine.get_document("inbox.md") is None
        # A forgotten note that still exists on disk comes back on sync
        assert loader.sync() == (1, 0, 0)
