"""Tests for the vault file walker."""

from pathlib import Path

import pytest

from notesearch.vault.walker import FileInfo, compute_hash, walk_vault


class TestComputeHash:
    def test_computes_sha256(self):
        result = compute_hash(b"hello world")
        assert result == "b94d27b9934d3e08a52e52d7da7dabfac484efe37a5380ee9088f7ace2efcde9"

    def test_different_content_different_hash(self):
        assert compute_hash(b"foo") != compute_hash(b"bar")


class TestWalkVault:
    @pytest.fixture
    def vault(self, tmp_path: Path) -> Path:
        (tmp_path / "projects" / "archive").mkdir(parents=True)
        (tmp_path / ".notesearch").mkdir()

        (tmp_path / "inbox.md").write_text("# Inbox")
        (tmp_path / "projects" / "rust.md").write_text("# Rust")
        (tmp_path / "projects" / "archive" / "old.markdown").write_text("# Old")
        (tmp_path / "projects" / ".draft.md").write_text("# Draft")
        (tmp_path / ".notesearch" / "cache.md").write_text("# Cache")
        (tmp_path / "notes.txt").write_text("not markdown")
        return tmp_path

    def test_discovers_markdown_notes(self, vault: Path):
        files = list(walk_vault(vault))
        assert [f.relative_path for f in files] == [
            "inbox.md",
            "projects/archive/old.markdown",
            "projects/rust.md",
        ]

    def test_folders(self, vault: Path):
        folders = {f.relative_path: f.folder for f in walk_vault(vault)}
        assert folders == {
            "inbox.md": "",
            "projects/archive/old.markdown": "projects/archive",
            "projects/rust.md": "projects",
        }

    def test_file_info_has_required_fields(self, vault: Path):
        f = next(iter(walk_vault(vault)))

        assert isinstance(f, FileInfo)
        assert f.path.exists()
        assert f.filename == "inbox.md"
        assert f.mtime > 0
        assert f.content_hash == compute_hash(b"# Inbox")

    def test_missing_root(self, tmp_path: Path):
        assert list(walk_vault(tmp_path / "missing")) == []
