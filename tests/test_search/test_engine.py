"""Tests for the SearchEngine facade."""

import logging
import threading

import pytest

from notesearch.search import SearchEngine
from notesearch.search.filters import FilterSyntaxError
from notesearch.search.models import Document, SearchFilters


@pytest.fixture
def engine() -> SearchEngine:
    engine = SearchEngine()
    engine.add_document(
        Document(
            id="n1",
            title="Rust Ownership",
            content="Rust memory model.\nThe borrow checker enforces the rules.",
            tags=["systems"],
            folder="projects",
        )
    )
    engine.add_document(
        Document(id="n2", title="Go Concurrency", tags=["systems"], folder="projects")
    )
    engine.add_document(
        Document(
            id="n3",
            title="Cooking Pasta",
            content="Boil water, add salt.",
            tags=["food"],
            folder="kitchen",
        )
    )
    return engine


def result_ids(results) -> set[str]:
    return {r.id for r in results}


class TestScenarios:
    def test_tag_filter(self, engine):
        assert result_ids(engine.search("tag:systems")) == {"n1", "n2"}

    def test_exact_phrase(self, engine):
        assert result_ids(engine.search('"borrow checker"')) == {"n1"}

    def test_boolean_or(self, engine):
        assert result_ids(engine.search("Rust OR Go", boolean=True)) == {"n1", "n2"}

    def test_boolean_trailing_not_excludes_n1(self, engine):
        assert "n1" not in result_ids(engine.search("Rust NOT checker", boolean=True))

    def test_filters_only(self, engine):
        assert result_ids(engine.search("tag:food")) == {"n3"}


class TestMutations:
    def test_len_and_contains(self, engine):
        assert len(engine) == 3
        assert "n2" in engine
        assert "missing" not in engine

    def test_update_replaces_content(self, engine):
        engine.update_document(
            Document(id="n1", title="Rust Ownership", content="Lifetimes only.", tags=["systems"])
        )

        assert engine.search('"borrow checker"') == []
        assert engine.index.lookup("borrow") == set()
        assert result_ids(engine.search("lifetimes")) == {"n1"}
        assert len(engine) == 3

    def test_add_existing_id_replaces(self, engine):
        engine.add_document(Document(id="n3", title="Baking Bread", tags=["food"]))
        assert engine.get_document("n3").title == "Baking Bread"
        assert engine.index.lookup("pasta") == set()

    def test_remove(self, engine):
        engine.remove_document("n1")
        engine.remove_document("n1")

        assert engine.get_document("n1") is None
        assert result_ids(engine.search("tag:systems")) == {"n2"}
        assert "n1" not in engine.index

    def test_rebuild(self, engine, caplog):
        with caplog.at_level(logging.INFO):
            count = engine.rebuild([Document(id="only", title="Only note")])

        assert count == 1
        assert [doc.id for doc in engine.documents()] == ["only"]
        assert engine.index.document_ids() == {"only"}
        assert "Search index rebuilt: 1 documents" in caplog.text

    def test_documents_keep_insertion_order(self, engine):
        assert [doc.id for doc in engine.documents()] == ["n1", "n2", "n3"]

    def test_apply_changes(self, engine):
        upserted, removed = engine.apply_changes(
            upserts=[
                Document(id="n2", title="Go Generics", tags=["systems"]),
                Document(id="n4", title="Soup", tags=["food"]),
            ],
            removals=["n3", "missing"],
        )

        assert (upserted, removed) == (2, 1)
        assert engine.get_document("n2").title == "Go Generics"
        assert result_ids(engine.search("tag:food")) == {"n4"}
        assert engine.index.lookup("pasta") == set()

    def test_apply_changes_empty(self, engine):
        assert engine.apply_changes() == (0, 0)
        assert len(engine) == 3


class TestSearch:
    def test_tag_filter_is_case_insensitive(self, engine):
        assert result_ids(engine.search("tag:SYSTEMS")) == {"n1", "n2"}

    def test_folder_narrowing(self, engine):
        results = engine.search("", filters=SearchFilters(folder="projects"))
        assert [r.id for r in results] == ["n1", "n2"]

    def test_unknown_tag_returns_nothing(self, engine):
        assert engine.search("tag:nothing") == []

    def test_fuzzy_uses_engine_threshold(self):
        engine = SearchEngine(fuzzy_threshold=0.95)
        engine.add_document(Document(id="n3", title="Cooking Pasta"))

        assert engine.search("Pastaa", fuzzy=True) == []
        assert result_ids(engine.search("Pastaa", fuzzy=True, fuzzy_threshold=0.8)) == {"n3"}

    def test_strict_filters(self):
        engine = SearchEngine(strict_filters=True)
        engine.add_document(Document(id="n", title="Note"))
        with pytest.raises(FilterSyntaxError):
            engine.search("words:plenty")

    def test_malformed_filters_fail_closed(self, engine):
        assert engine.search("created:someday") == []

    def test_pagination(self, engine):
        assert [r.id for r in engine.search("", limit=2)] == ["n1", "n2"]
        assert [r.id for r in engine.search("", limit=2, offset=2)] == ["n3"]

    def test_smart_search_detects_operators(self, engine):
        assert result_ids(engine.smart_search("Rust OR Go")) == {"n1", "n2"}
        assert engine.smart_search("Rust OR Go")[0].match_type == "boolean"
        assert result_ids(engine.smart_search("pasta")) == {"n3"}


class TestQuickSearch:
    def test_term(self, engine):
        results = engine.quick_search("borrow")
        assert [r.id for r in results] == ["n1"]
        assert results[0].score == 2.0

    def test_all_terms_must_be_indexed(self, engine):
        assert engine.quick_search("borrow pasta") == []

    def test_phrase(self, engine):
        results = engine.quick_search('"borrow checker"')
        assert [r.id for r in results] == ["n1"]
        assert results[0].score == 5.0

    def test_tag_and_folder_parts(self, engine):
        assert [r.id for r in engine.quick_search("tag:systems")] == ["n1", "n2"]
        results = engine.quick_search("folder:projects rust")
        assert [r.id for r in results] == ["n1"]
        # title 10 + one content hit 2 + folder 10
        assert results[0].score == 22.0

    def test_explicit_tag_arguments(self, engine):
        assert [r.id for r in engine.quick_search("water", tags=["food"])] == ["n3"]
        assert engine.quick_search("water", tags=["systems"]) == []

    def test_limit_and_empty_query(self, engine):
        assert len(engine.quick_search("tag:systems", limit=1)) == 1
        assert engine.quick_search("   ") == []


class TestListings:
    def test_all_tags(self, engine):
        assert engine.all_tags() == [("systems", 2), ("food", 1)]

    def test_all_folders(self, engine):
        assert engine.all_folders() == [("projects", 2), ("kitchen", 1)]

    def test_suggestions(self, engine):
        assert engine.suggestions("co") == ["Go Concurrency", "Cooking Pasta"]


class TestConcurrentUpdates:
    """Searches running while another thread rewrites the same notes."""

    NOTE_COUNT = 300

    def make_note(self, i: int, revision: int) -> Document:
        return Document(
            id=f"note-{i}.md",
            title=f"Note {i}",
            content=f"alpha revision {revision}",
            tags=["t"],
            folder="bulk",
        )

    @pytest.fixture
    def bulk_engine(self) -> SearchEngine:
        engine = SearchEngine()
        engine.rebuild(self.make_note(i, 0) for i in range(self.NOTE_COUNT))
        return engine

    def run_with_writer(self, engine: SearchEngine, writer, search_fn, rounds: int = 40):
        """Run search_fn repeatedly while writer loops on another thread."""
        stop = threading.Event()
        errors: list[Exception] = []

        def write_loop():
            revision = 1
            try:
                while not stop.is_set():
                    writer(engine, revision)
                    revision += 1
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=write_loop, daemon=True)
        thread.start()
        try:
            counts = [search_fn() for _ in range(rounds)]
        finally:
            stop.set()
            thread.join(timeout=10)

        assert errors == []
        return counts

    def test_search_during_document_updates(self, bulk_engine):
        def writer(engine, revision):
            for i in range(self.NOTE_COUNT):
                engine.update_document(self.make_note(i, revision))

        counts = self.run_with_writer(
            bulk_engine,
            writer,
            lambda: (len(bulk_engine.search("alpha")), len(bulk_engine.search("tag:t alpha"))),
        )

        assert all(count == (self.NOTE_COUNT, self.NOTE_COUNT) for count in counts)

    def test_quick_search_and_listings_during_updates(self, bulk_engine):
        def writer(engine, revision):
            for i in range(self.NOTE_COUNT):
                engine.update_document(self.make_note(i, revision))

        counts = self.run_with_writer(
            bulk_engine,
            writer,
            lambda: (len(bulk_engine.quick_search("alpha", limit=1000)), bulk_engine.all_tags()),
        )

        assert all(count == (self.NOTE_COUNT, [("t", self.NOTE_COUNT)]) for count in counts)

    def test_batches_are_seen_whole(self, bulk_engine):
        # Each batch swaps every note between two tags
        def writer(engine, revision):
            tag = "even" if revision % 2 else "odd"
            engine.apply_changes(
                upserts=[
                    Document(id=f"note-{i}.md", title=f"Note {i}", content="alpha", tags=[tag])
                    for i in range(self.NOTE_COUNT)
                ]
            )

        counts = self.run_with_writer(
            bulk_engine,
            writer,
            lambda: (len(bulk_engine.search("tag:even")), len(bulk_engine.search("tag:odd"))),
        )

        # A search sees all notes under one tag, never a mix
        for even, odd in counts:
            assert even in (0, self.NOTE_COUNT)
            assert odd in (0, self.NOTE_COUNT)
