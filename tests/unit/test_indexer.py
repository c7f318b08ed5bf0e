"""Unit tests for retrieval.indexer module."""

import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from omnirag.errors import PersistenceFailure
from omnirag.retrieval.chunker import chunk_text
from omnirag.retrieval.indexer import BatchIndexer, discover_files, file_identity


@pytest.fixture
def indexer(extractor, store):
    return BatchIndexer(extractor, store, min_length=10, workers=2)


@pytest.mark.unit
class TestDiscoverFiles:
    """Tests for discover_files function."""

    def test_recursive_skips_hidden_and_unsupported(self, docs_dir):
        names = [p.name for p in discover_files(docs_dir)]

        assert names == ["notes.md", "plan.txt"]

    def test_non_recursive(self, docs_dir):
        assert [p.name for p in discover_files(docs_dir, recursive=False)] == ["notes.md"]


@pytest.mark.unit
class TestBatchIndexer:
    """Tests for BatchIndexer class."""

    def test_index_directory(self, indexer, store, docs_dir):
        report = indexer.index_directory(docs_dir)

        notes_id = file_identity(docs_dir / "notes.md")
        plan_id = file_identity(docs_dir / "sub" / "plan.txt")
        assert report.indexed == {notes_id: 2, plan_id: 2}
        assert report.total_chunks == 4
        assert report.unreadable == {}
        assert [c.text for c in store.lookup_by_identity(notes_id).chunks] == [
            "# Meeting notes",
            "Budget approved for the third quarter",
        ]

    def test_unreadable_file_does_not_stop_batch(self, indexer, store, tmp_path):
        good = tmp_path / "good.txt"
        good.write_text("a perfectly readable line\n", encoding="utf-8")
        bad = tmp_path / "bad.txt"
        bad.write_bytes(b"\xff\xfe\xfa invalid utf-8")

        report = indexer.index_paths([bad, good])

        assert list(report.indexed) == [file_identity(good)]
        assert file_identity(bad) in report.unreadable

    def test_damaged_pdf_does_not_stop_batch(self, indexer, store, tmp_path, corrupt_pdf):
        good = tmp_path / "good.txt"
        good.write_text("a perfectly readable line\n", encoding="utf-8")

        report = indexer.index_paths([corrupt_pdf, good])

        assert report.indexed == {file_identity(good): 1}
        assert file_identity(corrupt_pdf) in report.unreadable
        assert report.failed == {}

    def test_crashed_extraction_is_reported(self, indexer, store, tmp_path):
        good = tmp_path / "good.txt"
        good.write_text("a perfectly readable line\n", encoding="utf-8")
        odd = tmp_path / "odd.txt"
        odd.write_text("another readable line here\n", encoding="utf-8")
        real_chunk_text = chunk_text

        def chunk_or_crash(text, min_length):
            if text.startswith("another"):
                raise RuntimeError("worker crashed")
            return real_chunk_text(text, min_length)

        with patch("omnirag.retrieval.indexer.chunk_text", side_effect=chunk_or_crash):
            report = indexer.index_paths([odd, good])

        assert report.indexed == {file_identity(good): 1}
        assert "worker crashed" in report.failed[file_identity(odd)]
        assert report.unreadable == {}

    def test_unreadable_file_removes_previous_version(self, indexer, store, tmp_path):
        path = tmp_path / "changing.txt"
        path.write_text("first version of the file\n", encoding="utf-8")
        indexer.index_paths([path])
        assert store.lookup_by_identity(file_identity(path)) is not None

        path.write_bytes(b"\xff\xfe not text anymore")
        indexer.index_paths([path])

        assert store.lookup_by_identity(file_identity(path)) is None

    def test_file_without_qualifying_lines(self, indexer, store, tmp_path):
        path = tmp_path / "short.txt"
        path.write_text("tiny\nlines\n", encoding="utf-8")

        report = indexer.index_paths([path])

        assert report.indexed == {}
        assert report.unreadable[file_identity(path)] == "no qualifying lines"
        assert store.count_chunks() == 0

    def test_reindexing_replaces_chunks(self, indexer, store, tmp_path):
        path = tmp_path / "doc.txt"
        path.write_text("line number one here\nline number two here\n", encoding="utf-8")
        indexer.index_paths([path])

        path.write_text("Another qualifying line here\n", encoding="utf-8")
        indexer.index_paths([path])

        chunks = store.lookup_by_identity(file_identity(path)).chunks
        assert [(c.chunk_index, c.text) for c in chunks] == [(0, "Another qualifying line here")]

    def test_image_is_indexed_through_ocr(self, indexer, store, tmp_path):
        image = tmp_path / "receipt.png"
        image.write_bytes(b"\x89PNG")

        report = indexer.index_paths([image])

        assert report.indexed == {file_identity(image): 1}
        assert store.lookup_by_identity(file_identity(image)).chunks[0].text == "Invoice total due"

    def test_persistence_failure_is_reported(self, indexer, store, tmp_path):
        path = tmp_path / "doc.txt"
        path.write_text("a perfectly readable line\n", encoding="utf-8")

        with patch.object(store, "reindex", side_effect=PersistenceFailure("disk full")):
            report = indexer.index_paths([path])

        assert report.failed == {file_identity(path): "disk full"}
        assert report.indexed == {}

    def test_unreadable_file_with_failed_removal_reported_once(self, indexer, store, tmp_path):
        path = tmp_path / "bad.txt"
        path.write_bytes(b"\xff\xfe not text")

        with patch.object(store, "reindex", side_effect=PersistenceFailure("disk full")):
            report = indexer.index_paths([path])

        assert report.failed == {file_identity(path): "disk full"}
        assert report.unreadable == {}

    def test_extraction_parallel_commits_single_threaded(self, extractor, store, tmp_path):
        paths = []
        for i in range(12):
            path = tmp_path / f"doc{i}.txt"
            path.write_text(f"document number {i} has one line\n", encoding="utf-8")
            paths.append(path)
        extract_threads: set[str] = set()
        commit_threads: set[str] = set()
        real_extract = extractor.extract
        real_reindex = store.reindex

        def tracking_extract(path):
            extract_threads.add(threading.current_thread().name)
            return real_extract(path)

        def tracking_reindex(*args, **kwargs):
            commit_threads.add(threading.current_thread().name)
            return real_reindex(*args, **kwargs)

        with patch.object(extractor, "extract", side_effect=tracking_extract), \
                patch.object(store, "reindex", side_effect=tracking_reindex):
            report = BatchIndexer(extractor, store, workers=4).index_paths(paths)

        assert len(report.indexed) == 12
        assert commit_threads == {threading.current_thread().name}
        assert extract_threads and all(name.startswith("extract") for name in extract_threads)

    def test_progress_callback(self, indexer, docs_dir):
        seen = []

        indexer.index_paths(discover_files(docs_dir), on_progress=lambda name, n: seen.append((name, n)))

        assert sorted(seen) == [("notes.md", 2), ("plan.txt", 2)]

    def test_empty_batch(self, indexer):
        report = indexer.index_paths([])
        assert report.indexed == {}
        assert report.total_chunks == 0


@pytest.mark.unit
def test_file_identity_is_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert file_identity(Path("notes.txt")) == str(tmp_path.resolve() / "notes.txt")
