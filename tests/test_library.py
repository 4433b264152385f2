"""Tests for the library coordinator."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from lectern.exceptions import DocumentNotFoundError
from lectern.library import LibraryCoordinator
from lectern.models import LibrarySnapshot
from lectern.storage import (
    ANNOTATIONS_KEY,
    DOCUMENTS_KEY,
    BlobNotFoundError,
    DatabaseError,
    MemoryBlobStore,
    MemoryKeyValueStore,
    MetadataStore,
    SqliteBlobStore,
    SqliteKeyValueStore,
)


class FlakyBlobStore(MemoryBlobStore):
    """Fails deletes for chosen ids."""

    def __init__(self, fail_ids=()) -> None:
        super().__init__()
        self.fail_ids = set(fail_ids)

    def delete(self, document_id: str) -> bool:
        if document_id in self.fail_ids:
            raise DatabaseError(f"disk error deleting {document_id}")
        return super().delete(document_id)


class BrokenKeyValueStore(MemoryKeyValueStore):
    """Reads fine, refuses every write."""

    def set_many(self, values) -> None:
        raise DatabaseError("database is locked")


def seeded(library: LibraryCoordinator, *titles: str) -> list:
    documents = []
    for title in titles:
        documents.append(library._store_document(title, f"%PDF {title}".encode()))
    library._persist()
    return documents


class TestAddDocuments:
    def test_adds_with_defaults(self, library: LibraryCoordinator, make_pdf):
        result = library.add_documents([make_pdf("Dune.pdf"), make_pdf("Emma.pdf")])

        assert result.count == 2
        assert [d.title for d in library.documents] == ["Dune", "Emma"]
        for document in library.documents:
            assert document.status == "queued"
            assert document.rating == 0
            assert document.current_page == 1
            assert document.total_page_count == 0
            assert document.author == "Unknown"
            assert library.blobs.exists(document.id)

    def test_skips_non_documents(self, library: LibraryCoordinator, make_pdf, tmp_path: Path):
        notes = tmp_path / "notes.txt"
        notes.write_text("not a pdf")
        result = library.add_documents([notes, make_pdf("Dune.pdf")])
        assert result.count == 1
        assert result.failures == {}

    def test_missing_and_directory_paths_are_skipped(self, library: LibraryCoordinator, make_pdf, tmp_path: Path):
        folder = tmp_path / "folder.pdf"
        folder.mkdir()
        missing = tmp_path / "missing.pdf"
        result = library.add_documents([missing, folder, make_pdf("Dune.pdf")])
        assert result.count == 1
        assert result.failures == {}
        assert [d.title for d in library.documents] == ["Dune"]

    def test_blob_failure_adds_no_record(self, memory_library: LibraryCoordinator, make_pdf, notices):
        class FailingPut(MemoryBlobStore):
            def put(self, document_id, data):
                raise DatabaseError("disk full")

        memory_library.blobs = FailingPut()
        path = make_pdf("Dune.pdf")
        result = memory_library.add_documents([path])
        assert result.count == 0
        assert str(path) in result.failures
        assert memory_library.documents == []
        assert ("error", "Failed to add 1 file(s).") in notices

    def test_persisted_immediately(self, library: LibraryCoordinator, make_pdf, tmp_path: Path):
        library.add_documents([make_pdf("Dune.pdf")])
        reloaded = MetadataStore(SqliteKeyValueStore(tmp_path / "library.db")).load()
        assert [d.title for d in reloaded.documents] == ["Dune"]


class TestDeleteDocument:
    def test_cascade_removes_annotations_and_blob(self, library: LibraryCoordinator):
        dune, emma = seeded(library, "Dune", "Emma")
        library.add_annotation(dune.id, 1, "first")
        library.add_annotation(dune.id, 2, "second")
        keep = library.add_annotation(emma.id, 1, "other")

        result = library.delete_document(dune.id)

        assert result.titles == ["Dune"]
        assert library.get_document(dune.id) is None
        assert not library.blobs.exists(dune.id)
        assert [a.id for a in library.annotations] == [keep.id]

    def test_unknown_id_raises(self, library: LibraryCoordinator):
        with pytest.raises(DocumentNotFoundError):
            library.delete_document("nope")

    def test_blob_failure_keeps_record(self, memory_library: LibraryCoordinator):
        (dune,) = seeded(memory_library, "Dune")
        memory_library.add_annotation(dune.id, 1, "note")
        memory_library.blobs = FlakyBlobStore({dune.id})

        with pytest.raises(DatabaseError):
            memory_library.delete_document(dune.id)
        assert memory_library.get_document(dune.id) is not None
        assert len(memory_library.annotations_for(dune.id)) == 1

    def test_deleting_open_document_signals_close(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        library.open_document(dune.id)
        result = library.delete_document(dune.id)
        assert result.closed_open_document is True
        assert library.current_document_id is None

    def test_missing_blob_still_removes_record(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        library.blobs.delete(dune.id)
        library.delete_document(dune.id)
        assert library.documents == []


class TestBatchDelete:
    def test_empty_is_noop(self, library: LibraryCoordinator, notices):
        seeded(library, "Dune")
        result = library.batch_delete(set())
        assert result.count == 0
        assert len(library.documents) == 1

    def test_partial_failure_does_not_block_others(self, memory_library: LibraryCoordinator, notices):
        dune, emma, ulysses = seeded(memory_library, "Dune", "Emma", "Ulysses")
        for document in (dune, emma, ulysses):
            memory_library.add_annotation(document.id, 1, "note")
        flaky = FlakyBlobStore({emma.id})
        flaky.blobs = dict(memory_library.blobs.blobs)
        memory_library.blobs = flaky

        result = memory_library.batch_delete({dune.id, emma.id, ulysses.id, "ghost"})

        assert result.titles == ["Dune", "Ulysses"]
        assert set(result.failures) == {emma.id, "ghost"}
        assert [d.id for d in memory_library.documents] == [emma.id]
        assert {a.document_id for a in memory_library.annotations} == {emma.id}
        assert ("success", "Deleted Dune, Ulysses.") in notices

    def test_closes_open_document(self, library: LibraryCoordinator):
        dune, emma = seeded(library, "Dune", "Emma")
        library.open_document(emma.id)
        result = library.batch_delete([dune.id, emma.id])
        assert result.closed_open_document is True
        assert library.documents == []

    def test_summary_notice_truncates(self, library: LibraryCoordinator, notices):
        documents = seeded(library, "A", "B", "C", "D")
        library.batch_delete(d.id for d in documents)
        assert ("success", "Deleted A, B and 2 others.") in notices


class TestUpdateDocument:
    def test_merges_fields(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        updated = library.update_document(dune.id, rating=4, status="paused", author="Herbert")
        assert updated.rating == 4
        assert updated.status == "paused"
        assert updated.author == "Herbert"
        assert updated.title == "Dune"
        assert library.get_document(dune.id) == updated

    def test_unknown_id_is_noop(self, library: LibraryCoordinator, notices):
        assert library.update_document("nope", rating=3) is None
        assert library.update_document("nope", rating=9) is None
        assert library.update_document("nope", shelf="top") is None
        assert notices == []

    @pytest.mark.parametrize(
        "fields",
        [
            {"rating": 6},
            {"status": "reading"},
            {"current_page": 0},
            {"title": "  "},
            {"category_id": "missing"},
            {"id": "other"},
        ],
    )
    def test_rejects_invalid_values(self, library: LibraryCoordinator, fields):
        (dune,) = seeded(library, "Dune")
        with pytest.raises(ValueError):
            library.update_document(dune.id, **fields)

    def test_any_status_to_any(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        for status in ("finished", "queued", "abandoned", "active"):
            assert library.update_document(dune.id, status=status).status == status


class TestOpenAndClose:
    def test_open_transitions_queued_to_active(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        opened = library.open_document(dune.id)
        assert opened.document.status == "active"
        assert opened.page == 1
        assert opened.payload == b"%PDF Dune"
        assert library.current_document_id == dune.id

    def test_open_keeps_other_status(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        library.update_document(dune.id, status="paused", current_page=12)
        opened = library.open_document(dune.id)
        assert opened.document.status == "paused"
        assert opened.page == 12

    def test_open_at_target_page_with_highlight(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        opened = library.open_document(dune.id, target_page=7, highlight="spice")
        assert opened.page == 7
        assert opened.highlight == "spice"

    def test_read_does_not_transition(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        assert library.read_document(dune.id) == b"%PDF Dune"
        assert library.get_document(dune.id).status == "queued"
        assert library.current_document_id is None

    def test_open_unknown_raises(self, library: LibraryCoordinator):
        with pytest.raises(DocumentNotFoundError):
            library.open_document("nope")

    def test_open_without_blob_raises(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        library.blobs.delete(dune.id)
        with pytest.raises(BlobNotFoundError):
            library.open_document(dune.id)
        assert library.get_document(dune.id).status == "queued"

    def test_close_writes_progress(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        library.open_document(dune.id)
        closed = library.close_document(current_page=42, page_count=300)
        assert closed.current_page == 42
        assert closed.total_page_count == 300
        assert library.current_document_id is None

    def test_close_keeps_page_count_when_unknown(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        library.update_document(dune.id, total_page_count=120)
        library.open_document(dune.id)
        assert library.close_document(current_page=5).total_page_count == 120

    def test_close_without_open_document(self, library: LibraryCoordinator):
        assert library.close_document(3, 10) is None

    def test_record_page_count_only_backfills(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        assert library.record_page_count(dune.id, 80).total_page_count == 80
        assert library.record_page_count(dune.id, 99).total_page_count == 80


class TestCategories:
    def test_add_rejects_blank(self, library: LibraryCoordinator):
        assert library.add_category("   ") is None
        assert library.categories == []

    def test_add_trims(self, library: LibraryCoordinator):
        assert library.add_category("  Poetry ").name == "Poetry"

    def test_delete_clears_references(self, library: LibraryCoordinator):
        dune, emma, ulysses = seeded(library, "Dune", "Emma", "Ulysses")
        scifi = library.add_category("Sci-Fi")
        classics = library.add_category("Classics")
        library.update_document(dune.id, category_id=scifi.id, rating=5)
        library.update_document(emma.id, category_id=scifi.id)
        library.update_document(ulysses.id, category_id=classics.id)
        before = {d.id: d for d in library.documents}

        assert library.delete_category(scifi.id) is True

        for document in library.documents:
            previous = before[document.id]
            if previous.category_id == scifi.id:
                assert document.category_id is None
                assert document == replace(previous, category_id=None)
            else:
                assert document == previous
        assert [c.name for c in library.categories] == ["Classics"]

    def test_delete_unknown(self, library: LibraryCoordinator):
        assert library.delete_category("nope") is False


class TestAnnotations:
    def test_requires_body_or_quote(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        assert library.add_annotation(dune.id, 1, "") is None
        assert library.add_annotation(dune.id, 1, "", quoted_text="") is None
        assert library.add_annotation(dune.id, 1, "", quoted_text="spice").quoted_text == "spice"

    def test_most_recent_first(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        first = library.add_annotation(dune.id, 5, "first")
        second = library.add_annotation(dune.id, 2, "second")
        assert [a.id for a in library.annotations_for(dune.id)] == [second.id, first.id]

    def test_page_beyond_page_count_allowed(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        library.update_document(dune.id, total_page_count=10)
        assert library.add_annotation(dune.id, 25, "appendix") is not None

    def test_unknown_document_is_noop(self, library: LibraryCoordinator):
        assert library.add_annotation("nope", 1, "text") is None

    def test_delete(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        annotation = library.add_annotation(dune.id, 1, "text")
        assert library.delete_annotation(annotation.id) is True
        assert library.delete_annotation(annotation.id) is False

    def test_export_order_by_page(self, library: LibraryCoordinator):
        (dune,) = seeded(library, "Dune")
        for page in (9, 2, 5, 2):
            library.add_annotation(dune.id, page, f"p{page}")
        pages = [a.page_number for a in library.annotations_for_export(dune.id)]
        assert pages == [2, 2, 5, 9]

    def test_export_empty_notices(self, library: LibraryCoordinator, notices):
        (dune,) = seeded(library, "Dune")
        assert library.annotations_for_export(dune.id) == []
        assert ("info", "There are no annotations to export.") in notices

    def test_documents_with_annotations(self, library: LibraryCoordinator):
        dune, emma = seeded(library, "Dune", "Emma")
        library.add_annotation(emma.id, 1, "a")
        library.add_annotation(emma.id, 2, "b")
        assert library.documents_with_annotations() == [(library.get_document(emma.id), 2)]


class TestPersistence:
    def test_hydration_drops_orphaned_annotations(self):
        store = MemoryKeyValueStore(
            {
                DOCUMENTS_KEY: json.dumps([{"id": "bad", "title": "No timestamp"}]),
                ANNOTATIONS_KEY: json.dumps(
                    [{"id": "a1", "document_id": "bad", "page_number": 1, "body": "x", "created_at": 1}]
                ),
            }
        )
        library = LibraryCoordinator(MetadataStore(store), MemoryBlobStore())
        assert library.documents == []
        assert library.annotations == []

    def test_state_survives_restart(self, tmp_path: Path, make_pdf):
        library = LibraryCoordinator(
            MetadataStore(SqliteKeyValueStore(tmp_path / "library.db")),
            SqliteBlobStore(tmp_path / "blobs.db"),
        )
        library.add_documents([make_pdf("Dune.pdf")])
        dune = library.documents[0]
        library.add_annotation(dune.id, 3, "note")
        library.add_category("Sci-Fi")
        library.set_theme("light")
        library.close()

        reopened = LibraryCoordinator(
            MetadataStore(SqliteKeyValueStore(tmp_path / "library.db")),
            SqliteBlobStore(tmp_path / "blobs.db"),
        )
        assert [d.title for d in reopened.documents] == ["Dune"]
        assert len(reopened.annotations) == 1
        assert [c.name for c in reopened.categories] == ["Sci-Fi"]
        assert reopened.theme == "light"
        assert reopened.read_document(dune.id).startswith(b"%PDF")
        reopened.close()

    def test_write_failure_keeps_memory_state(self, notices):
        library = LibraryCoordinator(
            MetadataStore(BrokenKeyValueStore()),
            MemoryBlobStore(),
            notify=lambda message, level: notices.append((level, message)),
        )
        category = library.add_category("Sci-Fi")
        assert library.categories == [category]
        assert ("error", "Could not save the library; changes may be lost.") in notices

    def test_injected_snapshot_is_used(self):
        snapshot = LibrarySnapshot(theme="night")
        library = LibraryCoordinator(
            MetadataStore(MemoryKeyValueStore()), MemoryBlobStore(), snapshot=snapshot
        )
        assert library.snapshot is snapshot

    def test_invalid_theme(self, memory_library: LibraryCoordinator):
        with pytest.raises(ValueError):
            memory_library.set_theme("sepia")


class TestScenarios:
    def test_upload_open_annotate_close_delete(self, library: LibraryCoordinator, make_pdf):
        library.add_documents(
            [make_pdf("First.pdf", ["one", "two", "three"]), make_pdf("Second.pdf")]
        )
        assert len(library.documents) == 2
        assert all(d.status == "queued" and d.rating == 0 for d in library.documents)

        first = library.documents[0]
        opened = library.open_document(first.id)
        assert opened.document.status == "active"
        assert opened.page == 1

        annotation = library.add_annotation(first.id, 3, "", quoted_text="hello world")
        assert annotation.page_number == 3

        closed = library.close_document(current_page=3, page_count=3)
        assert (closed.current_page, closed.total_page_count) == (3, 3)

        library.delete_document(first.id)
        assert library.annotations_for(first.id) == []
        assert len(library.documents) == 1

    def test_category_deleted_document_survives(self, library: LibraryCoordinator):
        (doc_a,) = seeded(library, "A")
        category = library.add_category("Sci-Fi")
        library.update_document(doc_a.id, category_id=category.id)
        library.delete_category(category.id)
        assert library.get_document(doc_a.id).category_id is None
