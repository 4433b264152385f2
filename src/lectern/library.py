"""Library coordinator: CRUD over the snapshot with cross-entity invariants."""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from lectern.exceptions import DocumentNotFoundError
from lectern.models import (
    MAX_RATING,
    STATUSES,
    THEMES,
    Annotation,
    Category,
    Document,
    LibrarySnapshot,
)
from lectern.storage import (
    BlobNotFoundError,
    BlobStore,
    MetadataStore,
    SqliteBlobStore,
    SqliteKeyValueStore,
    StorageError,
    now_ms,
)

LOGGER = logging.getLogger(__name__)

DOCUMENT_MIME_TYPE = "application/pdf"
DEFAULT_AUTHOR = "Unknown"
EDITABLE_FIELDS = frozenset(
    {
        "title",
        "author",
        "total_page_count",
        "current_page",
        "status",
        "category_id",
        "rating",
    }
)

Notifier = Callable[[str, str], None]


def log_notice(message: str, level: str = "info") -> None:
    """Default notice sink: route user-facing notices to the log."""
    LOGGER.log(logging.ERROR if level == "error" else logging.INFO, message)


@dataclass
class AddResult:
    documents: List[Document] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.documents)


@dataclass
class DeleteResult:
    """Outcome of a single or batch delete. Failures map id to reason."""

    titles: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    closed_open_document: bool = False

    @property
    def count(self) -> int:
        return len(self.titles)


@dataclass
class OpenedDocument:
    document: Document
    payload: bytes
    page: int
    highlight: Optional[str] = None


class LibraryCoordinator:
    """
    Owns the in-memory library snapshot.

    Every mutation is applied to the snapshot first and then written through
    to the metadata store. Payloads live in the blob store and are written
    before a record appears and removed before a record disappears.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        *,
        snapshot: Optional[LibrarySnapshot] = None,
        notify: Optional[Notifier] = None,
    ) -> None:
        self.metadata = metadata
        self.blobs = blobs
        self.notify = notify or log_notice
        self.snapshot = snapshot if snapshot is not None else self._hydrate()
        self.current_document_id: Optional[str] = None

    def _hydrate(self) -> LibrarySnapshot:
        try:
            return self.metadata.load()
        except StorageError as e:
            LOGGER.error("Could not load library, starting empty: %s", e)
            self.notify("Could not load the saved library.", "error")
            return LibrarySnapshot()

    def close(self) -> None:
        self.metadata.close()
        self.blobs.close()

    # Queries

    @property
    def documents(self) -> List[Document]:
        return list(self.snapshot.documents)

    @property
    def annotations(self) -> List[Annotation]:
        return list(self.snapshot.annotations)

    @property
    def categories(self) -> List[Category]:
        return list(self.snapshot.categories)

    @property
    def theme(self) -> str:
        return self.snapshot.theme

    def get_document(self, document_id: str) -> Optional[Document]:
        return self.snapshot.find_document(document_id)

    def annotations_for(self, document_id: str) -> List[Annotation]:
        """Annotations of one document, most recent first."""
        return [a for a in self.snapshot.annotations if a.document_id == document_id]

    def annotations_for_export(self, document_id: str) -> List[Annotation]:
        """Annotations of one document by ascending page; notices when empty."""
        annotations = sorted(self.annotations_for(document_id), key=lambda a: a.page_number)
        if not annotations:
            self.notify("There are no annotations to export.", "info")
        return annotations

    def documents_with_annotations(self) -> List[Tuple[Document, int]]:
        counts: Dict[str, int] = {}
        for annotation in self.snapshot.annotations:
            counts[annotation.document_id] = counts.get(annotation.document_id, 0) + 1
        return [(d, counts[d.id]) for d in self.snapshot.documents if d.id in counts]

    # Documents

    def add_documents(self, paths: Iterable[Path | str]) -> AddResult:
        """
        Import PDF files. Other files are skipped silently.

        Each payload is stored before its record is added; a failing file is
        recorded in the result and the rest of the batch continues.
        """
        result = AddResult()
        for path in map(Path, paths):
            if not is_document_file(path):
                LOGGER.debug("Skipping non-document %s", path)
                continue
            try:
                data = path.read_bytes()
                document = self._store_document(path.stem, data)
            except (OSError, StorageError) as e:
                LOGGER.error("Failed to add %s: %s", path, e)
                result.failures[str(path)] = str(e)
                continue
            result.documents.append(document)

        if result.documents:
            self._persist()
        if result.failures:
            self.notify(f"Failed to add {len(result.failures)} file(s).", "error")
        if result.documents:
            self.notify(f"{result.count} document(s) added to the library.", "success")
        return result

    def _store_document(self, title: str, data: bytes) -> Document:
        document = Document(
            id=uuid.uuid4().hex,
            title=title,
            author=DEFAULT_AUTHOR,
            upload_timestamp=now_ms(),
        )
        self.blobs.put(document.id, data)
        self.snapshot.documents.append(document)
        LOGGER.info("Added %s (%s, %d bytes)", document.title, document.id, len(data))
        return document

    def delete_document(self, document_id: str) -> DeleteResult:
        """
        Delete a document, its payload and its annotations.

        Raises: DocumentNotFoundError if the id is unknown; StorageError if the
        payload could not be removed, in which case nothing else changes.
        """
        document = self.snapshot.find_document(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)

        self._remove_payload(document)
        self._drop_documents({document_id})
        result = DeleteResult(
            titles=[document.title],
            closed_open_document=self._forget_open({document_id}),
        )
        self._persist()
        self.notify(f'Deleted "{document.title}".', "success")
        return result

    def batch_delete(self, document_ids: Iterable[str]) -> DeleteResult:
        """
        Delete several documents.

        A failure on one id is recorded and logged without blocking the rest.
        """
        wanted = set(document_ids)
        result = DeleteResult()
        if not wanted:
            return result

        removed = set()
        for document in self.snapshot.documents:
            if document.id not in wanted:
                continue
            try:
                self._remove_payload(document)
            except StorageError as e:
                LOGGER.error("Batch delete of %s failed: %s", document.id, e)
                result.failures[document.id] = str(e)
                continue
            removed.add(document.id)
            result.titles.append(document.title)

        for missing in sorted(wanted - removed - set(result.failures)):
            LOGGER.warning("Batch delete skipped unknown document %s", missing)
            result.failures[missing] = str(DocumentNotFoundError(missing))

        if removed:
            self._drop_documents(removed)
            result.closed_open_document = self._forget_open(removed)
            self._persist()
            self.notify(f"Deleted {_summarize_titles(result.titles)}.", "success")
        if result.failures:
            self.notify(f"Could not delete {len(result.failures)} document(s).", "error")
        return result

    def _remove_payload(self, document: Document) -> None:
        if not self.blobs.delete(document.id):
            LOGGER.warning("Payload for %s was already missing", document.id)

    def _drop_documents(self, document_ids: set) -> None:
        self.snapshot.documents = [
            d for d in self.snapshot.documents if d.id not in document_ids
        ]
        self.snapshot.annotations = [
            a for a in self.snapshot.annotations if a.document_id not in document_ids
        ]

    def _forget_open(self, document_ids: set) -> bool:
        if self.current_document_id in document_ids:
            self.current_document_id = None
            return True
        return False

    def update_document(self, document_id: str, **fields) -> Optional[Document]:
        """
        Merge fields into a document record.

        Returns: The updated document, or None if the id is unknown.
        Raises: ValueError for unknown fields or out-of-range values.
        """
        for index, document in enumerate(self.snapshot.documents):
            if document.id == document_id:
                break
        else:
            LOGGER.debug("Update ignored for unknown document %s", document_id)
            return None

        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Invalid field(s): {', '.join(sorted(unknown))}")
        self._validate(fields)

        updated = replace(document, **fields)
        self.snapshot.documents[index] = updated
        self._persist()
        return updated

    def _validate(self, fields: Dict) -> None:
        if "status" in fields and fields["status"] not in STATUSES:
            raise ValueError(f"Invalid status: {fields['status']}")
        if "rating" in fields and not 0 <= int(fields["rating"]) <= MAX_RATING:
            raise ValueError(f"Rating must be between 0 and {MAX_RATING}")
        if "current_page" in fields and int(fields["current_page"]) < 1:
            raise ValueError("current_page must be at least 1")
        if "total_page_count" in fields and int(fields["total_page_count"]) < 0:
            raise ValueError("total_page_count cannot be negative")
        if "title" in fields and not str(fields["title"]).strip():
            raise ValueError("title cannot be blank")
        category_id = fields.get("category_id")
        if category_id is not None and self.snapshot.find_category(category_id) is None:
            raise ValueError(f"Unknown category: {category_id}")

    def read_document(self, document_id: str) -> bytes:
        """
        Return a document's payload with no state change.

        Raises: DocumentNotFoundError, BlobNotFoundError.
        """
        if self.snapshot.find_document(document_id) is None:
            raise DocumentNotFoundError(document_id)
        payload = self.blobs.get(document_id)
        if payload is None:
            raise BlobNotFoundError(document_id)
        return payload

    def open_document(
        self,
        document_id: str,
        target_page: Optional[int] = None,
        highlight: Optional[str] = None,
    ) -> OpenedDocument:
        """
        Open a document for reading.

        A queued document becomes active. The page is the target page, else
        the saved current page.
        """
        payload = self.read_document(document_id)
        document = self.snapshot.find_document(document_id)
        if document.status == "queued":
            document = self.update_document(document_id, status="active")
            LOGGER.info("Started reading %s", document.title)

        self.current_document_id = document_id
        page = target_page or document.current_page or 1
        return OpenedDocument(document=document, payload=payload, page=page, highlight=highlight)

    def record_page_count(self, document_id: str, page_count: int) -> Optional[Document]:
        """Backfill the page count the first time a document renders."""
        document = self.snapshot.find_document(document_id)
        if document is None or document.total_page_count != 0 or page_count <= 0:
            return document
        return self.update_document(document_id, total_page_count=page_count)

    def close_document(self, current_page: int, page_count: int = 0) -> Optional[Document]:
        """Write reading progress back to the open document and close it."""
        if self.current_document_id is None:
            return None
        fields: Dict[str, int] = {"current_page": max(1, current_page)}
        if page_count > 0:
            fields["total_page_count"] = page_count
        document = self.update_document(self.current_document_id, **fields)
        self.current_document_id = None
        return document

    # Categories

    def add_category(self, name: str) -> Optional[Category]:
        name = name.strip()
        if not name:
            return None
        category = Category(id=uuid.uuid4().hex, name=name)
        self.snapshot.categories.append(category)
        self._persist()
        self.notify("Category created.", "success")
        return category

    def delete_category(self, category_id: str) -> bool:
        """Remove a category and clear it from every document that used it."""
        category = self.snapshot.find_category(category_id)
        if category is None:
            return False

        self.snapshot.categories = [
            c for c in self.snapshot.categories if c.id != category_id
        ]
        self.snapshot.documents = [
            replace(d, category_id=None) if d.category_id == category_id else d
            for d in self.snapshot.documents
        ]
        self._persist()
        self.notify("Category removed.", "success")
        return True

    # Annotations

    def add_annotation(
        self,
        document_id: str,
        page_number: int,
        body: str,
        quoted_text: Optional[str] = None,
    ) -> Optional[Annotation]:
        """Prepend an annotation. No-op if it has neither body nor quote."""
        if not body and not quoted_text:
            return None
        if page_number < 1:
            raise ValueError("page_number must be at least 1")
        if self.snapshot.find_document(document_id) is None:
            LOGGER.debug("Annotation ignored for unknown document %s", document_id)
            return None

        annotation = Annotation(
            id=uuid.uuid4().hex,
            document_id=document_id,
            page_number=page_number,
            body=body or "",
            created_at=now_ms(),
            quoted_text=quoted_text or None,
        )
        self.snapshot.annotations.insert(0, annotation)
        self._persist()
        self.notify("Annotation saved.", "success")
        return annotation

    def delete_annotation(self, annotation_id: str) -> bool:
        before = len(self.snapshot.annotations)
        self.snapshot.annotations = [
            a for a in self.snapshot.annotations if a.id != annotation_id
        ]
        if len(self.snapshot.annotations) == before:
            return False
        self._persist()
        return True

    # Theme

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Invalid theme: {theme}")
        self.snapshot.theme = theme
        self._persist()

    def _persist(self) -> bool:
        try:
            self.metadata.save(self.snapshot)
        except StorageError as e:
            LOGGER.error("Library write failed, changes kept in memory: %s", e)
            self.notify("Could not save the library; changes may be lost.", "error")
            return False
        return True


def is_document_file(path: Path) -> bool:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type == DOCUMENT_MIME_TYPE and path.is_file()


def open_library(
    metadata_path: Path | str,
    blob_path: Path | str,
    *,
    notify: Optional[Notifier] = None,
) -> LibraryCoordinator:
    """Open the SQLite-backed library at the given paths."""
    return LibraryCoordinator(
        MetadataStore(SqliteKeyValueStore(metadata_path)),
        SqliteBlobStore(blob_path),
        notify=notify,
    )


def _summarize_titles(titles: List[str]) -> str:
    shown = ", ".join(titles[:2])
    if len(titles) > 2:
        return f"{shown} and {len(titles) - 2} others"
    return shown
