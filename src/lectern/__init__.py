"""Personal document library with annotations, search and highlight relocation."""

from lectern.arrange import Group, arrange
from lectern.config import LibraryConfig
from lectern.exceptions import DocumentNotFoundError, LibraryError, ParseError
from lectern.library import (
    AddResult,
    DeleteResult,
    LibraryCoordinator,
    OpenedDocument,
    open_library,
)
from lectern.models import Annotation, Category, Document, LibrarySnapshot
from lectern.relocation import ExpiringMarks, HighlightRelocator, relocate
from lectern.search import DocumentSearchEngine, SearchResult

__all__ = [
    "AddResult",
    "Annotation",
    "Category",
    "DeleteResult",
    "Document",
    "DocumentNotFoundError",
    "DocumentSearchEngine",
    "ExpiringMarks",
    "Group",
    "HighlightRelocator",
    "LibraryConfig",
    "LibraryCoordinator",
    "LibraryError",
    "LibrarySnapshot",
    "OpenedDocument",
    "ParseError",
    "SearchResult",
    "arrange",
    "open_library",
    "relocate",
]
