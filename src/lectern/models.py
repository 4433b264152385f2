"""Records held in the library snapshot."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Literal, Optional

DocumentStatus = Literal["queued", "active", "paused", "finished", "abandoned"]
Theme = Literal["light", "dark", "night"]

STATUSES: tuple[str, ...] = ("queued", "active", "paused", "finished", "abandoned")
THEMES: tuple[str, ...] = ("light", "dark", "night")
DEFAULT_THEME = "dark"
MAX_RATING = 5


@dataclass
class Document:
    id: str
    title: str
    author: str
    upload_timestamp: int
    total_page_count: int = 0
    current_page: int = 1
    status: str = "queued"
    category_id: Optional[str] = None
    rating: int = 0

    @property
    def progress(self) -> float:
        """Percent read, 0 until the page count is known."""
        if self.total_page_count <= 0:
            return 0.0
        return min(100.0, self.current_page / self.total_page_count * 100)

    @classmethod
    def from_dict(cls, data: Dict) -> "Document":
        status = data.get("status") or "queued"
        if status not in STATUSES:
            raise ValueError(f"Unknown status {status!r}")
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            author=data.get("author") or "",
            upload_timestamp=int(data["upload_timestamp"]),
            total_page_count=int(data.get("total_page_count") or 0),
            current_page=max(1, int(data.get("current_page") or 1)),
            status=status,
            category_id=data.get("category_id"),
            rating=int(data.get("rating") or 0),
        )

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Annotation:
    id: str
    document_id: str
    page_number: int
    body: str
    created_at: int
    quoted_text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "Annotation":
        return cls(
            id=str(data["id"]),
            document_id=str(data["document_id"]),
            page_number=int(data["page_number"]),
            body=data.get("body") or "",
            created_at=int(data["created_at"]),
            quoted_text=data.get("quoted_text") or None,
        )

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Category:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: Dict) -> "Category":
        name = str(data["name"]).strip()
        if not name:
            raise ValueError("Category name is blank")
        return cls(id=str(data["id"]), name=name)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class LibrarySnapshot:
    """Everything the metadata store persists, held in memory by the coordinator."""

    documents: List[Document] = field(default_factory=list)
    annotations: List[Annotation] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    theme: str = DEFAULT_THEME

    def find_document(self, document_id: str) -> Optional[Document]:
        for document in self.documents:
            if document.id == document_id:
                return document
        return None

    def find_category(self, category_id: Optional[str]) -> Optional[Category]:
        if category_id is None:
            return None
        for category in self.categories:
            if category.id == category_id:
                return category
        return None
