"""Ordering and bucketing of documents for the library view."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Literal, Sequence

from lectern.models import Category, Document
from lectern.normalize import collation_key

GroupBy = Literal["none", "category", "status", "rating"]
SortBy = Literal["recent", "rating", "progress", "pages", "completed"]

GROUP_MODES: tuple[str, ...] = ("none", "category", "status", "rating")
SORT_MODES: tuple[str, ...] = ("recent", "rating", "progress", "pages", "completed")

ALL_LABEL = "All"
UNCATEGORIZED_LABEL = "Uncategorized"
UNRATED_LABEL = "Unrated"

STATUS_LABELS: Dict[str, str] = {
    "queued": "Up Next",
    "active": "Reading",
    "paused": "Paused",
    "finished": "Finished",
    "abandoned": "Abandoned",
}


@dataclass
class Group:
    """A labeled bucket of documents, in display order."""

    label: str
    documents: List[Document] = field(default_factory=list)


def sort_documents(documents: Iterable[Document], sort_by: str = "recent") -> List[Document]:
    """
    Return a sorted copy of the documents.

    Python's sort is stable, including with reverse=True, so ties keep their
    incoming relative order.
    """
    items = list(documents)
    if sort_by == "recent":
        return sorted(items, key=lambda d: d.upload_timestamp, reverse=True)
    if sort_by == "rating":
        return sorted(items, key=lambda d: d.rating or 0, reverse=True)
    if sort_by == "progress":
        return sorted(items, key=lambda d: d.current_page or 0, reverse=True)
    if sort_by == "pages":
        return sorted(items, key=lambda d: d.total_page_count or 0, reverse=True)
    if sort_by == "completed":
        return sorted(
            items,
            key=lambda d: (d.status != "finished", collation_key(d.title)),
        )
    raise ValueError(f"Invalid sort mode: {sort_by}")


def arrange(
    documents: Iterable[Document],
    group_by: str = "none",
    sort_by: str = "recent",
    categories: Sequence[Category] = (),
) -> List[Group]:
    """
    Sort documents, then partition them into labeled groups.

    Groups appear in order of their first document; documents inside a group
    keep the sorted order.
    """
    if group_by not in GROUP_MODES:
        raise ValueError(f"Invalid group mode: {group_by}")

    ordered = sort_documents(documents, sort_by)
    if group_by == "none":
        return [Group(ALL_LABEL, ordered)]

    label_for = _labeler(group_by, categories)
    groups: Dict[str, Group] = {}
    for document in ordered:
        label = label_for(document)
        if label not in groups:
            groups[label] = Group(label)
        groups[label].documents.append(document)
    return list(groups.values())


def _labeler(group_by: str, categories: Sequence[Category]) -> Callable[[Document], str]:
    if group_by == "category":
        names = {category.id: category.name for category in categories}
        return lambda d: names.get(d.category_id or "", UNCATEGORIZED_LABEL)
    if group_by == "status":
        return lambda d: STATUS_LABELS.get(d.status, STATUS_LABELS["queued"])
    return _rating_label


def _rating_label(document: Document) -> str:
    if not document.rating:
        return UNRATED_LABEL
    if document.rating == 1:
        return "1 Star"
    return f"{document.rating} Stars"
