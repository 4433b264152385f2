"""Base exporter interface for a document's annotations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from lectern.models import Annotation, Document


class Exporter(ABC):
    """Base class for annotation exporters.

    Callers pass annotations already ordered by page.
    """

    @property
    @abstractmethod
    def extension(self) -> str:
        """File extension without dot (e.g., 'txt', 'md')."""
        ...

    @abstractmethod
    def render(self, document: Document, annotations: Sequence[Annotation]) -> str:
        """Render annotations to the exporter's text format."""
        ...

    def export(
        self,
        document: Document,
        annotations: Sequence[Annotation],
        output_path: Path,
    ) -> int:
        """Write rendered annotations to a file.

        Returns:
            Number of annotations exported.
        """
        Path(output_path).write_text(self.render(document, annotations), encoding="utf-8")
        return len(annotations)

    def default_filename(self, document: Document) -> str:
        return f"{document.title}_notes.{self.extension}"

    @staticmethod
    def annotation_to_dict(annotation: Annotation) -> dict:
        """Convert an annotation to an exportable dictionary."""
        return {
            "id": annotation.id,
            "page": annotation.page_number,
            "body": annotation.body,
            "quote": annotation.quoted_text,
            "created_at": format_timestamp(annotation.created_at),
        }


def format_timestamp(timestamp_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="seconds")


def get_exporter(fmt: str) -> Exporter:
    """Look up an exporter by format name or extension."""
    from lectern.exporters.json_exporter import JsonExporter
    from lectern.exporters.markdown_exporter import MarkdownExporter
    from lectern.exporters.text_exporter import TextExporter
    from lectern.exporters.yaml_exporter import YamlExporter

    exporters = {
        "txt": TextExporter,
        "text": TextExporter,
        "md": MarkdownExporter,
        "markdown": MarkdownExporter,
        "json": JsonExporter,
        "yaml": YamlExporter,
        "yml": YamlExporter,
    }
    try:
        return exporters[fmt.lower()]()
    except KeyError:
        raise ValueError(f"Unknown export format: {fmt}") from None
