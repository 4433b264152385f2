"""Markdown exporter for annotations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from lectern.exporters.base import Exporter

if TYPE_CHECKING:
    from lectern.models import Annotation, Document


class MarkdownExporter(Exporter):
    """Heading per page, quotes as blockquotes."""

    @property
    def extension(self) -> str:
        return "md"

    def render(self, document: Document, annotations: Sequence[Annotation]) -> str:
        lines = [f"# {document.title}", "", f"*{document.author}*", ""]
        for annotation in annotations:
            lines.append(f"## Page {annotation.page_number}")
            lines.append("")
            if annotation.quoted_text:
                for quote_line in annotation.quoted_text.splitlines() or [""]:
                    lines.append(f"> {quote_line}")
                lines.append("")
            if annotation.body:
                lines.append(annotation.body)
                lines.append("")
        return "\n".join(lines)
