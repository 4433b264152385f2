"""Plain-text exporter for annotations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from lectern.exporters.base import Exporter

if TYPE_CHECKING:
    from lectern.models import Annotation, Document


class TextExporter(Exporter):
    """One block per annotation, separated by blank lines."""

    @property
    def extension(self) -> str:
        return "txt"

    def render(self, document: Document, annotations: Sequence[Annotation]) -> str:
        lines = [f"Notes: {document.title}", f"Author: {document.author}", ""]
        for annotation in annotations:
            lines.append(f"[Page {annotation.page_number}]")
            if annotation.quoted_text:
                lines.append(f'"{annotation.quoted_text}"')
            if annotation.body:
                lines.append(annotation.body)
            lines.append("")
        return "\n".join(lines)
