"""JSON exporter for annotations."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Sequence

from lectern.exporters.base import Exporter

if TYPE_CHECKING:
    from lectern.models import Annotation, Document


class JsonExporter(Exporter):
    """Export annotations to JSON format."""

    @property
    def extension(self) -> str:
        """Return json extension."""
        return "json"

    def render(self, document: Document, annotations: Sequence[Annotation]) -> str:
        data = [self.annotation_to_dict(annotation) for annotation in annotations]
        output = {
            "document": {"id": document.id, "title": document.title, "author": document.author},
            "annotations": data,
            "count": len(data),
        }
        return json.dumps(output, indent=2, ensure_ascii=False)
