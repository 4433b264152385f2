"""YAML exporter for annotations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import yaml

from lectern.exporters.base import Exporter

if TYPE_CHECKING:
    from lectern.models import Annotation, Document


class YamlExporter(Exporter):
    """Export annotations to YAML format."""

    @property
    def extension(self) -> str:
        """Return yaml extension."""
        return "yaml"

    def render(self, document: Document, annotations: Sequence[Annotation]) -> str:
        data = [self.annotation_to_dict(annotation) for annotation in annotations]
        output = {
            "document": {"id": document.id, "title": document.title, "author": document.author},
            "annotations": data,
            "count": len(data),
        }
        return yaml.safe_dump(output, allow_unicode=True, sort_keys=False)
