"""Annotation exporters: plain text, Markdown, JSON and YAML."""

from lectern.exporters.base import Exporter, get_exporter
from lectern.exporters.json_exporter import JsonExporter
from lectern.exporters.markdown_exporter import MarkdownExporter
from lectern.exporters.text_exporter import TextExporter
from lectern.exporters.yaml_exporter import YamlExporter

__all__ = [
    "Exporter",
    "JsonExporter",
    "MarkdownExporter",
    "TextExporter",
    "YamlExporter",
    "get_exporter",
]
