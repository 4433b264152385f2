"""Command-line interface for the document library."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from .arrange import GROUP_MODES, SORT_MODES, arrange
from .config import LibraryConfig, default_data_dir
from .exceptions import LibraryError
from .exporters import get_exporter
from .library import LibraryCoordinator, open_library
from .models import STATUSES, THEMES
from .parser import PdfParser
from .relocation import HighlightRelocator
from .search import DocumentSearchEngine
from .translation import TranslationClient, TranslationError

LOGGER = logging.getLogger("lectern.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Personal document library")
    parser.add_argument("--data-dir", default=None, help="Library data directory (default: $LECTERN_DATA_DIR or ./data)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Add PDF files to the library")
    add_parser.add_argument("paths", nargs="+", help="Files to import; non-PDFs are skipped")

    list_parser = subparsers.add_parser("list", help="List documents")
    list_parser.add_argument("--group-by", choices=GROUP_MODES, default="none")
    list_parser.add_argument("--sort-by", choices=SORT_MODES, default="recent")

    delete_parser = subparsers.add_parser("delete", help="Delete documents and their notes")
    delete_parser.add_argument("ids", nargs="+")

    open_parser = subparsers.add_parser("open", help="Open a document and record reading progress")
    open_parser.add_argument("id")
    open_parser.add_argument("--page", type=int, default=None, help="Page to open at")
    open_parser.add_argument("--highlight", default=None, help="Text to locate on the page")

    set_parser = subparsers.add_parser("set", help="Edit document metadata")
    set_parser.add_argument("id")
    set_parser.add_argument("--status", choices=STATUSES)
    set_parser.add_argument("--rating", type=int, choices=range(0, 6))
    set_parser.add_argument("--category", help="Category id, or 'none' to clear")
    set_parser.add_argument("--title")
    set_parser.add_argument("--author")

    search_parser = subparsers.add_parser("search", help="Search a document's text")
    search_parser.add_argument("id")
    search_parser.add_argument("query")

    note_parser = subparsers.add_parser("note", help="Add an annotation")
    note_parser.add_argument("id")
    note_parser.add_argument("page", type=int)
    note_parser.add_argument("body", nargs="?", default="")
    note_parser.add_argument("--quote", default=None, help="Quoted text from the page")

    notes_parser = subparsers.add_parser("notes", help="List a document's annotations")
    notes_parser.add_argument("id")

    unnote_parser = subparsers.add_parser("unnote", help="Delete an annotation")
    unnote_parser.add_argument("annotation_id")

    export_parser = subparsers.add_parser("export", help="Export a document's annotations")
    export_parser.add_argument("id")
    export_parser.add_argument("--format", default="md", choices=["txt", "md", "json", "yaml"])
    export_parser.add_argument("--output", default=None, help="Output file path")

    category_parser = subparsers.add_parser("category", help="Manage categories")
    category_sub = category_parser.add_subparsers(dest="category_command", required=True)
    category_add = category_sub.add_parser("add")
    category_add.add_argument("name")
    category_delete = category_sub.add_parser("delete")
    category_delete.add_argument("category_id")
    category_sub.add_parser("list")

    theme_parser = subparsers.add_parser("theme", help="Show or set the display theme")
    theme_parser.add_argument("theme", nargs="?", choices=THEMES)

    translate_parser = subparsers.add_parser("translate", help="Translate one page")
    translate_parser.add_argument("id")
    translate_parser.add_argument("page", type=int)
    translate_parser.add_argument("--url", default=None, help="Chat-completions server")
    translate_parser.add_argument("--model", default=None)
    translate_parser.add_argument("--language", default=None)

    return parser


def print_notice(message: str, level: str = "info") -> None:
    stream = sys.stderr if level == "error" else sys.stdout
    print(message, file=stream)


def cmd_add(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    result = library.add_documents(args.paths)
    for document in result.documents:
        print(f"{document.id}  {document.title}")
    return 1 if result.failures and not result.documents else 0


def cmd_list(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    groups = arrange(library.documents, args.group_by, args.sort_by, library.categories)
    for group in groups:
        print(f"== {group.label} ({len(group.documents)})")
        for d in group.documents:
            pages = d.total_page_count or "?"
            print(f"  {d.id}  {d.title} [{d.status}] {d.current_page}/{pages} {'*' * d.rating}")
    return 0


def cmd_delete(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    if len(args.ids) == 1:
        library.delete_document(args.ids[0])
        return 0
    result = library.batch_delete(args.ids)
    for document_id, reason in result.failures.items():
        print(f"{document_id}: {reason}", file=sys.stderr)
    return 1 if result.failures else 0


def cmd_open(library: LibraryCoordinator, config: LibraryConfig, args: argparse.Namespace) -> int:
    opened = library.open_document(args.id, target_page=args.page, highlight=args.highlight)
    parser = PdfParser()
    with parser.parse(opened.payload) as document:
        page_count = document.page_count
        library.record_page_count(opened.document.id, page_count)
        page = min(max(1, opened.page), max(1, page_count))
        print(f"{opened.document.title}: page {page} of {page_count}")
        if opened.highlight and page_count:
            tokens = document.page_tokens(page)
            relocator = HighlightRelocator(ttl=config.highlight_ttl)
            for index in relocator.settle(opened.highlight, tokens, time.monotonic(), page=page):
                print(f"  match: {tokens[index].text}")
    library.close_document(page, page_count)
    return 0


def cmd_set(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    fields = {}
    for name in ("status", "rating", "title", "author"):
        value = getattr(args, name)
        if value is not None:
            fields[name] = value
    if args.category is not None:
        fields["category_id"] = None if args.category.lower() == "none" else args.category
    if library.update_document(args.id, **fields) is None:
        print(f"Document {args.id} not found", file=sys.stderr)
        return 1
    return 0


def cmd_search(library: LibraryCoordinator, config: LibraryConfig, args: argparse.Namespace) -> int:
    engine = DocumentSearchEngine(max_results=config.search_limit, context=config.snippet_context)
    results = engine.search(library.read_document(args.id), args.query)
    for result in results:
        print(f"p.{result.page}: {result.snippet}")
    if not results:
        print("No matches.")
    return 0


def cmd_note(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    annotation = library.add_annotation(args.id, args.page, args.body, args.quote)
    if annotation is None:
        print("Nothing saved: empty note or unknown document.", file=sys.stderr)
        return 1
    print(annotation.id)
    return 0


def cmd_notes(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    for annotation in library.annotations_for(args.id):
        quote = f' "{annotation.quoted_text}"' if annotation.quoted_text else ""
        print(f"{annotation.id}  p.{annotation.page_number}{quote} {annotation.body}")
    return 0


def cmd_unnote(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    if not library.delete_annotation(args.annotation_id):
        print(f"Annotation {args.annotation_id} not found", file=sys.stderr)
        return 1
    return 0


def cmd_export(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    document = library.get_document(args.id)
    if document is None:
        print(f"Document {args.id} not found", file=sys.stderr)
        return 1
    annotations = library.annotations_for_export(args.id)
    if not annotations:
        return 0
    exporter = get_exporter(args.format)
    output = Path(args.output) if args.output else Path(exporter.default_filename(document))
    count = exporter.export(document, annotations, output)
    print(f"Exported {count} annotations to {output}")
    return 0


def cmd_category(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    if args.category_command == "add":
        category = library.add_category(args.name)
        if category is None:
            print("Category name cannot be blank", file=sys.stderr)
            return 1
        print(category.id)
    elif args.category_command == "delete":
        if not library.delete_category(args.category_id):
            print(f"Category {args.category_id} not found", file=sys.stderr)
            return 1
    else:
        for category in library.categories:
            print(f"{category.id}  {category.name}")
    return 0


def cmd_theme(library: LibraryCoordinator, args: argparse.Namespace) -> int:
    if args.theme:
        library.set_theme(args.theme)
    print(library.theme)
    return 0


def cmd_translate(library: LibraryCoordinator, config: LibraryConfig, args: argparse.Namespace) -> int:
    engine = DocumentSearchEngine()
    text = engine.page_text(library.read_document(args.id), args.page)
    if not text.strip():
        print("No text found on this page.", file=sys.stderr)
        return 1
    client = TranslationClient(
        base_url=args.url or config.translation_url,
        model=args.model or config.translation_model,
    )
    try:
        print(client.translate(text, args.language or config.translation_language).text)
    except TranslationError as exc:
        LOGGER.error("Translation failed: %s", exc)
        return 1
    return 0


def run(args: argparse.Namespace) -> int:
    config = LibraryConfig(data_dir=Path(args.data_dir) if args.data_dir else default_data_dir())
    library = open_library(config.metadata_path, config.blob_path, notify=print_notice)
    try:
        if args.command == "open":
            return cmd_open(library, config, args)
        if args.command == "search":
            return cmd_search(library, config, args)
        if args.command == "translate":
            return cmd_translate(library, config, args)
        handler = COMMANDS[args.command]
        return handler(library, args)
    except (LibraryError, ValueError) as exc:
        LOGGER.error("%s", exc)
        return 1
    finally:
        library.close()


COMMANDS = {
    "add": cmd_add,
    "list": cmd_list,
    "delete": cmd_delete,
    "set": cmd_set,
    "note": cmd_note,
    "notes": cmd_notes,
    "unnote": cmd_unnote,
    "export": cmd_export,
    "category": cmd_category,
    "theme": cmd_theme,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
