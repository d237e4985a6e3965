"""Command-line interface for annosync.

Usage:
    annosync <command> [options]

Commands:
    annotate <text-file>       Apply highlights to plain text, print document JSON
    extract <doc-json>         List highlights recovered from document marks
    locate <needle> <text-file>  Show where a span of text is found
    labels                     Show the configured label catalog
    show <session-id>          Show a session record stored in the database
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from annosync.config import get_settings
from annosync.engine.annotator import DocumentAnnotator
from annosync.engine.extractor import MarkExtractor
from annosync.engine.locator import locate
from annosync.engine.registry import HighlightRegistry
from annosync.models.annotation import as_highlight, parse_highlights
from annosync.models.document import document_from_text, parse_document
from annosync.models.labels import LabelCatalog, load_label_catalog

if TYPE_CHECKING:
    from collections.abc import Sequence

    from annosync.models.annotation import AnyHighlight

_console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="annosync",
        description="Keep annotation marks, highlights and relationships in sync.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # annotate
    annotate_p = sub.add_parser("annotate", help="Apply highlights to plain text")
    annotate_p.add_argument("text_file", type=Path, help="Plain text input")
    source = annotate_p.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--highlights", type=Path, help="JSON file with a highlight list"
    )
    source.add_argument(
        "--claude", action="store_true", help="Ask Claude to label the text"
    )
    annotate_p.add_argument(
        "--output", type=Path, default=None, help="Write document JSON here"
    )

    # extract
    extract_p = sub.add_parser("extract", help="List highlights from document marks")
    extract_p.add_argument("document", type=Path, help="Document JSON file")

    # locate
    locate_p = sub.add_parser("locate", help="Locate text in a file")
    locate_p.add_argument("needle", help="Text to look for")
    locate_p.add_argument("text_file", type=Path, help="Plain text haystack")

    # labels
    sub.add_parser("labels", help="Show the label catalog")

    # show
    show_p = sub.add_parser("show", help="Show a stored session record")
    show_p.add_argument("session_id", help="Session identifier")

    return parser


def _highlight_table(
    highlights: Sequence[AnyHighlight], catalog: LabelCatalog
) -> Table:
    table = Table(title="Highlights")
    table.add_column("ID", style="dim")
    table.add_column("Label")
    table.add_column("Text", style="cyan")
    for item in highlights:
        highlight = as_highlight(item)
        label = catalog.get(highlight.label_type)
        colour = label.color if label else "white"
        table.add_row(
            highlight.id,
            f"[{colour}]{highlight.label_type}[/]",
            highlight.text,
        )
    return table


async def _cmd_annotate(
    text_file: Path,
    *,
    highlights_file: Path | None,
    use_claude: bool,
    output: Path | None,
    catalog: LabelCatalog,
    console: Console | None = None,
) -> None:
    """Build a document from text, mark the highlights, print the result."""
    con = console or _console
    text = text_file.read_text(encoding="utf-8")
    document = document_from_text(text)

    if use_claude:
        from annosync.labeling.claude import ClaudeLabeler

        labeler = ClaudeLabeler.from_config(get_settings().llm)
        result = await labeler.label(text, catalog)
        highlights: list[AnyHighlight] = list(result.highlights)
    else:
        assert highlights_file is not None
        data = json.loads(highlights_file.read_text(encoding="utf-8"))
        items = data.get("highlights", []) if isinstance(data, dict) else data
        highlights = parse_highlights(items, keep_positions=True)

    annotated = DocumentAnnotator().apply(document, highlights)
    payload = json.dumps(annotated.to_json(), indent=2, ensure_ascii=False)
    if output is not None:
        output.write_text(payload, encoding="utf-8")
        con.print(f"[green]Wrote[/] {output}")
    else:
        con.print_json(payload)
    con.print(_highlight_table(highlights, catalog))


def _cmd_extract(
    document_file: Path, *, catalog: LabelCatalog, console: Console | None = None
) -> None:
    """Print highlights recovered from a document's marks."""
    con = console or _console
    document = parse_document(json.loads(document_file.read_text(encoding="utf-8")))
    extractor = MarkExtractor(
        HighlightRegistry(), catalog, get_settings().sync.fallback_label
    )
    located = extractor.extract(document)
    if not located:
        con.print("[yellow]No highlights found.[/]")
        return
    con.print(_highlight_table(located, catalog))


def _cmd_locate(
    needle: str, text_file: Path, *, console: Console | None = None
) -> None:
    """Print where ``needle`` was found and how."""
    con = console or _console
    haystack = text_file.read_text(encoding="utf-8")
    match = locate(needle, haystack)
    if not match.found:
        con.print(f"[red]Not found:[/] {needle!r}")
        return
    con.print(
        f"[green]{match.match_type}[/] match at {match.index}..{match.end}: "
        f"{haystack[match.index : match.end]!r}"
    )


def _cmd_labels(catalog: LabelCatalog, *, console: Console | None = None) -> None:
    """Print the label catalog as a table."""
    con = console or _console
    table = Table(title="Labels")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Colour")
    table.add_column("Description")
    for label in catalog:
        table.add_row(
            label.id, label.name, f"[{label.color}]{label.color}[/]", label.description
        )
    con.print(table)


async def _cmd_show(
    session_id: str, *, catalog: LabelCatalog, console: Console | None = None
) -> None:
    """Load a session through the reconciler and print its state."""
    from annosync.db.engine import close_db, create_tables
    from annosync.engine.reconciler import AnnotationReconciler
    from annosync.store.sql import SqlSyncStore

    con = console or _console
    try:
        await create_tables()
        reconciler = AnnotationReconciler(
            SqlSyncStore(session_id), catalog=catalog, config=get_settings().sync
        )
        record = await reconciler.load()
    finally:
        await close_db()

    if record.id is None:
        con.print(f"[yellow]No record for session[/] {session_id}")
        return
    con.print(f"\n[bold]Session {session_id}[/] (record [dim]{record.id}[/])")
    con.print(_highlight_table(record.highlights, catalog))
    for rel in record.relationships:
        con.print(f"  {rel.source_highlight_id} -> {rel.target_highlight_id}")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for the ``annosync`` command."""
    from annosync import _setup_logging

    parser = _build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    settings = get_settings()
    _setup_logging(settings.app.log_dir)
    catalog = load_label_catalog(settings.labels.catalog_path)

    match args.command:
        case "annotate":
            asyncio.run(
                _cmd_annotate(
                    args.text_file,
                    highlights_file=args.highlights,
                    use_claude=args.claude,
                    output=args.output,
                    catalog=catalog,
                )
            )
        case "extract":
            _cmd_extract(args.document, catalog=catalog)
        case "locate":
            _cmd_locate(args.needle, args.text_file)
        case "labels":
            _cmd_labels(catalog)
        case "show":
            if not settings.database.url:
                _console.print("[red]Error:[/] DATABASE__URL not set")
                sys.exit(1)
            asyncio.run(_cmd_show(args.session_id, catalog=catalog))


if __name__ == "__main__":
    main()
