"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from epub2md.commands.convert import book_info_lines, execute_convert
from epub2md.core.converter import DEFAULT_TIMEOUT
from epub2md.core.epub_parser import EpubParser
from epub2md.logger_config import setup_logging
from epub2md.models.epub import TOCEntry

app = typer.Typer(
    name="epub2md",
    help="Convert EPUB books to Markdown.",
    add_completion=False,
)

console = Console()


def _log_level(quiet: bool, verbose: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    return logging.WARNING


@app.command()
def convert(
    book_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the EPUB file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Output directory, or output file with --single "
            "(default: {book_name}_markdown/ or {book_name}_merged.md)",
        ),
    ] = None,
    single: Annotated[
        bool,
        typer.Option(
            "--single",
            "-s",
            help="Write all sections into one merged Markdown file",
        ),
    ] = False,
    localize_images: Annotated[
        bool,
        typer.Option(
            "--localize-images",
            "-l",
            help="Copy referenced images into an images/ folder and rewrite links",
            envvar="EPUB2MD_LOCALIZE_IMAGES",
        ),
    ] = False,
    timeout: Annotated[
        float,
        typer.Option(
            "--timeout",
            help="Timeout in seconds for downloading remote images",
            min=0.1,
        ),
    ] = DEFAULT_TIMEOUT,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress progress output",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logging",
        ),
    ] = False,
) -> None:
    """Convert an EPUB file to Markdown."""
    setup_logging(_log_level(quiet, verbose), console=console)

    try:
        execute_convert(
            book_path=book_path,
            output=output,
            single=single,
            localize_images=localize_images,
            timeout=timeout,
            quiet=quiet,
            console=console,
        )
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


def _add_toc_nodes(tree: Tree, entries: list[TOCEntry]) -> None:
    """Recursively add TOC entries to a rich Tree."""
    for entry in entries:
        label = escape(entry.name) if entry.name else "[dim]Untitled[/]"
        if entry.path:
            label += f" [dim]({escape(entry.path)})[/]"
        branch = tree.add(label)
        _add_toc_nodes(branch, entry.children)


@app.command()
def info(
    book_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the EPUB file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
) -> None:
    """Display book metadata, reading order and table of contents."""
    setup_logging(console=console)

    try:
        with EpubParser(book_path) as parser:
            parsed = parser.parse()

        metadata = parsed.metadata
        info_lines = book_info_lines(parsed)
        info_lines += [
            f"[dim]Language:[/] {escape(metadata.language or 'Unknown')}",
            f"[dim]Publisher:[/] {escape(metadata.publisher or 'Unknown')}",
        ]
        if metadata.date:
            info_lines.append(f"[dim]Date:[/] {escape(metadata.date)}")
        if metadata.rights:
            info_lines.append(f"[dim]Rights:[/] {escape(metadata.rights)}")
        if metadata.description:
            info_lines += ["", escape(metadata.description)]

        console.print()
        console.print(
            Panel(
                "\n".join(info_lines),
                title="Book Information",
                border_style="green",
            )
        )

        # Reading order table
        console.print()
        table = Table(title="Sections", show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", width=4)
        table.add_column("Title", style="white")
        table.add_column("File", style="dim")
        table.add_column("Words", justify="right", style="green")

        for section in parsed.sections:
            title = escape(section.display_title)
            if not section.linear:
                title += " [dim](non-linear)[/]"
            table.add_row(
                str(section.index + 1),
                title,
                section.path,
                f"{section.word_count:,}",
            )

        console.print(table)

        # TOC tree
        console.print()
        if parsed.toc:
            toc_tree = Tree("[bold cyan]Table of Contents[/]")
            _add_toc_nodes(toc_tree, parsed.toc)
            console.print(toc_tree)
        else:
            console.print("[dim]No table of contents[/]")
        console.print()

    except Exception as e:
        console.print(f"[red]Error reading file: {escape(str(e))}[/]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
