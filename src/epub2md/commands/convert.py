"""Convert command implementation."""

from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from epub2md.core.converter import Converter
from epub2md.core.epub_parser import EpubParser
from epub2md.models.epub import ParsedEpub
from epub2md.models.output import ConversionResult


def book_info_lines(parsed: ParsedEpub) -> list[str]:
    """Summary lines shared by the convert and info commands."""
    metadata = parsed.metadata
    return [
        f"[bold]{escape(metadata.title or parsed.source_path.stem)}[/]",
        f"[dim]Author:[/] {escape(metadata.author or 'Unknown')}",
        f"[dim]Sections:[/] {len(parsed.sections)}",
    ]


def execute_convert(
    book_path: Path,
    output: Path | None,
    single: bool,
    localize_images: bool,
    timeout: float,
    quiet: bool,
    console: Console,
) -> ConversionResult:
    """Execute the convert command."""
    with EpubParser(book_path) as parser:
        if not quiet:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                progress.add_task("Parsing EPUB...", total=None)
                parsed = parser.parse()
        else:
            parsed = parser.parse()

        if not quiet:
            console.print()
            console.print(
                Panel(
                    "\n".join(book_info_lines(parsed)),
                    title="Book Info",
                    border_style="green",
                )
            )
            console.print()

        converter = Converter(parsed, parser.archive, timeout=timeout)

        if quiet:
            result = _run(converter, output, single, localize_images)
        else:
            with Progress(console=console) as progress:
                task = progress.add_task(
                    "Converting sections...", total=len(parsed.sections)
                )

                def advance(section) -> None:
                    progress.update(
                        task,
                        advance=1,
                        description=f"Converted: {escape(section.display_title[:40])}",
                    )

                result = _run(converter, output, single, localize_images, advance)

    if not quiet:
        _print_summary(result, console)

    return result


def _run(
    converter: Converter,
    output: Path | None,
    single: bool,
    localize_images: bool,
    on_section=None,
) -> ConversionResult:
    if single:
        return converter.convert_to_single_markdown(
            localize_images=localize_images,
            output_filename=output,
            on_section=on_section,
        )
    return converter.convert_to_markdown(
        localize_images=localize_images,
        output_dir=output,
        on_section=on_section,
    )


def _print_summary(result: ConversionResult, console: Console) -> None:
    console.print()

    if result.mode == "merged":
        summary_lines = [
            "[green]Successfully wrote merged Markdown file[/]",
            "",
            f"[dim]Output file:[/] {escape(str(result.output_path))}",
        ]
    else:
        summary_lines = [
            f"[green]Successfully converted {len(result.files)} section(s)[/]",
            "",
            f"[dim]Output directory:[/] {escape(str(result.output_path))}",
        ]

    if result.images_dir is not None:
        summary_lines.append(
            f"[dim]Images:[/] {len(result.images)} in {escape(str(result.images_dir))}"
        )

    if result.warnings:
        summary_lines.append("")
        for warning in result.warnings:
            summary_lines.append(f"[yellow]⚠ {escape(warning)}[/]")

    console.print(
        Panel(
            "\n".join(summary_lines),
            title="Complete",
            border_style="green",
        )
    )
