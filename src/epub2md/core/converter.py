"""Convert a parsed EPUB to Markdown files."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import httpx

from epub2md.core.archive import Archive
from epub2md.core.image_localizer import (
    IMAGES_DIRNAME,
    ExportContext,
    LocalizedReference,
    extract_manifest_images,
    localize_markdown,
    localize_markup,
)
from epub2md.core.markdown_renderer import MarkdownRenderer, parse_markup
from epub2md.core.output_writer import OutputWriter
from epub2md.models.epub import ParsedEpub, Section
from epub2md.models.output import ConversionResult

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def get_default_output_dir(book_path: Path) -> Path:
    """Default directory for per-section export: ``<book>_markdown``."""
    return book_path.parent / f"{book_path.stem}_markdown"


def get_default_output_file(book_path: Path) -> Path:
    """Default file for merged export: ``<book>_merged.md``."""
    return book_path.parent / f"{book_path.stem}_merged.md"


class Converter:
    """Render the sections of a parsed EPUB and write them out."""

    def __init__(
        self,
        parsed: ParsedEpub,
        archive: Archive,
        renderer: MarkdownRenderer | None = None,
        http_client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.parsed = parsed
        self.archive = archive
        self.renderer = renderer or MarkdownRenderer()
        self.http_client = http_client
        self.timeout = timeout

    @contextmanager
    def export_context(
        self, images_dir: Path, localize_images: bool
    ) -> Iterator[ExportContext]:
        """Context for one export; an HTTP client created here is closed on exit."""
        owned_client = None
        client = self.http_client
        if localize_images and client is None:
            owned_client = client = httpx.Client(
                follow_redirects=True, timeout=self.timeout
            )
        try:
            yield ExportContext(
                archive=self.archive,
                root_dir=self.parsed.root_dir,
                images_dir=images_dir,
                localize_images=localize_images,
                client=client,
            )
        finally:
            if owned_client is not None:
                owned_client.close()

    def render_section(
        self, section: Section, context: ExportContext
    ) -> tuple[str, list[LocalizedReference]]:
        """Render one section, localizing images when the context asks for it."""
        if not context.localize_images:
            return self.renderer.render(section.html_content), []

        soup = parse_markup(section.html_content)
        references = localize_markup(soup, context)
        markdown = self.renderer.render(soup)
        markdown, markdown_references = localize_markdown(markdown, context)
        return markdown, references + markdown_references

    def convert_to_markdown(
        self,
        localize_images: bool = False,
        output_dir: Path | None = None,
        on_section: Callable[[Section], None] | None = None,
    ) -> ConversionResult:
        """Write one Markdown file per section into ``output_dir``."""
        output_dir = Path(output_dir or get_default_output_dir(self.parsed.source_path))
        writer = OutputWriter(output_dir)
        result = ConversionResult(mode="sections", output_path=output_dir)
        sections = self.parsed.sections

        with self.export_context(output_dir / IMAGES_DIRNAME, localize_images) as context:
            self._prepare_images(context, result)
            for position, section in enumerate(sections, start=1):
                markdown, references = self.render_section(section, context)
                self._record(references, result)
                result.files.append(
                    writer.write_section(section, markdown, position, len(sections))
                )
                if on_section is not None:
                    on_section(section)

        log.info("Wrote %d section file(s) to %s", len(result.files), output_dir)
        return result

    def convert_to_single_markdown(
        self,
        localize_images: bool = False,
        output_filename: Path | None = None,
        on_section: Callable[[Section], None] | None = None,
    ) -> ConversionResult:
        """Write all sections into one Markdown file."""
        output_filename = Path(
            output_filename or get_default_output_file(self.parsed.source_path)
        )
        writer = OutputWriter(output_filename.parent)
        result = ConversionResult(mode="merged", output_path=output_filename)
        rendered: list[tuple[Section, str]] = []

        with self.export_context(
            output_filename.parent / IMAGES_DIRNAME, localize_images
        ) as context:
            self._prepare_images(context, result)
            for section in self.parsed.sections:
                markdown, references = self.render_section(section, context)
                self._record(references, result)
                rendered.append((section, markdown))
                if on_section is not None:
                    on_section(section)

        result.files.append(writer.write_merged(output_filename, rendered))
        log.info("Wrote %d section(s) to %s", len(rendered), output_filename)
        return result

    def _prepare_images(self, context: ExportContext, result: ConversionResult) -> None:
        if not context.localize_images:
            return
        context.images_dir.mkdir(parents=True, exist_ok=True)
        result.images_dir = context.images_dir
        for path in extract_manifest_images(self.parsed, context):
            self._add_image(path.name, result)

    def _record(
        self, references: list[LocalizedReference], result: ConversionResult
    ) -> None:
        for reference in references:
            if reference.written is not None:
                self._add_image(reference.written.name, result)
            if reference.error is not None:
                result.warnings.append(f"{reference.original}: {reference.error}")

    def _add_image(self, name: str, result: ConversionResult) -> None:
        if name not in result.images:
            result.images.append(name)
