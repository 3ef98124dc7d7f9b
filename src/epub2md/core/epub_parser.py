"""EPUB parsing: package resolution plus section extraction."""

import logging
from pathlib import Path

from bs4 import BeautifulSoup

from epub2md.core.archive import Archive, resolve_href
from epub2md.core.markdown_renderer import decode_markup, parse_markup
from epub2md.core.package_resolver import PackageResolver
from epub2md.models.epub import ParsedEpub, Section

log = logging.getLogger(__name__)


class EpubParser:
    """Parse EPUB files and extract structure."""

    def __init__(self, epub_path: Path):
        self.path = Path(epub_path)
        self.archive = Archive.open(self.path)

    def __enter__(self) -> "EpubParser":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.archive.close()

    def parse(self) -> ParsedEpub:
        """Parse the EPUB and return complete structure."""
        package = PackageResolver(self.archive).resolve()
        return package.model_copy(update={"sections": self._get_sections(package)})

    def _get_sections(self, package: ParsedEpub) -> list[Section]:
        """Load every XHTML spine item, in reading order."""
        sections = []

        for spine_item in package.spine:
            item = package.manifest.get(spine_item.idref)
            if item is None or not item.is_document:
                log.debug("Skipping spine item %s", spine_item.idref)
                continue

            path = resolve_href(package.root_dir, item.href)
            html_content = decode_markup(self.archive.read(path))
            soup = parse_markup(html_content)

            sections.append(
                Section(
                    id=spine_item.idref,
                    index=len(sections),
                    path=path,
                    html_content=html_content,
                    title=self._extract_title(soup),
                    linear=spine_item.linear,
                    word_count=self._count_words(soup),
                    has_images=soup.find("img") is not None,
                )
            )

        return sections

    def _extract_title(self, soup: BeautifulSoup) -> str | None:
        """Text of the document's <title> element, if any."""
        element = soup.find("title")
        if element:
            return element.get_text(strip=True) or None
        return None

    def _count_words(self, soup: BeautifulSoup) -> int:
        """Count words in the document body."""
        body = soup.body or soup
        text = body.get_text(separator=" ", strip=True)
        return len(text.split())
