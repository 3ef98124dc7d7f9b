"""Write rendered sections to Markdown files."""

import re
from pathlib import Path

from epub2md.models.epub import Section

MARKDOWN_EXTENSION = ".md"
SECTION_SEPARATOR = "\n\n---\n\n"

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in file names, and whitespace, with "_"."""
    return _WHITESPACE_RUN.sub("_", _INVALID_FILENAME_CHARS.sub("_", name))


def index_width(total: int) -> int:
    """Number of digits needed to number ``total`` files."""
    return len(str(max(total, 1)))


def section_filename(section: Section, position: int, total: int) -> str:
    """File name for a section, e.g. ``03-Chapter_Three.md``.

    Args:
        section: Section being written
        position: 1-based position in the export
        total: Number of sections in the export
    """
    number = f"{position:0{index_width(total)}d}"
    return f"{number}-{sanitize_filename(section.display_title)}{MARKDOWN_EXTENSION}"


def merge_sections(rendered: list[tuple[Section, str]]) -> str:
    """Concatenate rendered sections under headers, separated by rules."""
    blocks = [f"# {section.display_title}\n\n{body}" for section, body in rendered]
    return SECTION_SEPARATOR.join(blocks)


class OutputWriter:
    """Write Markdown files into an output directory."""

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write_section(
        self, section: Section, markdown: str, position: int, total: int
    ) -> Path:
        """Write one section to its numbered file."""
        filepath = self.output_dir / section_filename(section, position, total)
        filepath.write_text(markdown, encoding="utf-8")
        return filepath

    def write_merged(self, filepath: Path, rendered: list[tuple[Section, str]]) -> Path:
        """Write all sections into a single file."""
        filepath.write_text(merge_sections(rendered), encoding="utf-8")
        return filepath
