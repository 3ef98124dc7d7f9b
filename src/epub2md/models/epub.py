"""Data models for EPUB structure."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

XHTML_MEDIA_TYPE = "application/xhtml+xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"


class TOCEntry(BaseModel):
    """Single entry in table of contents."""

    name: str | None = None
    path: str | None = None
    play_order: int | None = None
    children: list["TOCEntry"] = Field(default_factory=list)


class ManifestItem(BaseModel):
    """Resource declared in the package manifest."""

    id: str
    href: str
    media_type: str | None = None
    properties: list[str] = Field(default_factory=list)

    @property
    def is_document(self) -> bool:
        return self.media_type == XHTML_MEDIA_TYPE

    @property
    def is_image(self) -> bool:
        return bool(self.media_type) and self.media_type.startswith("image/")


class SpineItem(BaseModel):
    """Reading-order entry."""

    idref: str
    linear: bool = True
    position: int


class Section(BaseModel):
    """Section content in reading order."""

    id: str
    index: int
    path: str
    html_content: str = ""
    title: str | None = None
    linear: bool = True
    word_count: int = 0
    has_images: bool = False

    @property
    def display_title(self) -> str:
        """Title used for headers and filenames."""
        return self.title or self.id


class BookMetadata(BaseModel):
    """Book-level metadata."""

    title: str | None = None
    author: str | None = None
    description: str | None = None
    language: str | None = None
    publisher: str | None = None
    rights: str | None = None
    date: str | None = None


class ParsedEpub(BaseModel):
    """Complete parsed EPUB structure."""

    model_config = ConfigDict(frozen=True)

    source_path: Path
    opf_path: str
    root_dir: str = ""
    metadata: BookMetadata
    manifest: dict[str, ManifestItem] = Field(default_factory=dict)
    spine: list[SpineItem] = Field(default_factory=list)
    toc: list[TOCEntry] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)

    def image_items(self) -> list[ManifestItem]:
        """Manifest items with an image media type, in manifest order."""
        return [item for item in self.manifest.values() if item.is_image]
