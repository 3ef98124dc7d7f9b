"""Copy referenced images next to the Markdown output and rewrite references.

Every reference goes through ``localize_reference``, whether it comes from an
``<img src>`` in the section markup or from ``![alt](url)`` in the rendered
Markdown. References that already start with "." or "/" are left alone, so a
reference rewritten by the markup pass is a no-op for the Markdown pass.

Two sources sharing a basename are written to the same file; the last one
wins.
"""

from __future__ import annotations

import logging
import posixpath
import re
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

from epub2md.core.archive import Archive, resolve_href

if TYPE_CHECKING:
    from bs4 import BeautifulSoup

    from epub2md.models.epub import ParsedEpub

log = logging.getLogger(__name__)

IMAGES_DIRNAME = "images"
FALLBACK_EXTENSION = ".jpg"

MARKDOWN_IMAGE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")


class ReferenceKind(str, Enum):
    """Where an image reference points."""

    LOCAL = "local"
    REMOTE = "remote"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ExportContext:
    """Everything image localization needs for one export call."""

    archive: Archive
    root_dir: str
    images_dir: Path
    localize_images: bool = False
    client: httpx.Client | None = None


@dataclass(frozen=True)
class LocalizedReference:
    """Outcome of localizing one reference."""

    original: str
    reference: str
    kind: ReferenceKind
    written: Path | None = None
    error: str | None = None

    @property
    def changed(self) -> bool:
        return self.reference != self.original


def classify_reference(src: str) -> ReferenceKind:
    """Classify an image source string."""
    if src.startswith((".", "/")):
        return ReferenceKind.LOCAL
    if src.startswith(("http://", "https://")):
        return ReferenceKind.REMOTE
    return ReferenceKind.INTERNAL


def local_reference(filename: str) -> str:
    """Reference used in the output for a file in the images folder."""
    return f"./{IMAGES_DIRNAME}/{filename}"


def remote_filename(url: str) -> str:
    """File name for a downloaded image, synthesized if the URL has none."""
    filename = posixpath.basename(urlparse(url).path)
    if not filename or filename == "/":
        filename = f"image_{time.time_ns()}{FALLBACK_EXTENSION}"
    return filename


def _write_image(context: ExportContext, filename: str, data: bytes) -> Path:
    context.images_dir.mkdir(parents=True, exist_ok=True)
    target = context.images_dir / filename
    target.write_bytes(data)
    return target


def _download(src: str, context: ExportContext) -> LocalizedReference:
    try:
        filename = remote_filename(src)
        if context.client is not None:
            response = context.client.get(src)
        else:
            response = httpx.get(src, follow_redirects=True)
        response.raise_for_status()
        written = _write_image(context, filename, response.content)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
        log.warning("Failed to download image: %s - %s", src, e)
        return LocalizedReference(src, src, ReferenceKind.REMOTE, error=str(e))

    log.debug("Downloaded %s -> %s", src, written)
    return LocalizedReference(
        src, local_reference(filename), ReferenceKind.REMOTE, written=written
    )


def _extract(src: str, context: ExportContext) -> LocalizedReference:
    filename = posixpath.basename(src)
    archive_path = resolve_href(context.root_dir, src)
    try:
        data = context.archive.find(archive_path)
        if data is None:
            log.warning(
                "Failed to extract internal image: %s - not found in EPUB (%s)",
                src,
                archive_path,
            )
            return LocalizedReference(
                src,
                src,
                ReferenceKind.INTERNAL,
                error=f"not found in EPUB: {archive_path}",
            )
        written = _write_image(context, filename, data)
    except OSError as e:
        log.warning("Failed to extract internal image: %s - %s", src, e)
        return LocalizedReference(src, src, ReferenceKind.INTERNAL, error=str(e))

    return LocalizedReference(
        src, local_reference(filename), ReferenceKind.INTERNAL, written=written
    )


def localize_reference(src: str, context: ExportContext) -> LocalizedReference:
    """Fetch or extract the image behind ``src`` and return its new reference.

    Failures are logged and leave the reference unchanged.
    """
    kind = classify_reference(src)
    if kind is ReferenceKind.LOCAL or not context.localize_images:
        return LocalizedReference(src, src, kind)
    if kind is ReferenceKind.REMOTE:
        return _download(src, context)
    return _extract(src, context)


def localize_markup(
    soup: BeautifulSoup, context: ExportContext
) -> list[LocalizedReference]:
    """Rewrite ``<img src>`` attributes in parsed markup."""
    results = []
    for img in soup.find_all("img"):
        src = img.get("src")
        if not src:
            continue
        result = localize_reference(src, context)
        if result.changed:
            img["src"] = result.reference
        results.append(result)
    return results


def localize_markdown(
    markdown: str, context: ExportContext
) -> tuple[str, list[LocalizedReference]]:
    """Rewrite ``![alt](url)`` image links in rendered Markdown."""
    results: list[LocalizedReference] = []

    def replace(match: re.Match) -> str:
        alt_text, url = match.group(1), match.group(2)
        result = localize_reference(url, context)
        results.append(result)
        if not result.changed:
            return match.group(0)
        return f"![{alt_text}]({result.reference})"

    return MARKDOWN_IMAGE.sub(replace, markdown), results


def extract_manifest_images(
    parsed: ParsedEpub, context: ExportContext
) -> list[Path]:
    """Copy every image declared in the manifest into the images folder."""
    written = []
    for item in parsed.image_items():
        archive_path = resolve_href(context.root_dir, item.href)
        data = context.archive.find(archive_path)
        if data is None:
            log.debug("Manifest image missing from archive: %s", archive_path)
            continue
        try:
            written.append(
                _write_image(context, posixpath.basename(archive_path), data)
            )
        except OSError as e:
            log.warning("Failed to extract image: %s - %s", archive_path, e)
    return written
