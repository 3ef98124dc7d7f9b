"""Resolve container.xml -> package document -> manifest, spine and TOC."""

import logging
import posixpath
from pathlib import Path

from bs4 import Tag
from lxml import etree

from epub2md.core.archive import Archive, resolve_href
from epub2md.core.errors import Epub2mdError, MissingRootfileError
from epub2md.core.markdown_renderer import parse_markup
from epub2md.models.epub import (
    NCX_MEDIA_TYPE,
    BookMetadata,
    ManifestItem,
    ParsedEpub,
    SpineItem,
    TOCEntry,
)

log = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"

# Dublin Core element name for each metadata field
METADATA_FIELDS = {
    "title": "title",
    "author": "creator",
    "description": "description",
    "language": "language",
    "publisher": "publisher",
    "rights": "rights",
    "date": "date",
}


def _parse_xml(data: bytes, path: str) -> etree._Element:
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    root = etree.fromstring(data, parser)
    if root is None:
        raise Epub2mdError(f"Could not parse XML document: {path}")
    return root


def _children(node: etree._Element, name: str) -> list[etree._Element]:
    """Direct children matched by local name, ignoring namespaces."""
    return node.xpath(f"./*[local-name()='{name}']")


def _first(node: etree._Element, xpath: str) -> etree._Element | None:
    found = node.xpath(xpath)
    return found[0] if found else None


def _text(node: etree._Element | None) -> str | None:
    if node is None:
        return None
    text = "".join(node.itertext()).strip()
    return text or None


def _is_toc_nav(nav: Tag) -> bool:
    """True for <nav epub:type="toc">, whatever prefix the parser kept."""
    for name, value in nav.attrs.items():
        if name == "type" or name.endswith(":type"):
            values = value if isinstance(value, list) else str(value).split()
            if "toc" in values:
                return True
    return False


class PackageResolver:
    """Build the document model of an EPUB from its package document."""

    def __init__(self, archive: Archive):
        self.archive = archive

    def resolve(self) -> ParsedEpub:
        """Parse container, package document and TOC.

        Sections are left empty; see EpubParser.
        """
        opf_path = self.get_opf_path()
        root_dir = posixpath.dirname(opf_path)
        package = _parse_xml(self.archive.read(opf_path), opf_path)

        manifest = self._parse_manifest(package)
        return ParsedEpub(
            source_path=self.archive.path or Path(""),
            opf_path=opf_path,
            root_dir=root_dir,
            metadata=self._parse_metadata(package),
            manifest=manifest,
            spine=self._parse_spine(package),
            toc=self._parse_toc(manifest, root_dir),
        )

    def get_opf_path(self) -> str:
        """Read the package document path from container.xml."""
        container = _parse_xml(self.archive.read(CONTAINER_PATH), CONTAINER_PATH)
        rootfile = _first(container, "//*[local-name()='rootfile'][@full-path]")
        if rootfile is None or not rootfile.get("full-path"):
            raise MissingRootfileError(CONTAINER_PATH)
        return rootfile.get("full-path")

    def _parse_metadata(self, package: etree._Element) -> BookMetadata:
        metadata_node = _first(package, "//*[local-name()='metadata']")
        if metadata_node is None:
            return BookMetadata()

        values: dict[str, str | None] = {}
        for field_name, element_name in METADATA_FIELDS.items():
            try:
                # Descendant search also covers OPF 1.x <dc-metadata> wrappers
                element = _first(
                    metadata_node, f".//*[local-name()='{element_name}']"
                )
                values[field_name] = _text(element)
            except etree.Error:
                values[field_name] = None
        return BookMetadata(**values)

    def _parse_manifest(self, package: etree._Element) -> dict[str, ManifestItem]:
        manifest: dict[str, ManifestItem] = {}
        nodes = package.xpath(
            "//*[local-name()='manifest']/*[local-name()='item']"
        )
        for node in nodes:
            item_id = node.get("id")
            href = node.get("href")
            if item_id is None or href is None:
                log.debug("Skipping manifest item without id/href: %s", dict(node.attrib))
                continue
            # Later duplicates replace earlier ones
            manifest[item_id] = ManifestItem(
                id=item_id,
                href=href,
                media_type=node.get("media-type"),
                properties=(node.get("properties") or "").split(),
            )
        return manifest

    def _parse_spine(self, package: etree._Element) -> list[SpineItem]:
        nodes = package.xpath(
            "//*[local-name()='spine']/*[local-name()='itemref']"
        )
        spine = []
        for position, node in enumerate(nodes):
            idref = node.get("idref")
            if idref is None:
                continue
            spine.append(
                SpineItem(
                    idref=idref,
                    linear=node.get("linear") != "no",
                    position=position,
                )
            )
        return spine

    def _parse_toc(
        self, manifest: dict[str, ManifestItem], root_dir: str
    ) -> list[TOCEntry]:
        """Parse the TOC from the NCX, falling back to the EPUB 3 nav document."""
        ncx_item = next(
            (item for item in manifest.values() if item.media_type == NCX_MEDIA_TYPE),
            None,
        )
        if ncx_item is not None:
            ncx_path = resolve_href(root_dir, ncx_item.href)
            ncx = _parse_xml(self.archive.read(ncx_path), ncx_path)
            return self._parse_ncx(ncx)

        nav_item = self._find_nav_item(manifest)
        if nav_item is not None:
            nav_content = self.archive.read(resolve_href(root_dir, nav_item.href))
            return self._parse_nav_document(nav_content)

        log.debug("No NCX or navigation document declared")
        return []

    def _find_nav_item(self, manifest: dict[str, ManifestItem]) -> ManifestItem | None:
        documents = [item for item in manifest.values() if item.is_document]
        for item in documents:
            if "nav" in item.href:
                return item
        for item in documents:
            if "nav" in item.properties:
                return item
        return None

    def _parse_ncx(self, ncx: etree._Element) -> list[TOCEntry]:
        nav_map = _first(ncx, "//*[local-name()='navMap']")
        if nav_map is None:
            return []
        return self._parse_nav_points(_children(nav_map, "navPoint"))

    def _parse_nav_points(self, nav_points: list[etree._Element]) -> list[TOCEntry]:
        """Recursively parse NCX navPoints."""
        entries = []
        for point in nav_points:
            label = _first(
                point, "./*[local-name()='navLabel']/*[local-name()='text']"
            )
            content = _first(point, "./*[local-name()='content']")
            play_order = point.get("playOrder")

            entries.append(
                TOCEntry(
                    name=_text(label),
                    path=content.get("src") if content is not None else None,
                    play_order=int(play_order) if play_order and play_order.isdigit() else None,
                    children=self._parse_nav_points(_children(point, "navPoint")),
                )
            )
        return entries

    def _parse_nav_document(self, content: bytes) -> list[TOCEntry]:
        soup = parse_markup(content)
        navs = soup.find_all("nav")
        nav = next((tag for tag in navs if _is_toc_nav(tag)), None) or (
            navs[0] if navs else None
        )
        if nav is None:
            return []
        top_list = nav.find("ol")
        if top_list is None:
            return []
        return self._parse_nav_list(top_list)

    def _parse_nav_list(self, list_element: Tag) -> list[TOCEntry]:
        """Recursively parse nested <ol><li> navigation lists."""
        entries = []
        for item in list_element.find_all("li", recursive=False):
            label = item.find(["a", "span"], recursive=False)
            sub_list = item.find("ol", recursive=False)

            name = label.get_text(strip=True) if label is not None else None
            path = label.get("href") if label is not None and label.name == "a" else None

            entries.append(
                TOCEntry(
                    name=name or None,
                    path=path,
                    children=self._parse_nav_list(sub_list) if sub_list else [],
                )
            )
        return entries
