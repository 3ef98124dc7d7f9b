"""Shared fixtures: small EPUB archives built on the fly."""

import zipfile
from pathlib import Path

import pytest

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CONTENT_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0" unique-identifier="bookid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>T</dc:title>
    <dc:creator>A</dc:creator>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
    <item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>
    <item id="ch1" href="ch1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="ch2.xhtml" media-type="application/xhtml+xml"/>
    <item id="cover" href="images/cover.png" media-type="image/png"/>
    <item id="css" href="style.css" media-type="text/css"/>
  </manifest>
  <spine toc="ncx">
    <itemref idref="ch1"/>
    <itemref idref="css"/>
    <itemref idref="ch2"/>
  </spine>
</package>
"""

TOC_NCX = """<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <navMap>
    <navPoint id="p1" playOrder="1">
      <navLabel><text>Chapter One</text></navLabel>
      <content src="ch1.xhtml"/>
    </navPoint>
    <navPoint id="p2" playOrder="2">
      <navLabel><text>Chapter Two</text></navLabel>
      <content src="ch2.xhtml"/>
    </navPoint>
  </navMap>
</ncx>
"""

CH1_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter One</title></head>
<body>
<h1>Chapter One</h1>
<p>It was a dark and stormy night.</p>
<p><img src="images/cover.png" alt="Cover"/></p>
</body>
</html>
"""

CH2_XHTML = """<?xml version="1.0" encoding="UTF-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter Two</title></head>
<body>
<h1>Chapter Two</h1>
<p>The end.</p>
</body>
</html>
"""

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def build_epub(path: Path, files: dict[str, str | bytes], opf_path: str | None = None) -> Path:
    """Write a zip archive with a container.xml pointing at ``opf_path``."""
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        if opf_path is not None:
            zf.writestr(
                "META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path)
            )
        for name, content in files.items():
            zf.writestr(name, content)
    return path


@pytest.fixture
def make_epub(tmp_path):
    """Factory building an EPUB under tmp_path."""

    def _make(
        files: dict[str, str | bytes],
        opf_path: str | None = "OEBPS/content.opf",
        name: str = "book.epub",
    ) -> Path:
        return build_epub(tmp_path / name, files, opf_path)

    return _make


@pytest.fixture
def sample_epub(make_epub):
    """Minimal EPUB: two XHTML sections, a stylesheet and one image."""
    return make_epub(
        {
            "OEBPS/content.opf": CONTENT_OPF,
            "OEBPS/toc.ncx": TOC_NCX,
            "OEBPS/ch1.xhtml": CH1_XHTML,
            "OEBPS/ch2.xhtml": CH2_XHTML,
            "OEBPS/images/cover.png": PNG_BYTES,
            "OEBPS/style.css": "p { margin: 0 }",
        }
    )
