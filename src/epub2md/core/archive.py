"""Random-access reader over the EPUB zip container."""

import posixpath
import zipfile
from pathlib import Path
from urllib.parse import unquote

from epub2md.core.errors import EntryNotFoundError


def normalize_path(path: str) -> str:
    """Strip exactly one leading slash; no other canonicalization."""
    return path[1:] if path.startswith("/") else path


def resolve_href(root_dir: str, href: str) -> str:
    """Resolve a manifest/TOC/image href to an archive path.

    A leading slash marks an archive-absolute href and is stripped. Anything
    else is joined with root_dir, dropping a leading "./" from the result.
    """
    if href.startswith("/"):
        return href[1:]
    joined = posixpath.join(root_dir, href) if root_dir else href
    if joined.startswith("./"):
        joined = joined[2:]
    return joined


class Archive:
    """Read-only view of the entries in an EPUB file."""

    def __init__(self, zip_file: zipfile.ZipFile, path: Path | None = None):
        self._zip = zip_file
        self.path = path

    @classmethod
    def open(cls, path: Path) -> "Archive":
        """Open an EPUB file.

        Raises:
            FileNotFoundError: If the file does not exist
            zipfile.BadZipFile: If the file is not a zip archive
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"EPUB file does not exist: {path}")
        return cls(zipfile.ZipFile(path), path)

    def close(self) -> None:
        self._zip.close()

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def names(self) -> list[str]:
        """All entry names in archive order."""
        return self._zip.namelist()

    def _lookup(self, path: str) -> zipfile.ZipInfo | None:
        normalized = normalize_path(path)
        try:
            return self._zip.getinfo(normalized)
        except KeyError:
            pass
        # Hrefs are URL-encoded in the package document, entry names usually aren't
        if "%" in normalized:
            try:
                return self._zip.getinfo(unquote(normalized))
            except KeyError:
                pass
        return None

    def exists(self, path: str) -> bool:
        return self._lookup(path) is not None

    def find(self, path: str) -> bytes | None:
        """Return entry bytes, or None if the entry is absent."""
        info = self._lookup(path)
        if info is None:
            return None
        return self._zip.read(info)

    def read(self, path: str) -> bytes:
        """Return entry bytes, raising if the entry is absent."""
        data = self.find(path)
        if data is None:
            raise EntryNotFoundError(path)
        return data
