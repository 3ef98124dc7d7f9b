"""Errors raised while reading an EPUB."""


class Epub2mdError(Exception):
    """Base error for EPUB conversion."""


class EntryNotFoundError(Epub2mdError):
    """A required entry is missing from the archive."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"File not found in EPUB: {path}")


class MissingRootfileError(Epub2mdError):
    """container.xml does not point to a package document."""

    def __init__(self, container_path: str):
        self.container_path = container_path
        super().__init__(f"No rootfile with a full-path attribute in {container_path}")
